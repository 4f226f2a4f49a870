"""
CSV audit trail for graphtool runs.

One file per action and day, ``_graphtool_<action>_<YYYY-MM-DD>.csv``, in the
audit directory (system temp dir by default). Rows are appended so repeated
runs on the same day share a file; the header is written only when the file
is new. Files are created owner-only (0600) because error messages may echo
mailbox addresses.
"""

import csv
import logging
import os
import sys
import tempfile
from datetime import datetime
from typing import Callable

from .constants import (
    ACTION_EXPORT_INBOX,
    ACTION_GET_EVENTS,
    ACTION_GET_INBOX,
    ACTION_GET_SCHEDULE,
    ACTION_SEARCH_AND_EXPORT,
    ACTION_SEND_INVITE,
    ACTION_SEND_MAIL,
)

logger = logging.getLogger(__name__)

TOOL_NAME = "graphtool"
FLUSH_EVERY = 10

# Column names per action; "Timestamp" is prepended automatically
AUDIT_COLUMNS: dict[str, list[str]] = {
    ACTION_GET_EVENTS: ["Action", "Status", "Mailbox", "Event Subject", "Event ID"],
    ACTION_SEND_MAIL: [
        "Action", "Status", "Mailbox", "To", "CC", "BCC", "Subject", "Body Type", "Attachments",
    ],
    ACTION_SEND_INVITE: [
        "Action", "Status", "Mailbox", "Subject", "Start Time", "End Time", "Event ID",
    ],
    ACTION_GET_INBOX: [
        "Action", "Status", "Mailbox", "Subject", "From", "To", "Received DateTime",
    ],
    ACTION_GET_SCHEDULE: [
        "Action", "Status", "Mailbox", "Recipient", "Check DateTime", "Availability View",
    ],
    ACTION_EXPORT_INBOX: ["Action", "Status", "Mailbox", "Result", "Export Directory"],
    ACTION_SEARCH_AND_EXPORT: ["Action", "Status", "Mailbox", "Result", "Message ID"],
}


def audit_file_path(action: str, directory: str = "", *, today: datetime | None = None) -> str:
    day = (today or datetime.now()).strftime("%Y-%m-%d")
    base = directory or tempfile.gettempdir()
    return os.path.join(base, f"_{TOOL_NAME}_{action}_{day}.csv")


class CsvAuditLog:
    """Append-only CSV writer with a timestamp column and periodic flushing."""

    def __init__(
        self,
        action: str,
        directory: str = "",
        *,
        flush_every: int = FLUSH_EVERY,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.action = action
        self.path = audit_file_path(action, directory, today=clock())
        self._clock = clock
        self._flush_every = flush_every
        self._rows_since_flush = 0

        if directory:
            os.makedirs(directory, exist_ok=True)
        fd = os.open(self.path, os.O_APPEND | os.O_CREAT | os.O_WRONLY, 0o600)
        if sys.platform != "win32":
            # umask may have widened the mode of a pre-existing file
            os.chmod(self.path, 0o600)
        self._file = os.fdopen(fd, "a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        self._is_new = os.fstat(fd).st_size == 0

    @property
    def is_new(self) -> bool:
        """True when the file was empty at open time and needs a header."""
        return self._is_new

    def write_header(self, columns: list[str]) -> None:
        self._writer.writerow(["Timestamp", *columns])
        self._file.flush()
        self._is_new = False

    def write_row(self, row: list[str]) -> None:
        timestamp = self._clock().strftime("%Y-%m-%d %H:%M:%S")
        self._writer.writerow([timestamp, *row])
        self._rows_since_flush += 1
        if self._rows_since_flush >= self._flush_every:
            self._file.flush()
            self._rows_since_flush = 0

    def close(self) -> None:
        if not self._file.closed:
            self._file.flush()
            self._file.close()

    def __enter__(self) -> "CsvAuditLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_audit_log(action: str, directory: str = "") -> CsvAuditLog:
    """Open the audit file for ``action`` and write its header if the file is new."""
    audit = CsvAuditLog(action, directory)
    if audit.is_new:
        audit.write_header(AUDIT_COLUMNS.get(action, ["Action", "Status", "Mailbox", "Detail"]))
    logger.info("Logging to: %s", audit.path)
    return audit
