"""Shared state handed to every action handler."""

from dataclasses import dataclass

from ..audit import CsvAuditLog
from ..config import Settings
from ..graph.pipeline import OperationPipeline


@dataclass
class ActionContext:
    pipeline: OperationPipeline
    settings: Settings
    audit: CsvAuditLog | None = None

    @property
    def mailbox(self) -> str:
        return self.settings.mailbox

    @property
    def json_output(self) -> bool:
        return self.settings.output_format == "json"

    def record(self, *row: str) -> None:
        """Append an audit row when auditing is enabled."""
        if self.audit is not None:
            self.audit.write_row(list(row))
