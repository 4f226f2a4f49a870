"""
Transient/permanent error classification for outbound Graph calls.

The retry orchestrator only re-attempts failures classified as transient.
Anything unrecognised is permanent.

Decision order (first match wins):
1. Cancellation or deadline errors        -> permanent
2. Response errors with status 429/503/504 -> transient
3. Messages matching a network pattern    -> transient
4. Everything else                        -> permanent
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import httpx

from ..constants import TRANSIENT_ERROR_PATTERNS, TRANSIENT_STATUS_CODES
from ..exceptions import OperationCancelledError


class Verdict(Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class ErrorClassification:
    """Outcome of classifying one failure. Computed fresh for every error."""

    verdict: Verdict
    reason: str = ""

    @classmethod
    def transient(cls, reason: str) -> "ErrorClassification":
        return cls(Verdict.TRANSIENT, reason)

    @classmethod
    def permanent(cls, reason: str = "") -> "ErrorClassification":
        return cls(Verdict.PERMANENT, reason)

    @property
    def is_transient(self) -> bool:
        return self.verdict is Verdict.TRANSIENT


def iter_causes(error: BaseException | None) -> Iterator[BaseException]:
    """Yield the error followed by its explicit ``__cause__`` chain."""
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        yield error
        error = error.__cause__


def _status_code(error: BaseException) -> int | None:
    """Extract an HTTP-like status code from a structured response error."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


def _is_cancellation(error: BaseException) -> bool:
    return isinstance(error, (OperationCancelledError, asyncio.CancelledError))


def classify(error: BaseException | None) -> ErrorClassification:
    """Classify an error as transient or permanent. Never raises."""
    if error is None:
        return ErrorClassification.permanent("no error")

    chain = list(iter_causes(error))

    for err in chain:
        if _is_cancellation(err):
            return ErrorClassification.permanent("cancelled")

    for err in chain:
        status = _status_code(err)
        if status in TRANSIENT_STATUS_CODES:
            return ErrorClassification.transient(f"HTTP {status}")

    try:
        message = str(error).lower()
    except Exception:
        message = ""
    for pattern in TRANSIENT_ERROR_PATTERNS:
        if pattern in message:
            return ErrorClassification.transient(pattern)

    return ErrorClassification.permanent(type(error).__name__)


def is_transient_error(error: BaseException | None) -> bool:
    """Shorthand for ``classify(error).is_transient``."""
    return classify(error).is_transient
