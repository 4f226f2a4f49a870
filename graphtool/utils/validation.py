"""
Input validation for identifiers, addresses, paths and Internet Message-IDs.

All validators raise ConfigurationError with a message naming the field.
"""

import re
from pathlib import Path

from ..exceptions import ConfigurationError

_GUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

# OData operators that could alter a $filter expression
_ODATA_KEYWORDS = (" or ", " and ", " eq ", " ne ", " lt ", " gt ", " le ", " ge ", " not ")

MAX_MESSAGE_ID_LENGTH = 998


def validate_guid(value: str, field_name: str) -> None:
    value = (value or "").strip()
    if not value:
        raise ConfigurationError(f"{field_name} cannot be empty")
    if not _GUID_RE.match(value):
        raise ConfigurationError(
            f"{field_name} should be a GUID (format: 12345678-1234-1234-1234-123456789012)"
        )


def validate_email(email: str) -> None:
    email = (email or "").strip()
    if not email:
        raise ConfigurationError("email cannot be empty")
    if "@" not in email:
        raise ConfigurationError(f"invalid email format: {email} (missing @)")
    local, _, domain = email.partition("@")
    if not local or not domain or "@" in domain:
        raise ConfigurationError(f"invalid email format: {email}")


def validate_emails(emails: list[str], field_name: str) -> None:
    for email in emails:
        try:
            validate_email(email)
        except ConfigurationError as e:
            raise ConfigurationError(f"{field_name} contains invalid email: {e}") from e


def validate_file_path(path: str, field_name: str) -> Path:
    """Resolve ``path`` and check it names a readable regular file."""
    if not path:
        raise ConfigurationError(f"{field_name} cannot be empty")
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise ConfigurationError(f"{field_name} file not found: {path}")
    if not resolved.is_file():
        raise ConfigurationError(f"{field_name} is not a regular file: {path}")
    return resolved


def validate_message_id(message_id: str) -> None:
    """
    Validate an RFC 5322 Message-ID (<local@domain>) before it is placed in
    an OData $filter. Quotes, backslashes and OData operators are rejected.
    """
    if not message_id:
        raise ConfigurationError("message ID cannot be empty")
    if not (message_id.startswith("<") and message_id.endswith(">")):
        raise ConfigurationError(
            "invalid message ID: must be enclosed in angle brackets: <local@domain>"
        )
    if len(message_id) > MAX_MESSAGE_ID_LENGTH:
        raise ConfigurationError(
            f"invalid message ID: exceeds maximum length of {MAX_MESSAGE_ID_LENGTH} characters"
        )
    if any(ch in message_id for ch in "'\"\\"):
        raise ConfigurationError(
            "invalid message ID: quotes and backslashes not allowed"
        )
    lowered = message_id.lower()
    if any(keyword in lowered for keyword in _ODATA_KEYWORDS):
        raise ConfigurationError("invalid message ID: contains OData operators")
