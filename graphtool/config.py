"""
Central configuration for graphtool.
Uses Pydantic BaseSettings for type-safe configuration from MSGRAPH_*
environment variables; CLI flags are passed in as overrides.
"""

import os
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .auth.models import (
    AuthInput,
    CertificateFileAuth,
    ClientSecretAuth,
    StoreThumbprintAuth,
)
from .auth.resolver import NO_METHOD_MESSAGE
from .constants import (
    ACTIONS,
    ACTION_GET_SCHEDULE,
    ACTION_SEARCH_AND_EXPORT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_SUBJECT,
)
from .exceptions import ConfigurationError, NoMethodProvidedError
from .utils.retry import RetryPolicy
from .utils.validation import (
    validate_email,
    validate_emails,
    validate_file_path,
    validate_guid,
    validate_message_id,
)

# .env in the working directory, like the tool's other config sources
_ENV_FILE = Path.cwd() / ".env"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_env_file() -> None:
    """
    Load .env into os.environ, but only for keys that are currently unset
    or set to empty strings. Explicit non-empty shell values still win.
    """
    if not _ENV_FILE.exists():
        return
    from dotenv import dotenv_values
    for key, value in dotenv_values(_ENV_FILE).items():
        if value and not os.environ.get(key):
            os.environ[key] = value


_load_env_file()

# Variable names of the earlier msgraphtool releases (no underscore after the
# prefix). Read only when the MSGRAPH_<FIELD> spelling is unset.
LEGACY_ENV_NAMES = {
    "tenant_id": "MSGRAPHTENANTID",
    "client_id": "MSGRAPHCLIENTID",
    "secret": "MSGRAPHSECRET",
    "pfx_path": "MSGRAPHPFX",
    "pfx_password": "MSGRAPHPFXPASS",
    "thumbprint": "MSGRAPHTHUMBPRINT",
    "mailbox": "MSGRAPHMAILBOX",
    "action": "MSGRAPHACTION",
    "to": "MSGRAPHTO",
    "cc": "MSGRAPHCC",
    "bcc": "MSGRAPHBCC",
    "attachments": "MSGRAPHATTACHMENTS",
    "subject": "MSGRAPHSUBJECT",
    "body": "MSGRAPHBODY",
    "body_html": "MSGRAPHBODYHTML",
    "body_template": "MSGRAPHBODYTEMPLATE",
    "invite_subject": "MSGRAPHINVITESUBJECT",
    "start_time": "MSGRAPHSTART",
    "end_time": "MSGRAPHEND",
    "count": "MSGRAPHCOUNT",
    "message_id": "MSGRAPHMESSAGEID",
    "output_format": "MSGRAPHOUTPUT",
    "whatif": "MSGRAPHWHATIF",
    "max_retries": "MSGRAPHMAXRETRIES",
    "retry_delay_ms": "MSGRAPHRETRYDELAY",
    "proxy_url": "MSGRAPHPROXY",
    "log_level": "MSGRAPHLOGLEVEL",
}


def _legacy_env_values() -> dict[str, str]:
    values = {}
    for field_name, legacy in LEGACY_ENV_NAMES.items():
        value = os.environ.get(legacy)
        if value and not os.environ.get(f"MSGRAPH_{field_name.upper()}"):
            values[field_name] = value
    return values


def _split(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MSGRAPH_",
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Identity ────────────────────────────────────────────────────────────────
    tenant_id: str = ""
    client_id: str = ""
    mailbox: str = ""

    # ── Authentication (exactly one) ────────────────────────────────────────────
    secret: str = Field(default="", repr=False)
    pfx_path: str = ""
    pfx_password: str = Field(default="", repr=False)
    thumbprint: str = ""

    # ── Action ──────────────────────────────────────────────────────────────────
    action: str = "getinbox"
    # Comma-separated lists; exposed as lists via properties
    to: str = ""
    cc: str = ""
    bcc: str = ""
    attachments: str = ""
    subject: str = DEFAULT_SUBJECT
    body: str = "This is a test email from graphtool."
    body_html: str = ""
    body_template: str = ""
    invite_subject: str = ""
    start_time: str = ""
    end_time: str = ""
    count: int = Field(default=3, ge=1)
    recipient: str = ""
    message_id: str = ""
    output_format: str = "text"
    whatif: bool = False  # preview sendmail/sendinvite without calling Graph

    # ── Retry / network ─────────────────────────────────────────────────────────
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, gt=0)
    timeout_seconds: float | None = Field(default=None, gt=0)
    http_timeout_seconds: float = Field(default=60.0, gt=0)
    proxy_url: str = ""

    # ── Logging / audit ─────────────────────────────────────────────────────────
    verbose: bool = False
    log_level: str = "INFO"
    json_logs: bool = False
    logs_dir: str = ""
    audit_dir: str = ""  # blank = system temp dir
    export_dir: str = ""  # blank = <system temp>/export
    audit_enabled: bool = True

    @field_validator("action")
    @classmethod
    def _check_action(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ACTIONS:
            raise ValueError(f"unknown action '{value}' (valid: {', '.join(ACTIONS)})")
        return value

    @field_validator("output_format")
    @classmethod
    def _check_output_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("text", "json"):
            raise ValueError("output format must be 'text' or 'json'")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value == "WARN":
            value = "WARNING"
        if value not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(_LOG_LEVELS)}")
        return value

    @property
    def to_recipients(self) -> list[str]:
        return _split(self.to)

    @property
    def cc_recipients(self) -> list[str]:
        return _split(self.cc)

    @property
    def bcc_recipients(self) -> list[str]:
        return _split(self.bcc)

    @property
    def attachment_paths(self) -> list[str]:
        return _split(self.attachments)

    @property
    def retry_delay(self) -> float:
        """Base retry delay in seconds."""
        return self.retry_delay_ms / 1000


def load_settings(**overrides) -> Settings:
    """Build Settings from the environment plus explicit overrides (CLI flags)."""
    values = _legacy_env_values()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"invalid configuration: {problems}") from e


def validate_settings(settings: Settings) -> None:
    """Cross-field checks that need more than one setting. Raises ConfigurationError."""
    validate_guid(settings.tenant_id, "tenant id")
    validate_guid(settings.client_id, "client id")
    if not settings.mailbox:
        raise ConfigurationError("mailbox cannot be empty")
    validate_email(settings.mailbox)

    validate_emails(settings.to_recipients, "to")
    validate_emails(settings.cc_recipients, "cc")
    validate_emails(settings.bcc_recipients, "bcc")

    if settings.body_template:
        validate_file_path(settings.body_template, "body template")

    if settings.action == ACTION_GET_SCHEDULE:
        if not settings.recipient:
            raise ConfigurationError("recipient is required for the getschedule action")
        validate_email(settings.recipient)

    if settings.action == ACTION_SEARCH_AND_EXPORT:
        validate_message_id(settings.message_id)


def build_auth_input(settings: Settings) -> AuthInput:
    """
    Turn the three optional authentication settings into one AuthInput.

    Raises NoMethodProvidedError when none or more than one is set. No files
    or certificate stores are touched here.
    """
    provided = [
        name
        for name, value in (
            ("secret", settings.secret),
            ("pfx", settings.pfx_path),
            ("thumbprint", settings.thumbprint),
        )
        if value
    ]
    if not provided:
        raise NoMethodProvidedError(NO_METHOD_MESSAGE)
    if len(provided) > 1:
        raise NoMethodProvidedError(
            f"multiple authentication methods provided ({', '.join(provided)}); "
            "use exactly one of --secret, --pfx, or --thumbprint"
        )

    if settings.secret:
        return ClientSecretAuth(settings.secret)
    if settings.pfx_path:
        return CertificateFileAuth(settings.pfx_path, settings.pfx_password)
    return StoreThumbprintAuth(settings.thumbprint)


def retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(max_retries=settings.max_retries, base_delay=settings.retry_delay)




def without_credentials(settings: Settings) -> Settings:
    """Copy of ``settings`` with the client secret and PFX password blanked."""
    return settings.model_copy(update={"secret": "", "pfx_password": ""})
