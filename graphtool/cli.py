"""
Command-line entry point.

Usage:
    graphtool --tenantid ... --clientid ... --secret ... --mailbox user@example.com --action getevents
    graphtool --tenantid ... --clientid ... --pfx cert.pfx --pfxpass ... --action sendmail --to a@b.com

Every flag can also be set through an MSGRAPH_* environment variable or a
.env file in the working directory; flags take precedence.

Exit codes: 0 success, 1 failure, 130 interrupted or deadline exceeded.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError

from . import __version__
from .actions import ActionContext, execute_action
from .audit import CsvAuditLog, open_audit_log
from .auth.cert_store import CertificateExporter
from .auth.models import AuthInput, CertificateFileAuth, ClientSecretAuth
from .auth.token_info import describe_token
from .config import (
    Settings,
    build_auth_input,
    load_settings,
    retry_policy,
    validate_settings,
    without_credentials,
)
from .constants import ACTIONS, GRAPH_DEFAULT_SCOPE
from .exceptions import (
    DeadlineExceededError,
    GraphToolError,
    OperationCancelledError,
)
from .graph.pipeline import build_pipeline
from .logging_config import setup_logging
from .utils.masking import mask_email, mask_guid, mask_password, mask_secret
from .utils.retry import CancellationSignal

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

# argparse dest -> Settings field
_FLAG_FIELDS = {
    "tenantid": "tenant_id",
    "clientid": "client_id",
    "secret": "secret",
    "pfx": "pfx_path",
    "pfxpass": "pfx_password",
    "thumbprint": "thumbprint",
    "mailbox": "mailbox",
    "action": "action",
    "to": "to",
    "cc": "cc",
    "bcc": "bcc",
    "subject": "subject",
    "body": "body",
    "body_html": "body_html",
    "body_template": "body_template",
    "attachments": "attachments",
    "invite_subject": "invite_subject",
    "start": "start_time",
    "end": "end_time",
    "count": "count",
    "recipient": "recipient",
    "messageid": "message_id",
    "output": "output_format",
    "maxretries": "max_retries",
    "retrydelay": "retry_delay_ms",
    "timeout": "timeout_seconds",
    "proxy": "proxy_url",
    "loglevel": "log_level",
    "logs_dir": "logs_dir",
    "audit_dir": "audit_dir",
    "export_dir": "export_dir",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="graphtool",
        description="Microsoft Graph Exchange Online mailbox and calendar testing tool",
        epilog="All flags can be set via MSGRAPH_* environment variables "
               "(e.g. MSGRAPH_TENANT_ID); flags take precedence. The older "
               "spellings without an underscore (MSGRAPHTENANTID) are still read.",
    )
    parser.add_argument("--version", action="store_true", help="Show version information")

    auth = parser.add_argument_group("identity and authentication (use exactly one method)")
    auth.add_argument("--tenantid", help="Azure tenant ID")
    auth.add_argument("--clientid", help="Application (client) ID")
    auth.add_argument("--secret", help="Client secret")
    auth.add_argument("--pfx", help="Path to a .pfx certificate file")
    auth.add_argument("--pfxpass", help="Password for the .pfx file")
    auth.add_argument("--thumbprint", help="Thumbprint of a certificate in CurrentUser\\My (Windows)")
    auth.add_argument("--mailbox", help="Target Exchange Online mailbox address")

    action = parser.add_argument_group("action")
    action.add_argument("--action", choices=ACTIONS, help="Action to perform (default: getinbox)")
    action.add_argument("--to", help="Comma-separated TO recipients (defaults to mailbox)")
    action.add_argument("--cc", help="Comma-separated CC recipients")
    action.add_argument("--bcc", help="Comma-separated BCC recipients")
    action.add_argument("--subject", help="Subject of the email or calendar invite")
    action.add_argument("--body", help="Text body of the email")
    action.add_argument("--bodyHTML", dest="body_html", help="HTML body of the email (wins over --body)")
    action.add_argument("--body-template", dest="body_template", help="Path to an HTML body template file")
    action.add_argument("--attachments", help="Comma-separated file paths to attach")
    action.add_argument("--invite-subject", dest="invite_subject", help=argparse.SUPPRESS)
    action.add_argument("--start", help="Invite start (RFC3339 or 2026-01-15T14:00:00); defaults to now")
    action.add_argument("--end", help="Invite end; defaults to start + 1 hour")
    action.add_argument("--count", type=int, help="Items to retrieve for list actions (default: 3)")
    action.add_argument("--recipient", help="Attendee to check for the getschedule action")
    action.add_argument("--messageid", help="Internet Message-ID for searchandexport, e.g. <id@host>")
    action.add_argument("--output", choices=("text", "json"), help="Output format (default: text)")
    action.add_argument(
        "--whatif", action="store_true", default=None,
        help="Dry run: preview sendmail/sendinvite without calling Graph",
    )

    network = parser.add_argument_group("network and retry")
    network.add_argument("--maxretries", type=int, help="Retries for transient failures (default: 3)")
    network.add_argument("--retrydelay", type=int, help="Base retry delay in ms (default: 2000)")
    network.add_argument("--timeout", type=float, help="Overall deadline for the run in seconds")
    network.add_argument("--proxy", help="HTTP/HTTPS proxy URL")

    diag = parser.add_argument_group("logging")
    diag.add_argument("--verbose", action="store_true", default=None, help="Verbose output (config, token, API calls)")
    diag.add_argument("--loglevel", help="DEBUG, INFO, WARN or ERROR (default: INFO)")
    diag.add_argument("--json-logs", dest="json_logs", action="store_true", default=None, help="Emit JSON log lines")
    diag.add_argument("--logs-dir", dest="logs_dir", help="Also write a rotating log file here")
    diag.add_argument("--audit-dir", dest="audit_dir", help="Directory for CSV audit files (default: temp dir)")
    diag.add_argument("--export-dir", dest="export_dir", help="Root directory for exported messages")
    diag.add_argument("--no-audit", dest="audit_enabled", action="store_false", default=None, help="Disable the CSV audit file")
    return parser


def settings_overrides(args: argparse.Namespace) -> dict:
    overrides = {field: getattr(args, dest) for dest, field in _FLAG_FIELDS.items()}
    for flag in ("verbose", "json_logs", "audit_enabled", "whatif"):
        overrides[flag] = getattr(args, flag)
    return overrides


def print_config_summary(settings: Settings, auth: AuthInput) -> None:
    out = sys.stderr
    print("Configuration:", file=out)
    print(f"  Tenant ID:   {mask_guid(settings.tenant_id)}", file=out)
    print(f"  Client ID:   {mask_guid(settings.client_id)}", file=out)
    print(f"  Mailbox:     {mask_email(settings.mailbox)}", file=out)
    print(f"  Action:      {settings.action}", file=out)
    if isinstance(auth, ClientSecretAuth):
        print(f"  Auth:        client secret ({mask_secret(auth.secret)})", file=out)
    elif isinstance(auth, CertificateFileAuth):
        print(f"  Auth:        PFX {auth.path} (password {mask_password(auth.password) or 'none'})", file=out)
    else:
        print(f"  Auth:        certificate store thumbprint {auth.thumbprint}", file=out)
    print(f"  Retries:     {settings.max_retries} (base delay {settings.retry_delay_ms} ms)", file=out)
    print(f"  WhatIf:      {settings.whatif}", file=out)
    print("", file=out)


async def show_token_info(credential: TokenCredential) -> None:
    token = await asyncio.to_thread(credential.get_token, GRAPH_DEFAULT_SCOPE)
    print("\n".join(describe_token(token)), file=sys.stderr)
    print("", file=sys.stderr)


def _open_audit(settings: Settings) -> CsvAuditLog | None:
    if not settings.audit_enabled:
        return None
    try:
        return open_audit_log(settings.action, settings.audit_dir)
    except OSError as e:
        logger.warning("Could not initialize CSV logging: %s", e)
        return None


async def run(
    settings: Settings,
    auth: AuthInput,
    cancellation: CancellationSignal,
    *,
    exporter: CertificateExporter | None = None,
) -> object:
    """
    Resolve the credential, run the configured action and close everything.

    ``auth`` is dropped once the credential exists, and handlers get a copy
    of ``settings`` without the secret or PFX password.
    """
    pipeline, credential = build_pipeline(
        settings.tenant_id,
        settings.client_id,
        auth,
        retry_policy(settings),
        cancellation,
        http_timeout=settings.http_timeout_seconds,
        exporter=exporter,
    )
    del auth
    settings = without_credentials(settings)
    audit = _open_audit(settings)
    try:
        async with pipeline:
            if settings.verbose:
                await show_token_info(credential)
            return await execute_action(ActionContext(pipeline, settings, audit))
    finally:
        if audit is not None:
            audit.close()


async def _run_until_cancelled(settings: Settings, auth: AuthInput) -> object:
    if settings.timeout_seconds:
        cancellation = CancellationSignal.with_timeout(settings.timeout_seconds)
    else:
        cancellation = CancellationSignal()

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def _on_signal() -> None:
        print("\n\nReceived interrupt signal. Shutting down gracefully...", file=sys.stderr)
        cancellation.cancel()
        task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support; KeyboardInterrupt still applies
            pass

    job = run(settings, auth, cancellation)
    del auth
    try:
        return await asyncio.wait_for(job, timeout=cancellation.remaining())
    except asyncio.TimeoutError:
        raise DeadlineExceededError(
            f"deadline of {settings.timeout_seconds}s exceeded"
        ) from None
    except asyncio.CancelledError:
        if cancellation.cancelled:
            raise OperationCancelledError("operation cancelled") from None
        raise


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"graphtool - Microsoft Graph EXO Mails/Calendar Testing Tool - Version {__version__}")
        return EXIT_OK

    try:
        settings = load_settings(**settings_overrides(args))
        validate_settings(settings)
        auth = build_auth_input(settings)
    except GraphToolError as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return EXIT_FAILURE

    setup_logging(
        settings.log_level,
        verbose=settings.verbose,
        json_logs=settings.json_logs,
        logs_dir=settings.logs_dir,
    )
    logger.info("Application starting (version=%s, action=%s)", __version__, settings.action)

    if settings.proxy_url:
        # httpx picks these up from the environment
        os.environ["HTTP_PROXY"] = settings.proxy_url
        os.environ["HTTPS_PROXY"] = settings.proxy_url
        logger.info("Using proxy: %s", settings.proxy_url)

    if settings.verbose:
        print_config_summary(settings, auth)

    # from here on only the AuthInput carries credential material
    settings = without_credentials(settings)
    job = _run_until_cancelled(settings, auth)
    del auth
    try:
        asyncio.run(job)
    except (OperationCancelledError, KeyboardInterrupt) as e:
        logger.error("Interrupted: %s", e or "keyboard interrupt")
        return EXIT_INTERRUPTED
    except (GraphToolError, AzureError) as e:
        logger.error("%s failed: %s", settings.action, e)
        return EXIT_FAILURE
    return EXIT_OK
