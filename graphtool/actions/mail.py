"""
Mail actions: send mail, list the inbox, and export messages to JSON files.

Exports land in ``<export root>/YYYY-MM-DD/msg_<id>.json`` where the export
root defaults to ``<system temp>/export``.
"""

import base64
import json
import logging
import mimetypes
import os
import tempfile
from datetime import datetime
from pathlib import Path

from ..constants import (
    ACTION_EXPORT_INBOX,
    ACTION_GET_INBOX,
    ACTION_SEARCH_AND_EXPORT,
    ACTION_SEND_MAIL,
    STATUS_DRY_RUN,
    STATUS_ERROR,
    STATUS_SUCCESS,
)
from ..exceptions import ConfigurationError
from ..graph.client import user_path
from ..output import (
    address_list,
    format_messages,
    message_export,
    print_json,
    received_display,
)
from ..utils.validation import validate_message_id
from .context import ActionContext

logger = logging.getLogger(__name__)

_EXPORT_FIELDS = (
    "id,internetMessageId,subject,receivedDateTime,from,toRecipients,"
    "ccRecipients,bccRecipients,body,hasAttachments"
)
_INVALID_FILENAME_CHARS = '<>:"/\\|?*='


def _recipients(emails: list[str]) -> list[dict]:
    return [{"emailAddress": {"address": email}} for email in emails]


def build_attachments(paths: list[str]) -> list[dict]:
    """
    Read files into Graph fileAttachment objects.

    Unreadable files are skipped with a warning. Raises ConfigurationError
    when files were requested but none could be read.
    """
    attachments = []
    for raw in paths:
        path = Path(raw)
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning("Could not read attachment file %s: %s", raw, e)
            continue
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        logger.debug("Attachment: %s (%s, %d bytes)", path.name, content_type, len(data))
        attachments.append({
            "@odata.type": "#microsoft.graph.fileAttachment",
            "name": path.name,
            "contentType": content_type,
            "contentBytes": base64.b64encode(data).decode("ascii"),
        })
    if paths and not attachments:
        raise ConfigurationError("no valid attachments could be processed")
    return attachments


def load_html_body(ctx: ActionContext) -> str:
    """HTML body from the template file when one is configured, else body_html."""
    template = ctx.settings.body_template
    if not template:
        return ctx.settings.body_html
    try:
        content = Path(template).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"failed to read body template file: {e}") from e
    logger.info("Loaded email body from template %s (%d chars)", template, len(content))
    return content


def _preview(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def print_mail_preview(mailbox: str, message: dict, attachment_paths: list[str]) -> None:
    """Show what sendMail would send."""
    rule = "=" * 40
    print(rule)
    print("WHATIF MODE - DRY RUN (Email NOT sent)")
    print(rule)
    print(f"From: {mailbox}")
    for key, label in (("toRecipients", "To"), ("ccRecipients", "Cc"), ("bccRecipients", "Bcc")):
        if key in message:
            print(f"{label}: {address_list(message[key])}")
    print(f"Subject: {message['subject']}")
    print(f"Body Type: {message['body']['contentType']}")
    print(f"Body Preview: {_preview(message['body']['content'])}")
    if attachment_paths:
        print(f"Attachments: {len(attachment_paths)} file(s)")
        for i, raw in enumerate(attachment_paths, start=1):
            path = Path(raw)
            try:
                print(f"  [{i}] {path.name} ({path.stat().st_size} bytes)")
            except OSError:
                print(f"  [{i}] {path.name} (error reading file)")
    print(rule)


async def send_mail(ctx: ActionContext) -> None:
    """POST /users/{mailbox}/sendMail."""
    settings = ctx.settings
    mailbox = ctx.mailbox
    to, cc, bcc = settings.to_recipients, settings.cc_recipients, settings.bcc_recipients
    if not (to or cc or bcc):
        to = [mailbox]

    html = load_html_body(ctx)
    body_type = "HTML" if html else "Text"
    message: dict = {
        "subject": settings.subject,
        "body": {"contentType": body_type, "content": html or settings.body},
    }
    if to:
        message["toRecipients"] = _recipients(to)
    if cc:
        message["ccRecipients"] = _recipients(cc)
    if bcc:
        message["bccRecipients"] = _recipients(bcc)

    attachment_paths = settings.attachment_paths
    if attachment_paths:
        message["attachments"] = build_attachments(attachment_paths)
        logger.debug("Attachments added: %d file(s)", len(message["attachments"]))

    audit_row = ["; ".join(to), "; ".join(cc), "; ".join(bcc), settings.subject, body_type,
                 str(len(attachment_paths))]

    if settings.whatif:
        print_mail_preview(mailbox, message, attachment_paths)
        logger.debug("WhatIf mode enabled - email preview displayed, API call skipped")
        ctx.record(ACTION_SEND_MAIL, STATUS_DRY_RUN, mailbox, *audit_row)
        return

    logger.debug("Calling Graph API: POST /users/%s/sendMail", mailbox)
    logger.debug("Email details - To: %s, CC: %s, BCC: %s", to, cc, bcc)
    try:
        # a retried sendMail can deliver the message twice
        await ctx.pipeline.run(
            "sendEmail",
            lambda: ctx.pipeline.client.post(user_path(mailbox, "sendMail"), json={"message": message}),
            retry=False,
        )
    except Exception as e:
        ctx.record(ACTION_SEND_MAIL, f"{STATUS_ERROR}: {e}", mailbox, *audit_row)
        raise

    print(f"Email sent successfully from {mailbox}.")
    print(f"To: {to}")
    print(f"Cc: {cc}")
    print(f"Bcc: {bcc}")
    print(f"Subject: {settings.subject}")
    print(f"Body Type: {body_type}")
    if attachment_paths:
        print(f"Attachments: {len(attachment_paths)} file(s)")
    ctx.record(ACTION_SEND_MAIL, STATUS_SUCCESS, mailbox, *audit_row)


async def list_inbox(ctx: ActionContext) -> list[dict]:
    """GET the newest N messages, most recent first."""
    mailbox = ctx.mailbox
    count = ctx.settings.count
    params = {
        "$top": count,
        "$orderby": "receivedDateTime DESC",
        "$select": "subject,receivedDateTime,from,toRecipients",
    }
    logger.debug(
        "Calling Graph API: GET /users/%s/messages?$top=%d&$orderby=receivedDateTime DESC",
        mailbox, count,
    )
    data = await ctx.pipeline.run(
        "listInbox",
        lambda: ctx.pipeline.client.get(user_path(mailbox, "messages"), params=params),
    )
    messages = data.get("value", [])
    logger.debug("API response received: %d messages", len(messages))

    rows = []
    for message in messages:
        sender = address_list([message["from"]]) if message.get("from") else []
        to = address_list(message.get("toRecipients"))
        rows.append((
            message.get("subject") or "N/A",
            sender[0] if sender else "N/A",
            "; ".join(to) if to else "N/A",
            received_display(message.get("receivedDateTime")),
        ))

    if ctx.json_output:
        print_json(format_messages(messages))
    else:
        print(f"Newest {count} messages in inbox for {mailbox}:\n")
        if not rows:
            print("No messages found.")
        else:
            for i, (subject, sender, to, received) in enumerate(rows, start=1):
                print(f"{i}. Subject: {subject}")
                print(f"   From: {sender}")
                print(f"   To: {to}")
                print(f"   Received: {received}\n")
            print(f"Total messages retrieved: {len(rows)}")

    if not rows:
        ctx.record(
            ACTION_GET_INBOX, STATUS_SUCCESS, mailbox, "No messages found (0 messages)",
            "N/A", "N/A", "N/A",
        )
    else:
        for row in rows:
            ctx.record(ACTION_GET_INBOX, STATUS_SUCCESS, mailbox, *row)
        ctx.record(
            ACTION_GET_INBOX, STATUS_SUCCESS, mailbox, f"Retrieved {len(rows)} message(s)",
            "SUMMARY", "SUMMARY", "SUMMARY",
        )
    return messages


# ── Export ──────────────────────────────────────────────────────────────────────


def sanitize_filename(name: str) -> str:
    for ch in _INVALID_FILENAME_CHARS:
        name = name.replace(ch, "_")
    return name


def create_export_dir(root: str = "", *, today: datetime | None = None) -> Path:
    base = Path(root) if root else Path(tempfile.gettempdir()) / "export"
    export_dir = base / (today or datetime.now()).strftime("%Y-%m-%d")
    try:
        export_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"failed to create export directory {export_dir}: {e}") from e
    return export_dir


def export_message(message: dict, directory: Path) -> Path:
    """Write one message to ``msg_<sanitised id>.json``. Raises OSError on write failure."""
    filename = f"msg_{sanitize_filename(message.get('id') or 'unknown_id')}.json"
    path = directory / filename
    path.write_text(json.dumps(message_export(message), indent=2, ensure_ascii=False), encoding="utf-8")
    os.chmod(path, 0o644)
    logger.debug("Exported message to %s", path)
    return path


async def export_inbox(ctx: ActionContext) -> list[Path]:
    """Export the newest N Inbox messages to JSON files."""
    mailbox = ctx.mailbox
    count = ctx.settings.count
    params = {"$top": count, "$orderby": "receivedDateTime DESC", "$select": _EXPORT_FIELDS}
    logger.debug(
        "Calling Graph API: GET /users/%s/mailFolders/Inbox/messages?$top=%d", mailbox, count,
    )
    data = await ctx.pipeline.run(
        "exportInbox",
        lambda: ctx.pipeline.client.get(
            user_path(mailbox, "mailFolders", "Inbox", "messages"), params=params
        ),
    )
    messages = data.get("value", [])

    if not ctx.json_output:
        print(f"Exporting {len(messages)} messages from inbox for {mailbox}...")
    if not messages:
        if ctx.json_output:
            print_json([])
        else:
            print("No messages found.")
        ctx.record(ACTION_EXPORT_INBOX, STATUS_SUCCESS, mailbox, "No messages found (0 messages)", "N/A")
        return []

    if ctx.json_output:
        print_json(format_messages(messages))

    export_dir = create_export_dir(ctx.settings.export_dir)
    if not ctx.json_output:
        print(f"Export directory: {export_dir}")

    written = []
    for message in messages:
        try:
            written.append(export_message(message, export_dir))
        except OSError as e:
            logger.error("Error exporting message ID %s: %s", message.get("id"), e)

    if not ctx.json_output:
        print(f"Successfully exported {len(written)}/{len(messages)} messages.")
    ctx.record(
        ACTION_EXPORT_INBOX, STATUS_SUCCESS, mailbox,
        f"Exported {len(written)}/{len(messages)} messages", str(export_dir),
    )
    return written


def message_id_filter(message_id: str) -> str:
    """OData filter matching an Internet Message-ID; single quotes are doubled."""
    return "internetMessageId eq '{}'".format(message_id.replace("'", "''"))


async def search_and_export(ctx: ActionContext) -> list[Path]:
    """Find messages by Internet Message-ID anywhere in the mailbox and export them."""
    mailbox = ctx.mailbox
    message_id = ctx.settings.message_id
    validate_message_id(message_id)
    odata_filter = message_id_filter(message_id)
    params = {"$filter": odata_filter, "$select": _EXPORT_FIELDS}
    logger.debug("Calling Graph API: GET /users/%s/messages?$filter=%s", mailbox, odata_filter)
    data = await ctx.pipeline.run(
        "searchAndExport",
        lambda: ctx.pipeline.client.get(user_path(mailbox, "messages"), params=params),
    )
    messages = data.get("value", [])

    if not messages:
        if ctx.json_output:
            print_json([])
        else:
            print(f"No message found with Internet Message ID: {message_id}")
        ctx.record(ACTION_SEARCH_AND_EXPORT, STATUS_SUCCESS, mailbox, "Message not found", message_id)
        return []

    if ctx.json_output:
        print_json(format_messages(messages))

    export_dir = create_export_dir(ctx.settings.export_dir)
    if not ctx.json_output:
        print(f"Export directory: {export_dir}")

    written = []
    for message in messages:
        written.append(export_message(message, export_dir))
        if not ctx.json_output:
            print(f"Successfully exported message: {message.get('subject') or 'N/A'}")
        ctx.record(
            ACTION_SEARCH_AND_EXPORT, STATUS_SUCCESS, mailbox, "Exported successfully",
            message.get("id") or "N/A",
        )
    return written
