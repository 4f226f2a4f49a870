"""
Output helpers: JSON rendering of Graph resources and availability codes.

Graph responses arrive as plain JSON dicts; these functions pick the fields
worth showing and flatten the nested emailAddress objects.
"""

import json
import sys
from typing import Any, TextIO

from .constants import AVAILABILITY_CODES
from .utils.timeparse import format_rfc3339, parse_flexible_time


def print_json(data: Any, stream: TextIO | None = None) -> None:
    """Write ``data`` as indented JSON followed by a newline (stdout by default)."""
    out = stream or sys.stdout
    out.write(json.dumps(data, indent=2, ensure_ascii=False, default=str))
    out.write("\n")


def email_address(value: dict | None) -> dict[str, str]:
    """Flatten a Graph ``{"emailAddress": {...}}`` wrapper to ``{name, address}``."""
    addr = (value or {}).get("emailAddress") or {}
    result = {}
    if addr.get("name"):
        result["name"] = addr["name"]
    if addr.get("address"):
        result["address"] = addr["address"]
    return result


def recipients(values: list[dict] | None) -> list[dict[str, str]]:
    return [email_address(r) for r in values or [] if r.get("emailAddress")]


def address_list(values: list[dict] | None) -> list[str]:
    return [a["address"] for a in recipients(values) if a.get("address")]


def received_display(value: str | None) -> str:
    """Render a Graph timestamp as ``YYYY-MM-DD HH:MM:SS`` (N/A when absent)."""
    if not value:
        return "N/A"
    try:
        return parse_flexible_time(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def _rfc3339(value: str) -> str:
    try:
        return format_rfc3339(parse_flexible_time(value))
    except ValueError:
        return value


def format_events(events: list[dict]) -> list[dict[str, Any]]:
    output = []
    for event in events:
        item: dict[str, Any] = {}
        if event.get("id"):
            item["id"] = event["id"]
        if event.get("subject") is not None:
            item["subject"] = event["subject"]
        if (event.get("start") or {}).get("dateTime"):
            item["start"] = event["start"]["dateTime"]
        if (event.get("end") or {}).get("dateTime"):
            item["end"] = event["end"]["dateTime"]
        if event.get("organizer"):
            item["organizer"] = email_address(event["organizer"])
        output.append(item)
    return output


def format_messages(messages: list[dict]) -> list[dict[str, Any]]:
    output = []
    for message in messages:
        item: dict[str, Any] = {}
        if message.get("id"):
            item["id"] = message["id"]
        if message.get("subject") is not None:
            item["subject"] = message["subject"]
        if message.get("receivedDateTime"):
            item["receivedDateTime"] = _rfc3339(message["receivedDateTime"])
        if message.get("from"):
            item["from"] = email_address(message["from"])
        if message.get("toRecipients") is not None:
            item["toRecipients"] = recipients(message["toRecipients"])
        output.append(item)
    return output


def format_schedule(schedules: list[dict]) -> list[dict[str, Any]]:
    output = []
    for schedule in schedules:
        item: dict[str, Any] = {}
        if schedule.get("scheduleId"):
            item["scheduleId"] = schedule["scheduleId"]
        view = schedule.get("availabilityView")
        if view is not None:
            item["availabilityView"] = view
            item["availabilityStatus"] = interpret_availability(view)
        hours = schedule.get("workingHours")
        if hours:
            item["workingHours"] = {
                k: hours[k] for k in ("startTime", "endTime") if hours.get(k)
            }
        output.append(item)
    return output


def message_export(message: dict) -> dict[str, Any]:
    """The subset of a message written to disk by the export actions."""
    data: dict[str, Any] = {}
    for key in ("id", "internetMessageId", "subject"):
        if message.get(key) is not None:
            data[key] = message[key]
    if message.get("receivedDateTime"):
        data["receivedDateTime"] = _rfc3339(message["receivedDateTime"])
    if message.get("from"):
        data["from"] = email_address(message["from"])
    for source, target in (("toRecipients", "to"), ("ccRecipients", "cc"), ("bccRecipients", "bcc")):
        if message.get(source) is not None:
            data[target] = recipients(message[source])
    body = message.get("body")
    if body:
        data["body"] = {
            k: body[k] for k in ("contentType", "content") if body.get(k) is not None
        }
    return data


def interpret_availability(view: str) -> str:
    """Map the first slot of a getSchedule availability view to a status."""
    if not view:
        return "Unknown (empty response)"
    code = view[0]
    return AVAILABILITY_CODES.get(code, f"Unknown ({code})")
