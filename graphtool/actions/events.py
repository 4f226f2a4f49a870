"""
Calendar actions: list upcoming events and create an invitation.
"""

import logging
from datetime import datetime, timedelta, timezone

from ..constants import (
    ACTION_GET_EVENTS,
    ACTION_SEND_INVITE,
    DEFAULT_INVITE_SUBJECT,
    DEFAULT_SUBJECT,
    STATUS_DRY_RUN,
    STATUS_ERROR,
    STATUS_SUCCESS,
)
from ..graph.client import user_path
from ..output import format_events, print_json
from ..utils.timeparse import format_rfc3339, parse_flexible_time
from .context import ActionContext

logger = logging.getLogger(__name__)


async def list_events(ctx: ActionContext) -> list[dict]:
    """GET /users/{mailbox}/events?$top=N and print the results."""
    mailbox = ctx.mailbox
    count = ctx.settings.count
    logger.debug("Calling Graph API: GET /users/%s/events?$top=%d", mailbox, count)
    data = await ctx.pipeline.run(
        "listEvents",
        lambda: ctx.pipeline.client.get(user_path(mailbox, "events"), params={"$top": count}),
    )
    events = data.get("value", [])
    logger.debug("API response received: %d events", len(events))

    if ctx.json_output:
        print_json(format_events(events))
    else:
        print(f"Upcoming events for {mailbox}:")
        if not events:
            print("No events found.")
        else:
            for event in events:
                print(f"- {event.get('subject') or 'N/A'} (ID: {event.get('id') or 'N/A'})")
            print(f"\nTotal events retrieved: {len(events)}")

    if not events:
        ctx.record(ACTION_GET_EVENTS, STATUS_SUCCESS, mailbox, "No events found (0 events)", "N/A")
    else:
        for event in events:
            ctx.record(
                ACTION_GET_EVENTS, STATUS_SUCCESS, mailbox,
                event.get("subject") or "N/A", event.get("id") or "N/A",
            )
        ctx.record(
            ACTION_GET_EVENTS, STATUS_SUCCESS, mailbox,
            f"Retrieved {len(events)} event(s)", "SUMMARY",
        )
    return events


def invite_subject(subject: str, override: str = "") -> str:
    """Pick the invite subject; the generic mail default becomes the invite default."""
    chosen = override or subject
    if not chosen or chosen == DEFAULT_SUBJECT:
        return DEFAULT_INVITE_SUBJECT
    return chosen


def resolve_invite_window(
    start_raw: str, end_raw: str, *, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """
    Parse the invite window. A missing or unparseable start falls back to now,
    a missing or unparseable end to start + 1 hour; fallbacks log a warning.
    """
    current = now or datetime.now(timezone.utc)

    start = current
    if start_raw:
        try:
            start = parse_flexible_time(start_raw)
        except ValueError as e:
            logger.warning("Error parsing start time: %s. Using current time instead.", e)

    end = start + timedelta(hours=1)
    if end_raw:
        try:
            end = parse_flexible_time(end_raw)
        except ValueError as e:
            logger.warning("Error parsing end time: %s. Using start + 1 hour instead.", e)
    return start, end


async def create_invite(ctx: ActionContext, *, now: datetime | None = None) -> dict:
    """POST /users/{mailbox}/events with a one-off UTC event."""
    mailbox = ctx.mailbox
    subject = invite_subject(ctx.settings.subject, ctx.settings.invite_subject)
    start, end = resolve_invite_window(ctx.settings.start_time, ctx.settings.end_time, now=now)
    start_text, end_text = format_rfc3339(start), format_rfc3339(end)

    payload = {
        "subject": subject,
        "start": {"dateTime": start_text, "timeZone": "UTC"},
        "end": {"dateTime": end_text, "timeZone": "UTC"},
    }
    if ctx.settings.whatif:
        rule = "=" * 40
        print(rule)
        print("WHATIF MODE - DRY RUN (Calendar invite NOT created)")
        print(rule)
        print(f"Mailbox: {mailbox}")
        print(f"Subject: {subject}")
        print(f"Start Time: {start.astimezone(timezone.utc):%Y-%m-%d %H:%M:%S} UTC")
        print(f"End Time: {end.astimezone(timezone.utc):%Y-%m-%d %H:%M:%S} UTC")
        print(f"Duration: {end - start}")
        print(rule)
        logger.debug("WhatIf mode enabled - calendar invite preview displayed, API call skipped")
        ctx.record(
            ACTION_SEND_INVITE, STATUS_DRY_RUN, mailbox, subject, start_text, end_text, "N/A",
        )
        return {}

    logger.debug("Calling Graph API: POST /users/%s/events", mailbox)
    logger.debug("Calendar invite - Subject: %s, Start: %s, End: %s", subject, start_text, end_text)

    try:
        # not retried: a repeated POST would create a duplicate event
        created = await ctx.pipeline.run(
            "createInvite",
            lambda: ctx.pipeline.client.post(user_path(mailbox, "events"), json=payload),
            retry=False,
        )
    except Exception as e:
        ctx.record(
            ACTION_SEND_INVITE, f"{STATUS_ERROR}: {e}", mailbox, subject, start_text, end_text, "N/A",
        )
        raise

    event_id = created.get("id") or "N/A"
    logger.debug("Calendar event created, ID: %s", event_id)
    print(f"Calendar invitation created in mailbox: {mailbox}")
    print(f"Subject: {subject}")
    print(f"Start: {start.astimezone(timezone.utc):%Y-%m-%d %H:%M:%S} UTC")
    print(f"End: {end.astimezone(timezone.utc):%Y-%m-%d %H:%M:%S} UTC")
    print(f"Event ID: {event_id}")

    ctx.record(ACTION_SEND_INVITE, STATUS_SUCCESS, mailbox, subject, start_text, end_text, event_id)
    return created
