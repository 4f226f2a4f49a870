"""Free/busy check for a recipient on the next working day at noon UTC."""

import logging
from datetime import datetime, timedelta, timezone

from ..constants import ACTION_GET_SCHEDULE, STATUS_ERROR, STATUS_SUCCESS
from ..exceptions import GraphToolError
from ..graph.client import user_path
from ..output import format_schedule, interpret_availability, print_json
from ..utils.timeparse import add_working_days, format_rfc3339
from .context import ActionContext

logger = logging.getLogger(__name__)

AVAILABILITY_INTERVAL_MINUTES = 60


def check_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """12:00-13:00 UTC on the next working day after ``now``."""
    current = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    day = add_working_days(current, 1)
    start = day.replace(hour=12, minute=0, second=0, microsecond=0)
    return start, start + timedelta(hours=1)


async def check_availability(ctx: ActionContext, *, now: datetime | None = None) -> str:
    """
    POST /users/{mailbox}/calendar/getSchedule for the recipient and return
    the interpreted status of the first slot.

    Raises GraphToolError when Graph returns no schedule or an empty view.
    """
    mailbox = ctx.mailbox
    recipient = ctx.settings.recipient
    start, end = check_window(now)
    check_text = format_rfc3339(start)
    logger.debug(
        "Checking availability for %s on %s (12:00-13:00 UTC)", recipient, f"{start:%Y-%m-%d}",
    )

    payload = {
        "schedules": [recipient],
        "startTime": {"dateTime": check_text, "timeZone": "UTC"},
        "endTime": {"dateTime": format_rfc3339(end), "timeZone": "UTC"},
        "availabilityViewInterval": AVAILABILITY_INTERVAL_MINUTES,
    }
    logger.debug("Calling Graph API: POST /users/%s/calendar/getSchedule", mailbox)
    try:
        data = await ctx.pipeline.run(
            "checkAvailability",
            lambda: ctx.pipeline.client.post(
                user_path(mailbox, "calendar", "getSchedule"), json=payload
            ),
        )
    except Exception as e:
        ctx.record(ACTION_GET_SCHEDULE, f"{STATUS_ERROR}: {e}", mailbox, recipient, check_text, "N/A")
        raise

    schedules = data.get("value", [])
    if not schedules:
        ctx.record(
            ACTION_GET_SCHEDULE, f"{STATUS_ERROR}: no schedule information returned",
            mailbox, recipient, check_text, "N/A",
        )
        raise GraphToolError("no schedule information returned")

    view = schedules[0].get("availabilityView") or ""
    if not view:
        ctx.record(
            ACTION_GET_SCHEDULE, f"{STATUS_ERROR}: empty availability view returned",
            mailbox, recipient, check_text, "N/A",
        )
        raise GraphToolError("empty availability view returned")

    status = interpret_availability(view)
    if ctx.json_output:
        print_json(format_schedule(schedules))
    else:
        rule = "━" * 44
        print("Availability Check Results:")
        print(rule)
        print(f"Organizer:     {mailbox}")
        print(f"Recipient:     {recipient}")
        print(f"Check Date:    {start:%Y-%m-%d}")
        print("Check Time:    12:00-13:00 UTC")
        print(f"Status:        {status}")
        print(rule + "\n")

    logger.debug("Availability view: %s -> %s", view, status)
    ctx.record(ACTION_GET_SCHEDULE, STATUS_SUCCESS, mailbox, recipient, check_text, view)
    return status
