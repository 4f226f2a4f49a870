"""
Action handlers. Each takes an ActionContext and performs its Graph calls
through the context's OperationPipeline.
"""

from typing import Awaitable, Callable

from ..constants import (
    ACTION_EXPORT_INBOX,
    ACTION_GET_EVENTS,
    ACTION_GET_INBOX,
    ACTION_GET_SCHEDULE,
    ACTION_SEARCH_AND_EXPORT,
    ACTION_SEND_INVITE,
    ACTION_SEND_MAIL,
)
from ..exceptions import ConfigurationError
from .context import ActionContext
from .events import create_invite, list_events
from .mail import export_inbox, list_inbox, search_and_export, send_mail
from .schedule import check_availability

HANDLERS: dict[str, Callable[[ActionContext], Awaitable[object]]] = {
    ACTION_GET_EVENTS: list_events,
    ACTION_SEND_MAIL: send_mail,
    ACTION_SEND_INVITE: create_invite,
    ACTION_GET_INBOX: list_inbox,
    ACTION_GET_SCHEDULE: check_availability,
    ACTION_EXPORT_INBOX: export_inbox,
    ACTION_SEARCH_AND_EXPORT: search_and_export,
}


async def execute_action(ctx: ActionContext) -> object:
    """Run the handler for ``ctx.settings.action``."""
    handler = HANDLERS.get(ctx.settings.action)
    if handler is None:
        raise ConfigurationError(f"unknown action: {ctx.settings.action}")
    return await handler(ctx)


__all__ = [
    "HANDLERS",
    "ActionContext",
    "check_availability",
    "create_invite",
    "execute_action",
    "export_inbox",
    "list_events",
    "list_inbox",
    "search_and_export",
    "send_mail",
]
