"""
Enrichment of Microsoft Graph errors for operator-facing messages.

Graph signals throttling with OData codes such as TooManyRequests and may
include a Retry-After header. enrich_graph_error() turns those into errors
that name the operation and the hint. The result always keeps the original
error as __cause__ so it can still be classified.

The Retry-After hint is informational only; the retry schedule is not
changed by it.
"""

import logging

from ..constants import RATE_LIMIT_CODES, SERVICE_UNAVAILABLE_CODES
from ..exceptions import (
    GraphAPIError,
    RateLimitExceededError,
    ServiceTemporarilyUnavailableError,
)
from ..utils.classifier import iter_causes

logger = logging.getLogger(__name__)


def find_graph_error(error: BaseException | None) -> GraphAPIError | None:
    """Return the first GraphAPIError in the error's cause chain."""
    for err in iter_causes(error):
        if isinstance(err, GraphAPIError):
            return err
    return None


def enrich_graph_error(error: BaseException, operation: str) -> BaseException:
    """
    Wrap throttling and outage errors with a descriptive message.

    Returns a new RateLimitExceededError or ServiceTemporarilyUnavailableError
    chained to ``error``, or ``error`` itself when no enrichment applies.
    """
    graph_error = find_graph_error(error)
    if graph_error is None or not graph_error.code:
        return error

    code = graph_error.code

    if code in RATE_LIMIT_CODES:
        logger.warning("Graph API rate limit exceeded during %s (code: %s)", operation, code)
        retry_after = graph_error.retry_after
        if retry_after:
            logger.info(
                "Rate limit retry guidance available: retry after %s seconds", retry_after
            )
        enriched: BaseException = RateLimitExceededError(operation, code, retry_after)
        enriched.__cause__ = error
        return enriched

    if code in SERVICE_UNAVAILABLE_CODES:
        logger.warning(
            "Graph API service error during %s (code: %s, message: %s)",
            operation, code, graph_error.message,
        )
        enriched = ServiceTemporarilyUnavailableError(operation, code)
        enriched.__cause__ = error
        return enriched

    logger.debug(
        "Graph API error during %s (code: %s, message: %s)",
        operation, code, graph_error.message,
    )
    return error
