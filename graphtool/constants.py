"""
Shared constants for graphtool.

Centralises Graph endpoints, classification tables and action names so the
classifier, pipeline and handlers agree on the same values.
"""

# ── Microsoft Graph ─────────────────────────────────────────────────────────────
GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"
GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"

# ── Retry ───────────────────────────────────────────────────────────────────────
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 2000
MAX_BACKOFF_SECONDS = 30.0

# HTTP status codes that indicate throttling or a transient service outage
TRANSIENT_STATUS_CODES = frozenset({429, 503, 504})

# Lower-case substrings of error messages raised by flaky networks.
# "timed out" and "name or service not known" are how Python's socket layer
# spells the same conditions.
TRANSIENT_ERROR_PATTERNS = (
    "timeout",
    "connection reset",
    "connection refused",
    "temporary failure",
    "try again",
    "i/o timeout",
    "no such host",
    "network unreachable",
    "network is unreachable",
    "timed out",
    "name or service not known",
)

# OData error codes Graph returns when a caller is throttled
RATE_LIMIT_CODES = frozenset({"TooManyRequests", "activityLimitReached"})
SERVICE_UNAVAILABLE_CODES = frozenset({"ServiceUnavailable", "GatewayTimeout"})

# ── Actions ─────────────────────────────────────────────────────────────────────
ACTION_GET_EVENTS = "getevents"
ACTION_SEND_MAIL = "sendmail"
ACTION_SEND_INVITE = "sendinvite"
ACTION_GET_INBOX = "getinbox"
ACTION_GET_SCHEDULE = "getschedule"
ACTION_EXPORT_INBOX = "exportinbox"
ACTION_SEARCH_AND_EXPORT = "searchandexport"

ACTIONS = (
    ACTION_GET_EVENTS,
    ACTION_SEND_MAIL,
    ACTION_SEND_INVITE,
    ACTION_GET_INBOX,
    ACTION_GET_SCHEDULE,
    ACTION_EXPORT_INBOX,
    ACTION_SEARCH_AND_EXPORT,
)

STATUS_SUCCESS = "Success"
STATUS_ERROR = "Error"
STATUS_DRY_RUN = "DRY RUN"

DEFAULT_SUBJECT = "Automated Tool Notification"
DEFAULT_INVITE_SUBJECT = "It's testing event"

# ── Availability view codes (getSchedule) ───────────────────────────────────────
AVAILABILITY_CODES = {
    "0": "Free",
    "1": "Tentative",
    "2": "Busy",
    "3": "Out of Office",
    "4": "Working Elsewhere",
}
