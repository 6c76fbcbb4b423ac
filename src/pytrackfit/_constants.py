"""Internal constants shared across the library."""

UDM_BASE_URL = "https://api.ireps.gov.in/v1"
TMS_BASE_URL = "https://api.irecept.gov.in/v1"
UPLOAD_PATH = "/track-fittings/sync"
USER_AGENT = "pytrackfit/0.3"

UDM_ENDPOINT = "udm"
TMS_ENDPOINT = "tms"

# ------------------------------------------------------------------
# Local store key layout
# ------------------------------------------------------------------

ENTRY_KEY_PREFIX = "tracking_"
CACHE_KEY_PREFIX = "cache_"
QUEUE_KEY = "sync_queue"
AUTH_TOKEN_KEY = "authToken"

# HTTP statuses that indicate a temporary server-side condition.
RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 425, 429})
AUTH_STATUSES: frozenset[int] = frozenset({401, 403})

# ------------------------------------------------------------------
# Track fitting type codes (first QR segment)
# ------------------------------------------------------------------

FITTING_TYPES: dict[str, str] = {
    "RC": "Elastic Rail Clip",
    "LN": "Liner",
    "RP": "Rail Pad",
    "SL": "Sleeper",
}

ACTIVITY_TIMEFRAMES: tuple[str, ...] = ("day", "week", "month")
