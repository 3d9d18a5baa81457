"""Internal constants shared across the library."""

from datetime import timedelta

BASE_URL = "https://api.tfl.gov.uk"
USER_AGENT = "tubestatus/1 (+aiohttp)"
DEFAULT_MODES: tuple[str, ...] = ("tube", "dlr", "overground", "elizabeth-line")

DEFAULT_DATABASE_PATH = "./store/store.db"
DEFAULT_POOL_SIZE = 5
DEFAULT_POOL_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 60.0

#: Widest window a history query may span.
MAX_QUERY_DAYS = 32
MAX_QUERY_WINDOW = timedelta(days=MAX_QUERY_DAYS)

# Server-stamped fields that change on every response without the status
# itself changing.
LINE_IGNORED_KEYS: frozenset[str] = frozenset({"created", "modified"})
STATION_IGNORED_KEYS: frozenset[str] = frozenset({"created", "lastUpdate"})


def line_status_path(modes: tuple[str, ...]) -> str:
    return f"/Line/Mode/{','.join(modes)}/Status"


def station_disruption_path(modes: tuple[str, ...]) -> str:
    return f"/StopPoint/Mode/{','.join(modes)}/Disruption"


def station_details_path(modes: tuple[str, ...]) -> str:
    return f"/StopPoint/Mode/{','.join(modes)}"
