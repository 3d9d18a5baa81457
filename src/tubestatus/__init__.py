"""tubestatus - Interval-based status history for TfL lines and stations."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tubestatus")
except PackageNotFoundError:
    __version__ = "0+local"
from tubestatus.client import TflClient
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import (
    TubeConfigError,
    TubeConnectionError,
    TubeDetailsLoadingError,
    TubeFetchError,
    TubeParseError,
    TubeQueryError,
    TubeStatusError,
    TubeStoreError,
    TubeStoreInitError,
    TubeTransactionError,
    TubeValidationError,
)
from tubestatus.ingestion.poller import PollOutcome, StatusPoller
from tubestatus.models import (
    DisplaySpan,
    LineHistory,
    LineMetadata,
    LineState,
    LineStatus,
    StationDetails,
    StationHistory,
    StationState,
    StationStatus,
)
from tubestatus.query import get_line_history, get_station_history
from tubestatus.state.events import EntityFamily, HistoryInterval, TransitionResult
from tubestatus.state.policy import materially_changed
from tubestatus.state.runs import Span, merge_runs
from tubestatus.state.store import IntervalStore

__all__ = [
    "__version__",
    "DisplaySpan",
    "EntityFamily",
    "HistoryInterval",
    "IntervalStore",
    "LineHistory",
    "LineMetadata",
    "LineState",
    "LineStatus",
    "PollOutcome",
    "Span",
    "StationDetails",
    "StationHistory",
    "StationState",
    "StationStatus",
    "StatusPoller",
    "TflClient",
    "TransitionResult",
    "TubeConfigError",
    "TubeConnectionError",
    "TubeDetailsLoadingError",
    "TubeFetchError",
    "TubeParseError",
    "TubeQueryError",
    "TubeStatusConfig",
    "TubeStatusError",
    "TubeStoreError",
    "TubeStoreInitError",
    "TubeTransactionError",
    "TubeValidationError",
    "get_line_history",
    "get_station_history",
    "materially_changed",
    "merge_runs",
]
