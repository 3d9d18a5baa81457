"""Data models for status feed documents and read API responses."""

from tubestatus.models._base import ApiModel, SeverityEnum, TflBaseModel
from tubestatus.models.history import DisplaySpan, LineHistory, StationHistory
from tubestatus.models.line import (
    LineMetadata,
    LineState,
    LineStatus,
    from_tfl_severity,
    parse_line,
    try_parse_line,
)
from tubestatus.models.station import (
    StationDetails,
    StationState,
    StationStatus,
    from_tfl_disruption_type,
    parse_station,
    try_parse_station,
)

__all__ = [
    "ApiModel",
    "DisplaySpan",
    "LineHistory",
    "LineMetadata",
    "LineState",
    "LineStatus",
    "SeverityEnum",
    "StationDetails",
    "StationHistory",
    "StationState",
    "StationStatus",
    "TflBaseModel",
    "from_tfl_disruption_type",
    "from_tfl_severity",
    "parse_line",
    "parse_station",
    "try_parse_line",
    "try_parse_station",
]
