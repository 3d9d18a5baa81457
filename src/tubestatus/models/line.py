"""Line status documents and their parsed form."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from tubestatus.exceptions import TubeParseError
from tubestatus.models._base import ApiModel, SeverityEnum, TflBaseModel

_logger = logging.getLogger(__name__)


class LineState(SeverityEnum):
    """Line status, most severe first."""

    SUSPENDED = "Suspended"
    PART_SUSPENDED = "PartSuspended"
    PLANNED_CLOSURE = "PlannedClosure"
    PART_CLOSURE = "PartClosure"
    SERVICE_CLOSED = "ServiceClosed"
    SEVERE_DELAYS = "SevereDelays"
    REDUCED_SERVICE = "ReducedService"
    MINOR_DELAYS = "MinorDelays"
    GOOD_SERVICE = "GoodService"
    OTHER = "Other"


# TfL ``statusSeverity`` codes. Codes without an entry (closed, bus service,
# exit only, no step free access, ...) are reported as OTHER.
_SEVERITY_CODES: dict[int, LineState] = {
    0: LineState.REDUCED_SERVICE,  # special service
    2: LineState.SUSPENDED,
    3: LineState.PART_SUSPENDED,
    4: LineState.PLANNED_CLOSURE,
    5: LineState.PART_CLOSURE,
    6: LineState.SEVERE_DELAYS,
    7: LineState.REDUCED_SERVICE,
    9: LineState.MINOR_DELAYS,
    10: LineState.GOOD_SERVICE,
    20: LineState.SERVICE_CLOSED,
}


def from_tfl_severity(status_severity: int) -> LineState:
    return _SEVERITY_CODES.get(status_severity, LineState.OTHER)


class TflLineStatus(TflBaseModel):
    status_severity: int
    reason: str | None = None


class TflLine(TflBaseModel):
    line_statuses: list[TflLineStatus]
    mode_name: str


class LineStatus(ApiModel):
    """One parsed status of a line; a line may report several at once."""

    status: LineState
    reason: str | None = None


class LineMetadata(ApiModel):
    mode: str | None = None


def parse_line(line_id: str, document: Any) -> tuple[list[LineStatus], LineMetadata]:
    """Parse a raw line document into its statuses (most severe first).

    Raises :class:`TubeParseError` when the document has an unrecognised shape.
    """
    try:
        line = TflLine.model_validate(document)
    except ValidationError as exc:
        raise TubeParseError(f"Error parsing TfL status for line {line_id}: {exc}", entity_id=line_id) from exc

    statuses = [LineStatus(status=from_tfl_severity(s.status_severity), reason=s.reason) for s in line.line_statuses]
    statuses.sort(key=lambda s: s.status.severity)
    return statuses, LineMetadata(mode=line.mode_name)


def try_parse_line(line_id: str, document: Any) -> tuple[list[LineStatus], LineMetadata] | None:
    """Like :func:`parse_line` but logs and returns ``None`` on failure."""
    try:
        return parse_line(line_id, document)
    except TubeParseError as exc:
        _logger.warning("%s", exc)
        return None

