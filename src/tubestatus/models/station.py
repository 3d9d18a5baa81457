"""Station disruption documents and their parsed form."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from tubestatus.exceptions import TubeParseError
from tubestatus.models._base import ApiModel, SeverityEnum, TflBaseModel

_logger = logging.getLogger(__name__)


class StationState(SeverityEnum):
    """Station disruption type, most severe first."""

    CLOSURE = "Closure"
    PART_CLOSURE = "PartClosure"
    INTERCHANGE_MESSAGE = "InterchangeMessage"
    INFORMATION = "Information"
    OTHER = "Other"


def from_tfl_disruption_type(value: str) -> StationState:
    # The feed mixes "Part Closure" and "PartClosure" style spellings.
    compact = "".join(value.split()).lower()
    for member in StationState:
        if member.value.lower() == compact:
            return member
    return StationState.OTHER


class TflStationDisruption(TflBaseModel):
    type: str
    description: str | None = None
    common_name: str | None = None


_DISRUPTIONS = TypeAdapter(list[TflStationDisruption])


class StationStatus(ApiModel):
    """One parsed disruption of a station."""

    status: StationState
    description: str | None = None


def parse_station(station_id: str, document: Any) -> list[StationStatus]:
    """Parse a station's disruption records (most severe first).

    Raises :class:`TubeParseError` when the document has an unrecognised shape.
    """
    try:
        disruptions = _DISRUPTIONS.validate_python(document)
    except ValidationError as exc:
        raise TubeParseError(
            f"Error parsing TfL disruptions for station {station_id}: {exc}",
            entity_id=station_id,
        ) from exc

    statuses = [
        StationStatus(status=from_tfl_disruption_type(d.type), description=d.description) for d in disruptions
    ]
    statuses.sort(key=lambda s: s.status.severity)
    return statuses


def try_parse_station(station_id: str, document: Any) -> tuple[list[StationStatus], None] | None:
    """Like :func:`parse_station` but logs and returns ``None`` on failure.

    Returns the same ``(entries, metadata)`` shape as the line parser;
    stations carry no metadata.
    """
    try:
        return parse_station(station_id, document), None
    except TubeParseError as exc:
        _logger.warning("%s", exc)
        return None


class StationDetails(ApiModel):
    """Descriptive record of a station, not versioned historically."""

    id: str
    name: str


class TflStopPoint(TflBaseModel):
    naptan_id: str | None = None
    station_naptan: str | None = None
    common_name: str | None = None

    @property
    def station_id(self) -> str | None:
        return self.station_naptan or self.naptan_id
