"""Station disruption and station details endpoints."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from tubestatus._constants import station_details_path, station_disruption_path
from tubestatus._transport import Transport
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import TubeFetchError
from tubestatus.models.station import StationDetails, TflStopPoint

_logger = logging.getLogger(__name__)


def _station_key(record: dict[str, Any]) -> str | None:
    for key in ("stationAtcoCode", "atcoCode"):
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return None


async def fetch_station_disruptions(
    config: TubeStatusConfig,
    transport: Transport,
) -> dict[str, list[dict[str, Any]]]:
    """Fetch current disruption records grouped by station.

    Only disrupted stations appear in the result; records keep feed order.
    """
    endpoint = station_disruption_path(config.modes)
    decoded = await transport.get_json(endpoint)
    if not isinstance(decoded, list):
        raise TubeFetchError(f"Expected a list of disruptions from {endpoint}", endpoint=endpoint)

    grouped: dict[str, list[dict[str, Any]]] = {}
    for record in decoded:
        station_id = _station_key(record) if isinstance(record, dict) else None
        if station_id is None:
            _logger.debug("Skipping disruption without station code from %s", endpoint)
            continue
        grouped.setdefault(station_id, []).append(record)
    return grouped


async def fetch_station_details(config: TubeStatusConfig, transport: Transport) -> dict[str, StationDetails]:
    """Fetch names of every station served by the configured modes."""
    endpoint = station_details_path(config.modes)
    decoded = await transport.get_json(endpoint)
    items = decoded.get("stopPoints") if isinstance(decoded, dict) else decoded
    if not isinstance(items, list):
        raise TubeFetchError(f"Expected stop points from {endpoint}", endpoint=endpoint)

    details: dict[str, StationDetails] = {}
    for item in items:
        try:
            stop_point = TflStopPoint.model_validate(item)
        except ValidationError:
            _logger.debug("Skipping unparseable stop point from %s", endpoint)
            continue
        station_id = stop_point.station_id
        if station_id is None or stop_point.common_name is None or station_id in details:
            continue
        details[station_id] = StationDetails(id=station_id, name=stop_point.common_name)
    return details
