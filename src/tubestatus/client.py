"""High-level async client for the TfL status feed."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from tubestatus._api.lines import fetch_line_statuses
from tubestatus._api.stations import fetch_station_details, fetch_station_disruptions
from tubestatus._transport import HttpTransport, Transport
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import TubeStatusError
from tubestatus.models.station import StationDetails

_logger = logging.getLogger(__name__)


class TflClient:
    """Async client for the TfL unified API.

    Usage::

        async with TflClient(config) as client:
            lines = await client.fetch_line_statuses()
    """

    def __init__(
        self,
        config: TubeStatusConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TflClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise TubeStatusError("Client not initialized. Use 'async with TflClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    async def fetch_line_statuses(self) -> dict[str, dict[str, Any]]:
        """Current status document of every line, keyed by line id."""
        return await fetch_line_statuses(self._config, self._require_transport())

    async def fetch_station_disruptions(self) -> dict[str, list[dict[str, Any]]]:
        """Current disruption records, keyed by station code."""
        return await fetch_station_disruptions(self._config, self._require_transport())

    async def fetch_station_details(self) -> dict[str, StationDetails]:
        """Names of every station, keyed by station code."""
        details = await fetch_station_details(self._config, self._require_transport())
        _logger.info("Loaded details for %d stations", len(details))
        return details
