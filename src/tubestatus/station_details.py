"""Lazily loaded, cached station details."""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable

from tubestatus.exceptions import TubeDetailsLoadingError, TubeStatusError
from tubestatus.models.station import StationDetails

_logger = logging.getLogger(__name__)


class LoadState(enum.Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class StationDetailsLoader:
    """Load station details once and serve them from memory.

    While a load is in flight, callers get :class:`TubeDetailsLoadingError`
    instead of waiting. A failed load is retried by the next caller.
    """

    def __init__(self, fetch: Callable[[], Awaitable[dict[str, StationDetails]]]) -> None:
        self._fetch = fetch
        self._state = LoadState.NOT_LOADED
        self._details: dict[str, StationDetails] = {}
        self.last_error: str | None = None

    @property
    def state(self) -> LoadState:
        return self._state

    async def get_details(self) -> dict[str, StationDetails]:
        if self._state is LoadState.LOADED:
            return self._details
        if self._state is LoadState.LOADING:
            raise TubeDetailsLoadingError("Station details are currently loading, please try again later")
        return await self._load()

    async def _load(self) -> dict[str, StationDetails]:
        self._state = LoadState.LOADING
        try:
            details = await self._fetch()
        except TubeStatusError as exc:
            self.last_error = f"Failed to load station details: {exc}"
            _logger.error("%s", self.last_error)
            self._state = LoadState.FAILED
            raise
        except BaseException:
            # Cancellation included: a later caller must be able to retry.
            self._state = LoadState.FAILED
            raise
        _logger.info("Successfully loaded %d station details", len(details))
        self._details = details
        self._state = LoadState.LOADED
        self.last_error = None
        return details
