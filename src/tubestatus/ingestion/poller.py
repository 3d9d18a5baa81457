"""Fixed-interval polling of the status feed into the interval store.

This module owns the poll loop. The feed endpoints live in
:mod:`tubestatus._api` and interval bookkeeping in
:mod:`tubestatus.state.store`; the poller only moves snapshots from one to
the other and keeps going whatever fails.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from tubestatus.exceptions import (
    TubeConnectionError,
    TubeFetchError,
    TubeTransactionError,
)
from tubestatus.state.events import EntityFamily, TransitionResult
from tubestatus.state.store import IntervalStore

_logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    """What the poller needs from the feed client."""

    async def fetch_line_statuses(self) -> Mapping[str, Any]: ...

    async def fetch_station_disruptions(self) -> Mapping[str, Any]: ...


@dataclass(slots=True)
class PollOutcome:
    """Per-family results of one tick.

    A family appears in ``results`` when its transition committed and in
    ``errors`` (with a short classification) when it was skipped.
    """

    results: dict[EntityFamily, TransitionResult] = field(default_factory=dict)
    errors: dict[EntityFamily, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class StatusPoller:
    """Poll every ``interval`` seconds; never stop on a failed tick.

    Ticks never overlap: the next tick is scheduled ``interval`` seconds
    after the previous one *started*, or immediately if it took longer.
    """

    def __init__(
        self,
        source: StatusSource,
        store: IntervalStore,
        *,
        interval: float = 60.0,
        poll_stations: bool = True,
    ) -> None:
        self._source = source
        self._store = store
        self._interval = interval
        self._poll_stations = poll_stations
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background poll task (no-op when already running)."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run_forever(), name="tubestatus-poller")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_forever(self) -> None:
        _logger.info("Polling status feed every %.0fs", self._interval)
        while True:
            started = time.monotonic()
            await self.poll_once()
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self._interval - elapsed))

    async def poll_once(self) -> PollOutcome:
        """Fetch every family concurrently and record each snapshot."""
        outcome = PollOutcome()
        jobs: list[tuple[EntityFamily, Callable[[], Awaitable[Mapping[str, Any]]]]] = [
            (EntityFamily.LINES, self._source.fetch_line_statuses),
        ]
        if self._poll_stations:
            jobs.append((EntityFamily.STATIONS, self._source.fetch_station_disruptions))

        await asyncio.gather(*(self._poll_family(family, fetch, outcome) for family, fetch in jobs))
        self.ticks += 1
        return outcome

    async def _poll_family(
        self,
        family: EntityFamily,
        fetch: Callable[[], Awaitable[Mapping[str, Any]]],
        outcome: PollOutcome,
    ) -> None:
        try:
            snapshot = await fetch()
            result = await self._store.transition(family, snapshot)
        except TubeFetchError as exc:
            _logger.warning("Error reloading %s status: %s", family, exc)
            outcome.errors[family] = "fetch"
        except TubeConnectionError as exc:
            _logger.error("No store connection for %s update: %s", family, exc)
            outcome.errors[family] = "connection"
        except TubeTransactionError as exc:
            _logger.error("Rolled back %s update: %s", family, exc)
            outcome.errors[family] = "transaction"
        except Exception:
            # Anything else still must not end the loop.
            _logger.exception("Unexpected error polling %s", family)
            outcome.errors[family] = "unexpected"
        else:
            outcome.results[family] = result
            _logger.info(
                "Updated %s status: %d opened, %d closed, %d unchanged",
                family,
                len(result.opened),
                len(result.closed),
                len(result.unchanged),
            )
