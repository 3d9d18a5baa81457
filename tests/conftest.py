from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from tubestatus.state.events import EntityFamily
from tubestatus.state.store import IntervalStore


class FakeClock:
    """Settable wall clock measured in unix seconds."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=UTC)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store(tmp_path: Path, clock: FakeClock):
    def _make(**kwargs: object) -> IntervalStore:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault(
            "ignored_keys",
            {
                EntityFamily.LINES: frozenset({"created", "modified"}),
                EntityFamily.STATIONS: frozenset({"created", "lastUpdate"}),
            },
        )
        return IntervalStore(tmp_path / "store" / "store.db", **kwargs)  # type: ignore[arg-type]

    return _make
