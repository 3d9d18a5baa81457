"""Entity families and the interval records persisted for them.

Every poll result is reduced to one of these shapes before it reaches the
store; only the store layer is allowed to open or close intervals.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityFamily(StrEnum):
    LINES = "lines"
    STATIONS = "stations"

    @property
    def table_name(self) -> str:
        return {EntityFamily.LINES: "line_history", EntityFamily.STATIONS: "station_history"}[self]

    @property
    def closes_on_absence(self) -> bool:
        """Whether an entity missing from a snapshot has its interval closed.

        Lines always report some status, so a missing line is a feed
        glitch rather than a state. Stations only appear while disrupted.
        """
        return self is EntityFamily.STATIONS


class HistoryInterval(BaseModel):
    """``entity_id`` held ``data`` from ``start_time`` until ``end_time`` (or now)."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    start_time: datetime
    end_time: datetime | None = None
    data: Any = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class TransitionResult(BaseModel):
    """Entity ids touched by one store transition."""

    model_config = ConfigDict(frozen=True)

    family: EntityFamily
    timestamp: int = Field(..., description="Unix seconds used for every row written")
    opened: tuple[str, ...] = ()
    closed: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.opened or self.closed)
