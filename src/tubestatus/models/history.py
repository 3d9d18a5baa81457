"""Read API response models."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import Field

from tubestatus.models._base import ApiModel
from tubestatus.models.line import LineMetadata, LineStatus
from tubestatus.models.station import StationStatus

EntryT = TypeVar("EntryT", bound=ApiModel)


class DisplaySpan(ApiModel, Generic[EntryT]):
    """A merged run of identical parsed statuses.

    ``to`` is ``None`` while the run is still current.
    """

    entries: list[EntryT]
    from_: datetime = Field(..., alias="from")
    to: datetime | None = None


class LineHistory(ApiModel):
    history: list[DisplaySpan[LineStatus]] = Field(default_factory=list)
    metadata: LineMetadata = Field(default_factory=LineMetadata)


class StationHistory(ApiModel):
    history: list[DisplaySpan[StationStatus]] = Field(default_factory=list)
