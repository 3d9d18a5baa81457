"""History queries for the read API.

Turns stored intervals into display spans:

1. validate the requested window (before any storage access)
2. fetch overlapping intervals from the store
3. collapse adjacent intervals whose raw documents are not materially
   different (storage-level run merge)
4. parse each document; unparseable intervals are dropped
5. collapse adjacent intervals whose parsed statuses are equal
   (presentation-level run merge)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from tubestatus._constants import MAX_QUERY_WINDOW
from tubestatus.exceptions import TubeValidationError
from tubestatus.models.history import DisplaySpan, LineHistory, StationHistory
from tubestatus.models.line import LineMetadata, LineStatus, try_parse_line
from tubestatus.models.station import StationStatus, try_parse_station
from tubestatus.state.events import EntityFamily, HistoryInterval
from tubestatus.state.policy import materially_changed
from tubestatus.state.runs import Span, merge_runs
from tubestatus.state.store import IntervalStore

_logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", LineStatus, StationStatus)
MetaT = TypeVar("MetaT")

StatusParser = Callable[[str, Any], tuple[list[EntryT], MetaT] | None]
"""``parse(entity_id, document) -> (entries, metadata) | None``."""


def parse_query_time(value: str | None, *, field: str = "time") -> datetime:
    """Parse an RFC 3339 timestamp from a request into an aware UTC datetime."""
    if value is None or not value.strip():
        raise TubeValidationError(f"Missing {field}")
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise TubeValidationError(f"Invalid {field}: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except (ValueError, OverflowError) as exc:
        raise TubeValidationError(f"Out of range {field}: {value!r}") from exc


def validate_window(start: datetime, end: datetime, max_window: timedelta = MAX_QUERY_WINDOW) -> None:
    if start > end:
        raise TubeValidationError(f"Window start {start.isoformat()} is after its end {end.isoformat()}")
    if end - start > max_window:
        raise TubeValidationError(f"Window of {end - start} exceeds the maximum of {max_window.days} days")


def _chain_ids(intervals: Sequence[HistoryInterval]) -> list[int]:
    """Number the gap-free chains of an entity's intervals.

    A station that recovers and is disrupted again leaves a gap; runs must
    never merge across it.
    """
    ids: list[int] = []
    chain = 0
    previous: HistoryInterval | None = None
    for interval in intervals:
        if previous is not None and previous.end_time != interval.start_time:
            chain += 1
        ids.append(chain)
        previous = interval
    return ids


def collapse_intervals(intervals: Sequence[HistoryInterval], ignored_keys: frozenset[str]) -> list[HistoryInterval]:
    """Merge adjacent intervals whose documents differ only in ignored keys.

    The store never writes such pairs itself, but rows recorded before a
    key joined the ignore-set can still contain them.
    """
    chained = zip(_chain_ids(intervals), intervals, strict=True)
    runs = merge_runs(
        ((Span(i.start_time, i.end_time), (chain, i)) for chain, i in chained),
        lambda a, b: a[0] == b[0] and not materially_changed(a[1].data, b[1].data, ignored_keys),
    )
    return [first.model_copy(update={"end_time": span.end}) for span, (_, first) in runs]


def build_display_history(
    entity_id: str,
    intervals: Sequence[HistoryInterval],
    parser: StatusParser[EntryT, MetaT],
) -> tuple[list[tuple[Span, list[EntryT]]], MetaT | None]:
    """Parse and merge one entity's intervals into display runs.

    Returns ``(span, entries)`` runs and the metadata of the latest
    parseable interval.
    """
    parsed: list[tuple[Span, tuple[int, list[EntryT]]]] = []
    metadata: MetaT | None = None
    for chain, interval in zip(_chain_ids(intervals), intervals, strict=True):
        result = parser(entity_id, interval.data)
        if result is None:
            _logger.warning("Dropping unparseable interval for %s starting %s", entity_id, interval.start_time)
            continue
        entries, metadata = result
        parsed.append((Span(interval.start_time, interval.end_time), (chain, entries)))

    runs = [(span, entries) for span, (_, entries) in merge_runs(parsed)]
    return runs, metadata


async def _fetch_collapsed(
    store: IntervalStore,
    family: EntityFamily,
    start: datetime,
    end: datetime,
    max_window: timedelta,
) -> dict[str, list[HistoryInterval]]:
    validate_window(start, end, max_window)
    raw = await store.range_query(family, start, end)
    ignored = store.ignored_keys(family)
    return {entity_id: collapse_intervals(intervals, ignored) for entity_id, intervals in raw.items()}


async def get_line_history(
    store: IntervalStore,
    start: datetime,
    end: datetime,
    *,
    parser: StatusParser[LineStatus, LineMetadata] = try_parse_line,
    max_window: timedelta = MAX_QUERY_WINDOW,
) -> dict[str, LineHistory]:
    """Status history of every line that has intervals in ``[start, end]``."""
    by_line = await _fetch_collapsed(store, EntityFamily.LINES, start, end, max_window)
    response: dict[str, LineHistory] = {}
    for line_id, intervals in by_line.items():
        runs, metadata = build_display_history(line_id, intervals, parser)
        history = [DisplaySpan[LineStatus](entries=entries, from_=span.start, to=span.end) for span, entries in runs]
        response[line_id] = LineHistory(history=history, metadata=metadata or LineMetadata())
    return response


async def get_station_history(
    store: IntervalStore,
    start: datetime,
    end: datetime,
    *,
    parser: StatusParser[StationStatus, None] = try_parse_station,
    max_window: timedelta = MAX_QUERY_WINDOW,
) -> dict[str, StationHistory]:
    """Disruption history of every station disrupted at some point in ``[start, end]``."""
    by_station = await _fetch_collapsed(store, EntityFamily.STATIONS, start, end, max_window)
    response: dict[str, StationHistory] = {}
    for station_id, intervals in by_station.items():
        runs, _ = build_display_history(station_id, intervals, parser)
        history = [DisplaySpan[StationStatus](entries=entries, from_=span.start, to=span.end) for span, entries in runs]
        response[station_id] = StationHistory(history=history)
    return response
