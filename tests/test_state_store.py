from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import insert

from tubestatus.exceptions import (
    TubeConnectionError,
    TubeQueryError,
    TubeStoreInitError,
    TubeTransactionError,
)
from tubestatus.state.events import EntityFamily
from tubestatus.state.store import _TABLES, IntervalStore

LINES = EntityFamily.LINES
STATIONS = EntityFamily.STATIONS


def at(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=UTC)


async def _all_rows(store: IntervalStore, family: EntityFamily) -> dict[str, list[tuple[int, int | None]]]:
    grouped = await store.range_query(family, at(0), at(10_000_000_000))
    return {
        entity_id: [
            (int(i.start_time.timestamp()), None if i.end_time is None else int(i.end_time.timestamp()))
            for i in intervals
        ]
        for entity_id, intervals in grouped.items()
    }


@pytest.mark.asyncio
async def test_ignored_key_change_keeps_single_open_interval(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, {"A": {"severity": 10}})
        clock.now = 160
        result = await store.transition(LINES, {"A": {"severity": 10, "created": "X"}})

        assert result.unchanged == ("A",)
        assert not result.changed
        assert await _all_rows(store, LINES) == {"A": [(100, None)]}


@pytest.mark.asyncio
async def test_material_change_closes_and_reopens_at_same_instant(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        first = await store.transition(LINES, {"A": {"severity": 10}})
        clock.now = 160
        second = await store.transition(LINES, {"A": {"severity": 2}})

        assert first.opened == ("A",)
        assert second.closed == ("A",)
        assert second.opened == ("A",)
        assert second.timestamp == 160
        assert await _all_rows(store, LINES) == {"A": [(100, 160), (160, None)]}


@pytest.mark.asyncio
async def test_range_query_returns_only_overlapping_intervals(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, {"A": {"severity": 10}})
        clock.now = 160
        await store.transition(LINES, {"A": {"severity": 2}})

        result = await store.range_query(LINES, at(50), at(120))

        assert list(result) == ["A"]
        [interval] = result["A"]
        assert interval.start_time == at(100)
        assert interval.end_time == at(160)
        assert interval.data == {"severity": 10}


@pytest.mark.asyncio
async def test_range_query_boundaries_are_inclusive(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, {"A": {"severity": 10}})
        clock.now = 160
        await store.transition(LINES, {"A": {"severity": 2}})

        ending_at_start = await store.range_query(LINES, at(160), at(200))
        starting_at_end = await store.range_query(LINES, at(0), at(100))
        before_everything = await store.range_query(LINES, at(0), at(99))

    assert [i.start_time for i in ending_at_start["A"]] == [at(100), at(160)]
    assert [i.start_time for i in starting_at_end["A"]] == [at(100)]
    assert before_everything == {}


@pytest.mark.asyncio
async def test_range_query_with_fractional_bounds(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, {"A": {"severity": 10}})
        clock.now = 160
        await store.transition(LINES, {"A": {"severity": 2}})

        after_first_closed = await store.range_query(LINES, at(160) + timedelta(milliseconds=500), at(200))
        before_second_opened = await store.range_query(LINES, at(120), at(160) - timedelta(milliseconds=500))

    assert [i.start_time for i in after_first_closed["A"]] == [at(160)]
    assert [i.start_time for i in before_second_opened["A"]] == [at(100)]


@pytest.mark.asyncio
async def test_absent_station_is_closed_without_replacement(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(STATIONS, {"S": [{"type": "Closure"}], "T": [{"type": "Information"}]})
        clock.now = 160
        result = await store.transition(STATIONS, {"T": [{"type": "Information"}]})
        clock.now = 220
        await store.transition(STATIONS, {"T": [{"type": "Information"}]})

        assert result.closed == ("S",)
        assert result.opened == ()
        assert await _all_rows(store, STATIONS) == {"S": [(100, 160)], "T": [(100, None)]}


@pytest.mark.asyncio
async def test_absent_line_keeps_its_open_interval(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, {"A": {"severity": 10}, "B": {"severity": 10}})
        clock.now = 160
        await store.transition(LINES, {"A": {"severity": 10}})

        assert await _all_rows(store, LINES) == {"A": [(100, None)], "B": [(100, None)]}


@pytest.mark.asyncio
async def test_reappearing_station_opens_new_interval_after_gap(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(STATIONS, {"S": [{"type": "Closure"}]})
        clock.now = 160
        await store.transition(STATIONS, {})
        clock.now = 220
        await store.transition(STATIONS, {"S": [{"type": "Closure"}]})

        assert await _all_rows(store, STATIONS) == {"S": [(100, 160), (220, None)]}


@pytest.mark.asyncio
async def test_repeated_identical_snapshots_are_idempotent(make_store, clock) -> None:
    snapshot = {"A": {"severity": 10}, "B": {"severity": 6, "modified": "x"}}
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, snapshot)
        for step in range(5):
            clock.advance(60)
            result = await store.transition(LINES, snapshot)
            assert not result.changed, step

        assert await _all_rows(store, LINES) == {"A": [(100, None)], "B": [(100, None)]}


@pytest.mark.asyncio
async def test_failed_transition_rolls_back_every_write(make_store, clock) -> None:
    async with make_store() as store:
        clock.now = 100
        await store.transition(LINES, {"A": {"severity": 10}})
        clock.now = 160

        with pytest.raises(TubeTransactionError):
            # A is replaced first, then B cannot be serialized.
            await store.transition(LINES, {"A": {"severity": 2}, "B": {"value": float("nan")}})

        rows = await store.range_query(LINES, at(0), at(1_000))
        assert list(rows) == ["A"]
        assert [(i.start_time, i.end_time, i.data) for i in rows["A"]] == [(at(100), None, {"severity": 10})]


@pytest.mark.asyncio
async def test_undecodable_open_row_is_replaced(make_store, clock) -> None:
    async with make_store() as store:
        assert store._engine is not None
        with store._engine.begin() as conn:
            conn.execute(
                insert(_TABLES[LINES]).values(entity_id="A", start_time=100, end_time=None, data=b"{not json")
            )
        clock.now = 160
        result = await store.transition(LINES, {"A": {"severity": 10}})

        assert result.closed == ("A",)
        assert result.opened == ("A",)
        # The closed row still overlaps wide windows and cannot be decoded.
        with pytest.raises(TubeQueryError):
            await store.range_query(LINES, at(0), at(1_000))
        current = await store.range_query(LINES, at(161), at(1_000))
        assert current["A"][0].data == {"severity": 10}


@pytest.mark.asyncio
async def test_exhausted_pool_raises_connection_error(make_store) -> None:
    async with make_store(pool_size=1, pool_timeout=0.1) as store:
        assert store._engine is not None
        held = store._engine.connect()
        try:
            with pytest.raises(TubeConnectionError):
                await store.transition(LINES, {"A": {"severity": 10}})
            with pytest.raises(TubeConnectionError):
                await store.range_query(LINES, at(0), at(1_000))
        finally:
            held.close()

        result = await store.transition(LINES, {"A": {"severity": 10}})
        assert result.opened == ("A",)


@pytest.mark.asyncio
async def test_uninitialized_store_raises_connection_error(make_store) -> None:
    store = make_store()
    with pytest.raises(TubeConnectionError):
        await store.range_query(LINES, at(0), at(10))


@pytest.mark.asyncio
async def test_unwritable_location_fails_initialization(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = IntervalStore(blocker / "store.db")

    with pytest.raises(TubeStoreInitError):
        await store.initialize()
    assert not store.is_open


@pytest.mark.asyncio
async def test_history_survives_reopen(make_store, clock) -> None:
    clock.now = 100
    async with make_store() as store:
        await store.transition(LINES, {"A": {"severity": 10}})

    clock.now = 160
    async with make_store() as store:
        result = await store.transition(LINES, {"A": {"severity": 10}})
        assert result.unchanged == ("A",)
        assert await _all_rows(store, LINES) == {"A": [(100, None)]}


@pytest.mark.asyncio
async def test_concurrent_writes_and_reads_keep_one_open_interval(make_store, clock) -> None:
    async with make_store(pool_size=3) as store:
        clock.now = 100

        async def write(severity: int) -> None:
            clock.advance(1)
            await store.transition(LINES, {"A": {"severity": severity}, "B": {"severity": 10}})

        async def read() -> None:
            await store.range_query(LINES, at(0), at(10_000))

        await asyncio.gather(*(write(s) for s in (10, 6, 2, 6, 10)), *(read() for _ in range(5)))

        rows = await _all_rows(store, LINES)
        for entity_id, spans in rows.items():
            assert sum(1 for _, end in spans if end is None) == 1, entity_id
            for (_, end), (next_start, _) in zip(spans, spans[1:]):
                assert end == next_start
