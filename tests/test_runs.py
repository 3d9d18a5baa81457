from __future__ import annotations

from datetime import UTC, datetime

from tubestatus.state.runs import Span, merge_runs


def at(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=UTC)


def test_adjacent_equal_values_merge_and_keep_first_value() -> None:
    items = [
        (Span(at(0), at(10)), "good"),
        (Span(at(10), at(20)), "good"),
        (Span(at(20), None), "good"),
    ]

    assert merge_runs(items) == [(Span(at(0), None), "good")]


def test_different_values_stay_separate() -> None:
    items = [
        (Span(at(0), at(10)), "good"),
        (Span(at(10), at(20)), "minor"),
        (Span(at(20), at(30)), "good"),
    ]

    assert merge_runs(items) == items


def test_custom_predicate_is_used() -> None:
    items = [
        (Span(at(0), at(10)), {"v": 1, "t": "a"}),
        (Span(at(10), at(20)), {"v": 1, "t": "b"}),
    ]

    merged = merge_runs(items, lambda a, b: a["v"] == b["v"])

    assert merged == [(Span(at(0), at(20)), {"v": 1, "t": "a"})]


def test_empty_input() -> None:
    assert merge_runs([]) == []
