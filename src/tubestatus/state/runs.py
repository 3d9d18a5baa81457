"""Run-length merging of chronologically ordered spans."""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class Span:
    """A time range; ``end`` is ``None`` while the span is still open."""

    start: datetime
    end: datetime | None = None


def merge_runs(
    items: Iterable[tuple[Span, V]],
    same: Callable[[V, V], bool] = operator.eq,
) -> list[tuple[Span, V]]:
    """Collapse adjacent items whose values are ``same`` into one span.

    *items* must already be in chronological order. A merged span runs
    from the first item's start to the last item's end and keeps the first
    item's value.
    """
    merged: list[tuple[Span, V]] = []
    for span, value in items:
        if merged:
            last_span, last_value = merged[-1]
            if same(last_value, value):
                merged[-1] = (Span(last_span.start, span.end), last_value)
                continue
        merged.append((span, value))
    return merged
