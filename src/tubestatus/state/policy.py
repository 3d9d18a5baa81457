"""Deterministic change detection policy.

Decides whether a freshly polled document is a material change from the
document held by an entity's open interval. This module contains *no*
storage or parsing logic; it only compares JSON trees.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeAlias

Document: TypeAlias = dict[str, Any] | list[Any] | str | int | float | bool | None
"""A JSON value as decoded from the status feed."""


def _is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def _is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _scalars_differ(old: Any, new: Any) -> bool:
    # bool is an int subclass; JSON true must not equal 1.
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is not type(new) or old != new
    return bool(old != new)


def materially_changed(old: Document, new: Document, ignored_keys: frozenset[str] | set[str] = frozenset()) -> bool:
    """Return ``True`` when *new* differs from *old* outside ``ignored_keys``.

    - Objects: key sets are compared after dropping ignored keys, then every
      shared key is compared recursively. Ignored keys are dropped at every
      depth.
    - Arrays: lengths must match and elements are compared positionally;
      the feed is assumed to return entries in a stable order.
    - Scalars: value equality (booleans never equal numbers).
    """
    if _is_object(old) or _is_object(new):
        if not (_is_object(old) and _is_object(new)):
            return True
        assert isinstance(old, Mapping) and isinstance(new, Mapping)  # noqa: S101
        old_keys = {key for key in old if key not in ignored_keys}
        new_keys = {key for key in new if key not in ignored_keys}
        if old_keys != new_keys:
            return True
        return any(materially_changed(old[key], new[key], ignored_keys) for key in old_keys)

    if _is_array(old) or _is_array(new):
        if not (_is_array(old) and _is_array(new)):
            return True
        assert isinstance(old, Sequence) and isinstance(new, Sequence)  # noqa: S101
        if len(old) != len(new):
            return True
        return any(materially_changed(a, b, ignored_keys) for a, b in zip(old, new, strict=True))

    return _scalars_differ(old, new)
