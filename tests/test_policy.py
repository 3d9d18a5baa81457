from __future__ import annotations

from tubestatus.state.policy import materially_changed

_IGNORED = frozenset({"created", "modified"})


def test_identical_documents_are_not_changed() -> None:
    doc = {"id": "victoria", "lineStatuses": [{"statusSeverity": 10}]}
    assert not materially_changed(doc, {"id": "victoria", "lineStatuses": [{"statusSeverity": 10}]})


def test_ignored_keys_do_not_count_at_any_depth() -> None:
    old = {"id": "victoria", "created": "a", "lineStatuses": [{"statusSeverity": 10, "created": "a"}]}
    new = {"id": "victoria", "created": "b", "lineStatuses": [{"statusSeverity": 10, "created": "b"}]}

    assert not materially_changed(old, new, _IGNORED)
    assert materially_changed(old, new)


def test_ignored_key_present_on_one_side_only() -> None:
    assert not materially_changed({"a": 1}, {"a": 1, "modified": "now"}, _IGNORED)


def test_key_set_difference_is_a_change() -> None:
    assert materially_changed({"a": 1}, {"a": 1, "b": 2})
    assert materially_changed({"a": 1, "b": 2}, {"a": 1})


def test_arrays_compare_positionally() -> None:
    assert materially_changed([1, 2], [2, 1])
    assert materially_changed([1, 2], [1, 2, 3])
    assert not materially_changed([{"x": 1}, {"y": 2}], [{"x": 1}, {"y": 2}])


def test_type_mismatch_is_a_change() -> None:
    assert materially_changed({"a": 1}, [1])
    assert materially_changed([1], "1")
    assert materially_changed({"a": None}, {"a": {}})


def test_booleans_never_equal_numbers() -> None:
    assert materially_changed({"a": True}, {"a": 1})
    assert materially_changed({"a": 0}, {"a": False})
    assert not materially_changed({"a": True}, {"a": True})


def test_int_and_float_with_same_value_are_equal() -> None:
    assert not materially_changed({"a": 1}, {"a": 1.0})
