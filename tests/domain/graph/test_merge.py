from __future__ import annotations

import pytest

from wavesync.domain.graph import deep_merge, merge_layers, parse_duration


def test_deep_merge_recurses_into_mappings_and_replaces_lists() -> None:
    base = {"syncPolicy": {"automated": True, "retry": {"limit": 5}}, "tags": ["a", "b"]}
    override = {"syncPolicy": {"retry": {"limit": 1}}, "tags": ["c"]}

    merged = deep_merge(base, override)

    assert merged == {"syncPolicy": {"automated": True, "retry": {"limit": 1}}, "tags": ["c"]}
    assert base["syncPolicy"]["retry"] == {"limit": 5}


def test_merge_layers_applies_later_layers_last() -> None:
    merged = merge_layers({"a": 1, "b": 1}, None, {"b": 2}, {}, {"b": 3, "c": 3})

    assert merged == {"a": 1, "b": 3, "c": 3}


@pytest.mark.parametrize(
    ("value", "seconds"),
    [("5s", 5.0), ("3m", 180.0), ("1h", 3600.0), ("250ms", 0.25), ("7", 7.0), (2, 2.0)],
)
def test_parse_duration(value: object, seconds: float) -> None:
    assert parse_duration(value) == seconds


@pytest.mark.parametrize("value", ["soon", "-1s", True, -3])
def test_parse_duration_rejects_invalid_values(value: object) -> None:
    with pytest.raises(ValueError, match="Duration|duration"):
        parse_duration(value)
