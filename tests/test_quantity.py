"""Tests for resource quantity parsing."""

from __future__ import annotations

import pytest

from meshplane.workloads.quantity import format_bytes, format_cpu, parse_quantity


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0.1", 0.1),
        ("2048", 2048.0),
        (3, 3.0),
        ("500m", 0.5),
        ("2Ki", 2048.0),
        ("1Gi", 1024.0 ** 3),
        ("2k", 2000.0),
        ("1M", 1e6),
    ],
)
def test_parse_quantity(raw, expected) -> None:
    assert parse_quantity(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "abc", "1Zi", True, "nan"])
def test_parse_quantity_rejects_garbage(raw) -> None:
    with pytest.raises(ValueError):
        parse_quantity(raw)


def test_format_round_trips_plain_numbers() -> None:
    assert parse_quantity(format_cpu(1.5)) == 1.5
    assert format_cpu(2) == "2.0"
    assert format_bytes(4096) == "4096"
    assert parse_quantity(format_bytes(4096)) == 4096
