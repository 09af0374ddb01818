from __future__ import annotations

import pytest

from gridbind.shared.a1 import (
    column_index_to_label,
    column_label_to_index,
    format_cell,
    format_range,
    parse_cell,
    parse_range,
    split_a1,
)


def test_column_roundtrip() -> None:
    assert column_label_to_index("A") == 1
    assert column_label_to_index("AA") == 27
    assert column_label_to_index("XFD") == 16_384
    assert column_index_to_label(1) == "A"
    assert column_index_to_label(27) == "AA"


def test_split_a1_accepts_absolute_references() -> None:
    assert split_a1("b12") == ("B", 12)
    assert split_a1("$C$3") == ("C", 3)


def test_parse_cell_returns_row_then_column() -> None:
    assert parse_cell("C5") == (5, 3)
    assert format_cell(5, 3) == "C5"


def test_parse_range_normalizes_corners() -> None:
    assert parse_range("D6:B4") == (4, 2, 6, 4)
    assert parse_range("B2") == (2, 2, 2, 2)
    assert format_range(4, 2, 6, 4) == "B4:D6"


@pytest.mark.parametrize("value", ["1A", "A0", "", "AAAA1"])
def test_split_a1_rejects_invalid(value: str) -> None:
    with pytest.raises(ValueError, match="Not an A1 cell reference"):
        split_a1(value)


def test_column_index_must_be_positive() -> None:
    with pytest.raises(ValueError):
        column_index_to_label(0)
