from __future__ import annotations

import pytest

from gridbind.core.geometry import (
    COMPATIBILITY_LIMITS,
    LATEST_LIMITS,
    GridLimits,
    Rectangle,
    clamp,
    limits_for,
)


def _anchor(top: int, left: int) -> Rectangle:
    return Rectangle(sheet="Data", top=top, left=left)


def test_limits_for_modes() -> None:
    assert limits_for(False) == LATEST_LIMITS
    assert limits_for(True) == COMPATIBILITY_LIMITS
    assert LATEST_LIMITS.max_rows == 1_048_576
    assert COMPATIBILITY_LIMITS.max_columns == 256


def test_grid_limits_must_be_positive() -> None:
    with pytest.raises(ValueError):
        GridLimits(max_rows=0, max_columns=10)


def test_clamp_keeps_request_that_fits() -> None:
    rect = clamp(_anchor(2, 3), 10, 4, LATEST_LIMITS)
    assert (rect.top, rect.left, rect.rows, rect.columns) == (2, 3, 10, 4)
    assert rect.bottom == 11
    assert rect.right == 6


def test_clamp_shrinks_to_grid_edge() -> None:
    limits = GridLimits(max_rows=100, max_columns=20)
    rect = clamp(_anchor(95, 18), 10, 10, limits)
    assert rect.rows == 6
    assert rect.columns == 3
    assert rect.bottom == limits.max_rows
    assert rect.right == limits.max_columns


def test_clamp_anchor_past_limit_is_empty() -> None:
    limits = GridLimits(max_rows=100, max_columns=20)
    rect = clamp(_anchor(101, 1), 5, 5, limits)
    assert rect.is_empty
    assert rect.cell_count == 0


@pytest.mark.parametrize(
    ("top", "left", "rows", "columns"),
    [
        (1, 1, 0, 5),
        (1, 1, 5, -3),
        (50, 10, 1_000, 1_000),
        (100, 20, 1, 1),
        (7, 7, 3, 3),
    ],
)
def test_clamp_never_exceeds_limits_or_request(
    top: int, left: int, rows: int, columns: int
) -> None:
    limits = GridLimits(max_rows=100, max_columns=20)
    rect = clamp(_anchor(top, left), rows, columns, limits)
    assert rect.rows <= max(rows, 0)
    assert rect.columns <= max(columns, 0)
    if not rect.is_empty:
        assert rect.bottom <= limits.max_rows
        assert rect.right <= limits.max_columns


def test_rectangle_from_a1_and_str() -> None:
    rect = Rectangle.from_a1("Data", "B2:D4")
    assert (rect.top, rect.left, rect.rows, rect.columns) == (2, 2, 3, 3)
    assert str(rect) == "'Data'!B2:D4"
    assert Rectangle.from_a1("Data", "C3").to_a1() == "C3"


def test_intersect() -> None:
    a = Rectangle.from_a1("Data", "A1:C5")
    b = Rectangle.from_a1("Data", "B4:E9")
    assert a.intersect(b) == Rectangle.from_a1("Data", "B4:C5")
    assert a.intersect(Rectangle.from_a1("Data", "D1:E2")) is None
    assert a.intersect(Rectangle.from_a1("Other", "A1:C5")) is None


def test_sub_and_column() -> None:
    rect = Rectangle.from_a1("Data", "B2:D6")
    assert rect.sub(1, 0, 4, 3) == Rectangle.from_a1("Data", "B3:D6")
    assert rect.column(2) == Rectangle.from_a1("Data", "C2:C6")
    assert rect.cell(2, 3) == Rectangle.from_a1("Data", "D3")
