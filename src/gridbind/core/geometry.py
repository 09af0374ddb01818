from __future__ import annotations

from typing import Final

from pydantic import BaseModel, ConfigDict, Field

from ..shared.a1 import format_cell, format_range, parse_range

MAXIMUM_ROWS_LATEST: Final[int] = 1_048_576
MAXIMUM_COLUMNS_LATEST: Final[int] = 16_384
MAXIMUM_ROWS_COMPATIBILITY: Final[int] = 65_536
MAXIMUM_COLUMNS_COMPATIBILITY: Final[int] = 256


class GridLimits(BaseModel):
    """Maximum grid size of a host document (fixed for a session)."""

    model_config = ConfigDict(frozen=True)

    max_rows: int = Field(..., gt=0)
    max_columns: int = Field(..., gt=0)


LATEST_LIMITS: Final[GridLimits] = GridLimits(
    max_rows=MAXIMUM_ROWS_LATEST, max_columns=MAXIMUM_COLUMNS_LATEST
)
COMPATIBILITY_LIMITS: Final[GridLimits] = GridLimits(
    max_rows=MAXIMUM_ROWS_COMPATIBILITY, max_columns=MAXIMUM_COLUMNS_COMPATIBILITY
)


def limits_for(compatibility_mode: bool) -> GridLimits:
    """Return grid limits for the legacy (compatibility) or current file mode."""
    return COMPATIBILITY_LIMITS if compatibility_mode else LATEST_LIMITS


class Rectangle(BaseModel):
    """A rectangular block of cells on one sheet (1-based, inclusive)."""

    model_config = ConfigDict(frozen=True)

    sheet: str
    top: int = Field(..., ge=1)
    left: int = Field(..., ge=1)
    rows: int = Field(default=1, ge=0)
    columns: int = Field(default=1, ge=0)

    @classmethod
    def from_a1(cls, sheet: str, ref: str) -> Rectangle:
        """Build a rectangle from an A1 cell or range reference."""
        top, left, bottom, right = parse_range(ref)
        return cls(
            sheet=sheet,
            top=top,
            left=left,
            rows=bottom - top + 1,
            columns=right - left + 1,
        )

    @property
    def bottom(self) -> int:
        return self.top + self.rows - 1

    @property
    def right(self) -> int:
        return self.left + self.columns - 1

    @property
    def is_empty(self) -> bool:
        return self.rows == 0 or self.columns == 0

    @property
    def cell_count(self) -> int:
        return self.rows * self.columns

    def top_left(self) -> Rectangle:
        """Return the 1x1 rectangle at this rectangle's first cell."""
        return self.model_copy(update={"rows": 1, "columns": 1})

    def cell(self, row: int, column: int) -> Rectangle:
        """Return the 1x1 rectangle at a 1-based position inside this one."""
        return Rectangle(
            sheet=self.sheet,
            top=self.top + row - 1,
            left=self.left + column - 1,
        )

    def sub(
        self, row_offset: int, column_offset: int, rows: int, columns: int
    ) -> Rectangle:
        """Return a block positioned relative to this rectangle's first cell."""
        return Rectangle(
            sheet=self.sheet,
            top=self.top + row_offset,
            left=self.left + column_offset,
            rows=max(0, rows),
            columns=max(0, columns),
        )

    def column(self, index: int) -> Rectangle:
        """Return the 1-based column ``index`` of this rectangle."""
        return self.sub(0, index - 1, self.rows, 1)

    def intersect(self, other: Rectangle) -> Rectangle | None:
        """Return the overlapping block, or ``None`` when they do not overlap."""
        if self.sheet != other.sheet or self.is_empty or other.is_empty:
            return None
        top = max(self.top, other.top)
        left = max(self.left, other.left)
        bottom = min(self.bottom, other.bottom)
        right = min(self.right, other.right)
        if top > bottom or left > right:
            return None
        return Rectangle(
            sheet=self.sheet,
            top=top,
            left=left,
            rows=bottom - top + 1,
            columns=right - left + 1,
        )

    def to_a1(self) -> str:
        """Return the A1 reference of this rectangle (no sheet qualifier)."""
        if self.is_empty:
            return format_cell(self.top, self.left)
        if self.rows == 1 and self.columns == 1:
            return format_cell(self.top, self.left)
        return format_range(self.top, self.left, self.bottom, self.right)

    def __str__(self) -> str:
        return f"'{self.sheet}'!{self.to_a1()}"


def clamp(
    anchor: Rectangle,
    requested_rows: int,
    requested_columns: int,
    limits: GridLimits,
) -> Rectangle:
    """Size a rectangle at ``anchor``'s first cell without leaving the grid.

    Requested extents shrink to what fits between the anchor and the grid
    limits; they are never expanded. An anchor already past the limits, or a
    non-positive request, yields a zero-size rectangle.
    """
    available_rows = max(0, limits.max_rows - anchor.top + 1)
    available_columns = max(0, limits.max_columns - anchor.left + 1)
    rows = max(0, min(requested_rows, available_rows))
    columns = max(0, min(requested_columns, available_columns))
    if rows == 0 or columns == 0:
        rows = columns = 0
    return Rectangle(
        sheet=anchor.sheet,
        top=anchor.top,
        left=anchor.left,
        rows=rows,
        columns=columns,
    )
