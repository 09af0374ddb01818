from __future__ import annotations

from collections.abc import Sequence
import logging
from types import TracebackType
from typing import TYPE_CHECKING, Literal

from ..shared.naming import unique_sheet_name
from ..utils import is_empty_value, mask_bounds, non_empty_mask
from ..utils.formula import row_key_formula
from .geometry import Rectangle, clamp

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..host.base import CellValue, GridDocument

logger = logging.getLogger(__name__)

StagingVariant = Literal["copy", "synthetic_key", "mapped"]

SCRATCH_SHEET_NAME = "TEMP_SHEET"


def find_non_empty_bounds(document: GridDocument, rect: Rectangle) -> Rectangle | None:
    """Return the smallest block inside ``rect`` bounding all non-empty cells.

    Args:
        document: Host document.
        rect: Block to search.

    Returns:
        Cropped rectangle, or ``None`` when every cell is empty or the sheet
        does not exist.
    """
    if rect.is_empty or rect.sheet not in document.sheet_names():
        return None
    values = document.read_values(rect)
    if rect.cell_count == 1:
        return rect if values and values[0] and not is_empty_value(values[0][0]) else None
    bounds = mask_bounds(non_empty_mask(values))
    if bounds is None:
        return None
    top, left, bottom, right = bounds
    return rect.sub(top, left, bottom - top + 1, right - left + 1)


class StagingArea:
    """Scratch-sheet copy of a source block, released exactly once.

    Construction crops the source (optional), creates a uniquely named
    scratch sheet and builds one of three variants on it:

    - ``copy``: visible rows of each (optionally non-empty) source column.
    - ``synthetic_key``: ``copy`` plus a leading row-number column.
    - ``mapped``: source columns placed at explicit output positions.

    Expected conditions (empty source, no scratch sheet) leave ``range`` as
    ``None`` instead of raising. ``close`` is idempotent, never raises and
    restores the session flags changed on construction.
    """

    def __init__(
        self,
        document: GridDocument,
        source: Rectangle,
        *,
        variant: StagingVariant = "copy",
        crop_to_non_empty: bool = False,
        skip_empty_columns: bool = False,
        hide_and_delete: bool = True,
        row_limit: int = 0,
        first_row_contains_column_names: bool = False,
        mapped_indexes: Sequence[int] | None = None,
        reduce_redraw: bool = True,
    ) -> None:
        if variant == "mapped" and mapped_indexes is None:
            raise ValueError("mapped staging requires mapped_indexes.")
        self._document = document
        self._session = document.session
        self._closed = False
        self._reduce_redraw = reduce_redraw
        self._previous_screen_updating = self._session.screen_updating
        self._previous_using_scratch_sheet = self._session.using_scratch_sheet
        if reduce_redraw:
            self._session.screen_updating = False
        self._session.using_scratch_sheet = True

        self.variant: StagingVariant = variant
        self.crop_to_non_empty = crop_to_non_empty
        self.skip_empty_columns = skip_empty_columns
        self.hide_and_delete = hide_and_delete
        self.row_limit = row_limit
        self.original_source: Rectangle | None = source
        self.source: Rectangle | None = None
        self.scratch_sheet: str | None = None
        self.range: Rectangle | None = None
        self._visible_rows: list[int] | None = None

        try:
            self.source = (
                find_non_empty_bounds(document, source) if crop_to_non_empty else source
            )
            self._create_scratch_sheet()
            if variant == "synthetic_key":
                self._build_synthetic_key(first_row_contains_column_names)
            elif variant == "mapped":
                self._build_mapped(list(mapped_indexes or []))
            else:
                self._build_copy()
        except Exception:
            self.close()
            raise

    def __enter__(self) -> StagingArea:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def visible_rows(self) -> list[int]:
        """Absolute row numbers of the source that are not hidden."""
        if self._visible_rows is None:
            if self.source is None or self.source.is_empty:
                self._visible_rows = []
            else:
                self._visible_rows = [
                    row
                    for row in range(self.source.top, self.source.bottom + 1)
                    if not self._document.is_row_hidden(self.source.sheet, row)
                ]
        return self._visible_rows

    @property
    def visible_row_count(self) -> int:
        return len(self.visible_rows)

    def values(self) -> list[list[CellValue]]:
        """Return the staged values (empty when nothing was staged)."""
        if self.range is None or self.range.is_empty:
            return []
        return self._document.read_values(self.range)

    def close(self) -> None:
        """Delete (or hand back) the scratch sheet and restore session flags."""
        if self._closed:
            return
        self._closed = True
        try:
            with self._session.scoped(display_alerts=False):
                if self.hide_and_delete and self.scratch_sheet is not None:
                    # very hidden sheets cannot be deleted by some hosts
                    self._document.set_sheet_visibility(self.scratch_sheet, "hidden")
                    self._document.delete_sheet(self.scratch_sheet)
        except Exception:
            logger.exception("Failed to delete scratch sheet '%s'.", self.scratch_sheet)
        finally:
            if self._reduce_redraw:
                self._session.screen_updating = self._previous_screen_updating
            self._session.using_scratch_sheet = self._previous_using_scratch_sheet
            self._return_focus()
            self.original_source = None
            self.source = None
            self.range = None
            self.scratch_sheet = None

    def _return_focus(self) -> None:
        if self.original_source is None:
            return
        try:
            if self.original_source.sheet in self._document.sheet_names():
                self._document.activate(self.original_source)
        except Exception:
            logger.exception("Failed to return focus to %s.", self.original_source)

    def _create_scratch_sheet(self) -> None:
        if self.source is None:
            logger.debug("No non-empty cells to stage; skipping scratch sheet.")
            return
        try:
            existing = self._document.sheet_names()
            if self.source.sheet not in existing:
                logger.debug("Source sheet '%s' not found.", self.source.sheet)
                return
            name = unique_sheet_name(SCRATCH_SHEET_NAME, existing)
            visibility = "very_hidden" if self.hide_and_delete else "visible"
            self._document.add_sheet(name, visibility)
            self.scratch_sheet = name
        except Exception:
            logger.exception("Failed to create scratch sheet for %s.", self.source)
            self.scratch_sheet = None

    def _scratch_block(self, sheet: str, left: int, rows: int, columns: int) -> Rectangle:
        anchor = Rectangle(sheet=sheet, top=1, left=left)
        return clamp(anchor, rows, columns, self._document.limits)

    def _source_columns(self, source: Rectangle, rows: list[int]) -> list[list[CellValue]]:
        """Return values per column of ``source``, restricted to ``rows``."""
        matrix = self._document.read_values(source)
        offsets = [row - source.top for row in rows]
        return [[matrix[offset][col] for offset in offsets] for col in range(source.columns)]

    def _build_copy(self) -> None:
        if self.scratch_sheet is None or self.source is None:
            return
        sheet, source = self.scratch_sheet, self.source
        visible = self.visible_rows
        copied_rows = min(self.row_limit, len(visible)) if self.row_limit > 0 else len(visible)
        rows = visible[:copied_rows]
        if not rows:
            return
        target_column = 1
        for column_values in self._source_columns(source, rows):
            if self.skip_empty_columns and all(is_empty_value(v) for v in column_values):
                continue
            block = self._scratch_block(sheet, target_column, copied_rows, 1)
            if block.is_empty:
                break
            self._document.write_values(block, [[v] for v in column_values[: block.rows]])
            target_column += 1
        written = target_column - 1
        if written > 0:
            self.range = self._scratch_block(sheet, 1, copied_rows, written)

    def _build_synthetic_key(self, first_row_contains_column_names: bool) -> None:
        self._build_copy()
        if self.range is None or self.scratch_sheet is None:
            return
        sheet, rows = self.scratch_sheet, self.range.rows
        self._document.insert_columns(sheet, 1, 1)
        key_block = self._scratch_block(sheet, 1, rows, 1)
        formula = row_key_formula(1 if first_row_contains_column_names else 0)
        self._document.write_formulas(key_block, [[formula] for _ in range(key_block.rows)])
        self.range = self._scratch_block(sheet, 1, rows, self.range.columns + 1)

    def _build_mapped(self, mapped_indexes: list[int]) -> None:
        if self.scratch_sheet is None or self.source is None:
            return
        sheet, source = self.scratch_sheet, self.source
        rows = self.visible_rows
        if not rows or not mapped_indexes:
            return
        columns = self._source_columns(source, rows)
        for position, mapped in enumerate(mapped_indexes, start=1):
            if mapped < 1:
                continue
            if mapped > len(columns):
                logger.debug(
                    "Mapped index %d is outside %s; leaving column %d blank.",
                    mapped,
                    source,
                    position,
                )
                continue
            block = self._scratch_block(sheet, position, len(rows), 1)
            if block.is_empty:
                continue
            values = columns[mapped - 1]
            self._document.write_values(block, [[v] for v in values[: block.rows]])
        self.range = self._scratch_block(sheet, 1, len(rows), len(mapped_indexes))
