from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
import logging
from typing import Any

from ..core.collision import apply_plan, find_first_intersection, resolve
from ..core.geometry import Rectangle, clamp
from ..host.base import TOTALS_LABEL, GridDocument, TableInfo
from ..query import QueryColumn, QueryResult

logger = logging.getLogger(__name__)

DATE_FORMAT = "m/d/yyyy"
DATETIME_FORMAT = "m/d/yyyy h:mm"
TIME_FORMAT = "hh:mm:ss"


def column_number_formats(result: QueryResult) -> list[str | None]:
    """Return the import number format of each result column.

    Date, date-time and time columns get explicit formats; anything else
    keeps the host default (``None``).
    """
    formats: list[str | None] = []
    for kind in result.column_kinds():
        if kind is None:
            formats.append(None)
        elif issubclass(kind, datetime):
            formats.append(DATETIME_FORMAT)
        elif issubclass(kind, date):
            formats.append(DATE_FORMAT)
        elif issubclass(kind, time):
            formats.append(TIME_FORMAT)
        else:
            formats.append(None)
    return formats


def _residual_blocks(old: Rectangle, new: Rectangle) -> list[Rectangle]:
    """Return the parts of ``old`` that fall outside ``new`` (same anchor)."""
    blocks: list[Rectangle] = []
    if old.bottom > new.bottom:
        blocks.append(
            Rectangle(
                sheet=old.sheet,
                top=new.bottom + 1,
                left=old.left,
                rows=old.bottom - new.bottom,
                columns=old.columns,
            )
        )
    if old.right > new.right:
        bottom = min(old.bottom, new.bottom)
        blocks.append(
            Rectangle(
                sheet=old.sheet,
                top=old.top,
                left=new.right + 1,
                rows=max(0, bottom - old.top + 1),
                columns=old.right - new.right,
            )
        )
    return [block for block in blocks if not block.is_empty]


def _pad_rows(rows: Sequence[Sequence[Any]], row_count: int, column_count: int) -> list[list[Any]]:
    padded = [
        list(row[:column_count]) + [None] * max(0, column_count - len(row))
        for row in rows[:row_count]
    ]
    while len(padded) < row_count:
        padded.append([None] * column_count)
    return padded


def rebind_table(
    document: GridDocument,
    table_name: str,
    sheet: str,
    result: QueryResult,
    *,
    import_column_names: bool = True,
    exclude_tag: str | None = None,
) -> TableInfo:
    """Resize a table for ``result`` and bind the rows to it.

    The new footprint is clamped to the grid, cleared of the first colliding
    neighbour by inserting rows or columns, then the table is resized, its
    data body reformatted and filled, and its columns renamed last to first.
    The table is left disconnected so its cells stay editable. When a
    neighbour still collides after the insertion, the table is left as it was.

    Args:
        document: Host document holding the table.
        table_name: Name of the bound table.
        sheet: Sheet holding the table.
        result: Fresh query result.
        import_column_names: Use result column names; otherwise ``Column<n>``.
        exclude_tag: Tag of the table itself, skipped by collision checks.

    Returns:
        Table snapshot after rebinding.

    Raises:
        ValueError: If the table does not exist or has no room on the grid.
    """
    info = document.find_table(sheet, table_name)
    if info is None:
        raise ValueError(f"Table not found: {sheet}!{table_name}")
    header_rows = info.header_rows
    totals_rows = info.totals_rows
    # a table keeps at least one data row
    data_rows = max(result.row_count, 1)
    columns = max(result.column_count, 1)
    extent_rows = data_rows + header_rows + totals_rows
    tag = exclude_tag if exclude_tag is not None else info.tag

    with document.session.scoped(
        skip_change_events=True, active_binding=table_name, screen_updating=False
    ):
        target = clamp(info.rectangle.top_left(), extent_rows, columns, document.limits)
        if target.is_empty:
            raise ValueError(f"No room on the grid for table '{table_name}'.")
        hit = find_first_intersection(target, document.find_occupants(sheet), exclude_tag=tag)
        if hit is not None:
            apply_plan(document, resolve(target, hit))
            shifted = document.find_table(sheet, table_name)
            if shifted is None:
                raise ValueError(f"Table '{table_name}' disappeared while making room.")
            info = shifted
            target = clamp(info.rectangle.top_left(), extent_rows, columns, document.limits)
            # one resolution pass only
            if find_first_intersection(
                target, document.find_occupants(sheet), exclude_tag=tag
            ) is not None:
                logger.debug(
                    "Table %s still collides at %s; leaving it unchanged.", table_name, target
                )
                return info

        for block in _residual_blocks(info.rectangle, target):
            document.clear_values(block)
        info = document.resize_table(table_name, target)
        data = info.data_rectangle
        document.format_range(data, column_number_formats(result))
        document.connect_table(table_name, _pad_rows(result.rows, data.rows, data.columns))
        if info.totals_rows:
            totals = info.rectangle.sub(info.rectangle.rows - 1, 0, 1, info.rectangle.columns)
            document.clear_values(totals)
            document.write_values(totals.top_left(), [[TOTALS_LABEL]])

        for index in range(info.rectangle.columns, 0, -1):
            if import_column_names and index <= result.column_count:
                column_name = result.columns[index - 1].label
            else:
                column_name = QueryColumn.ordinal_name(index)
            document.rename_table_column(table_name, index, column_name)
        document.autofit_columns(info.rectangle)
        document.disconnect_table(table_name)

    logger.info(
        "Bound %d rows x %d columns to table %s at %s",
        result.row_count,
        result.column_count,
        table_name,
        info.rectangle,
    )
    refreshed = document.find_table(sheet, table_name)
    return refreshed if refreshed is not None else info


__all__ = [
    "DATETIME_FORMAT",
    "DATE_FORMAT",
    "TIME_FORMAT",
    "column_number_formats",
    "rebind_table",
]
