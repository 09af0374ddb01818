from __future__ import annotations

from collections.abc import Iterator, Sequence
import logging
import math
from pathlib import Path
from typing import Any, Literal
import uuid

from openpyxl import Workbook
from openpyxl.drawing.spreadsheet_drawing import (
    AbsoluteAnchor,
    OneCellAnchor,
    TwoCellAnchor,
)
from openpyxl.packaging.custom import StringProperty
from openpyxl.worksheet.filters import AutoFilter
from openpyxl.worksheet.table import Table, TableColumn, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from ..core.collision import OccupyingObject
from ..core.geometry import GridLimits, Rectangle, limits_for
from ..shared.a1 import format_cell, parse_cell, parse_range
from ..utils import warn_once
from ..utils.formula import evaluate_row_key_formula
from .base import TOTALS_LABEL, CellValue, SheetVisibility, TableInfo
from .session import HostSession

logger = logging.getLogger(__name__)

DOCUMENT_ID_PROPERTY = "WorkbookGuid"

_EMU_PER_PIXEL = 9525
_EMU_PER_CM = 360000
_DEFAULT_COLUMN_WIDTH_PX = 64
_DEFAULT_ROW_HEIGHT_PX = 20
_MIN_COLUMN_WIDTH = 8.43
_MAX_COLUMN_WIDTH = 80.0

_STATE_BY_VISIBILITY: dict[SheetVisibility, str] = {
    "visible": "visible",
    "hidden": "hidden",
    "very_hidden": "veryHidden",
}
_VISIBILITY_BY_STATE: dict[str, SheetVisibility] = {
    state: visibility for visibility, state in _STATE_BY_VISIBILITY.items()
}

Axis = Literal["row", "column"]


def _shift_span(start: int, end: int, before: int, count: int) -> tuple[int, int]:
    """Shift an inclusive span for an insertion of ``count`` units at ``before``.

    Spans starting at or after the insertion point move; spans crossing it grow.
    """
    if start >= before:
        return start + count, end + count
    if end >= before:
        return start, end + count
    return start, end


def _shift_ref(ref: str, axis: Axis, before: int, count: int) -> str:
    top, left, bottom, right = parse_range(ref)
    if axis == "row":
        top, bottom = _shift_span(top, bottom, before, count)
    else:
        left, right = _shift_span(left, right, before, count)
    return _ref(top, left, bottom, right)


def _ref(top: int, left: int, bottom: int, right: int) -> str:
    return f"{format_cell(top, left)}:{format_cell(bottom, right)}"


def _rect_ref(rect: Rectangle) -> str:
    return _ref(rect.top, rect.left, rect.bottom, rect.right)


class OpenpyxlDocument:
    """``GridDocument`` over an in-memory openpyxl workbook.

    openpyxl does not calculate formulas. Row-position formulas written by
    this package are evaluated on read; other formula cells are resolved
    from ``cached_values`` (the same file loaded with ``data_only=True``)
    when given, else their formula text is returned.
    """

    def __init__(
        self,
        workbook: Workbook,
        *,
        path: Path | str | None = None,
        name: str | None = None,
        cached_values: Workbook | None = None,
        compatibility_mode: bool = False,
        session: HostSession | None = None,
    ) -> None:
        self.workbook = workbook
        self.session = session or HostSession()
        self._path = Path(path) if path is not None else None
        self._name = name or (self._path.name if self._path else "Book1")
        self._cached_values = cached_values
        self._limits = limits_for(compatibility_mode)
        self._connected: set[str] = set()

    # -- document ------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> str | None:
        return str(self._path) if self._path is not None else None

    @property
    def limits(self) -> GridLimits:
        return self._limits

    def get_or_create_document_id(self) -> str:
        """Return the workbook GUID stored as a custom document property."""
        props = self.workbook.custom_doc_props
        if DOCUMENT_ID_PROPERTY in props.names:
            return str(props[DOCUMENT_ID_PROPERTY].value)
        document_id = str(uuid.uuid4())
        props.append(StringProperty(name=DOCUMENT_ID_PROPERTY, value=document_id))
        logger.debug("Assigned document id %s to %s", document_id, self._name)
        return document_id

    def save(self, path: Path | str | None = None) -> Path:
        """Save the workbook to ``path`` (defaults to the opened path)."""
        target = Path(path) if path is not None else self._path
        if target is None:
            raise ValueError("No output path for an unsaved workbook.")
        target.parent.mkdir(parents=True, exist_ok=True)
        self.workbook.save(target)
        self._path = target
        return target

    # -- sheets --------------------------------------------------------

    def _sheet(self, sheet: str) -> Worksheet:
        if sheet not in self.workbook.sheetnames:
            raise ValueError(f"Sheet not found: {sheet}")
        return self.workbook[sheet]

    def sheet_names(self) -> list[str]:
        return list(self.workbook.sheetnames)

    def add_sheet(self, name: str, visibility: SheetVisibility) -> None:
        ws = self.workbook.create_sheet(title=name)
        ws.sheet_state = _STATE_BY_VISIBILITY[visibility]

    def get_sheet_visibility(self, sheet: str) -> SheetVisibility:
        return _VISIBILITY_BY_STATE[self._sheet(sheet).sheet_state]

    def set_sheet_visibility(self, sheet: str, visibility: SheetVisibility) -> None:
        self._sheet(sheet).sheet_state = _STATE_BY_VISIBILITY[visibility]

    def delete_sheet(self, sheet: str) -> None:
        ws = self._sheet(sheet)
        for table_name in list(ws.tables.keys()):
            self._connected.discard(table_name)
        self.workbook.remove(ws)

    def activate(self, rect: Rectangle) -> None:
        ws = self._sheet(rect.sheet)
        if ws.sheet_state == "visible":
            self.workbook.active = ws
        if ws.sheet_view.selection:
            selection = ws.sheet_view.selection[0]
            selection.activeCell = format_cell(rect.top, rect.left)
            selection.sqref = rect.to_a1()

    def is_row_hidden(self, sheet: str, row: int) -> bool:
        dimension = self._sheet(sheet).row_dimensions.get(row)
        return bool(dimension is not None and dimension.hidden)

    # -- cells ---------------------------------------------------------

    def _iter_cells(self, rect: Rectangle) -> Iterator[tuple[Any, ...]]:
        ws = self._sheet(rect.sheet)
        return ws.iter_rows(
            min_row=rect.top,
            max_row=rect.bottom,
            min_col=rect.left,
            max_col=rect.right,
        )

    def read_values(self, rect: Rectangle) -> list[list[CellValue]]:
        if rect.is_empty:
            return []
        return [
            [self._resolve_value(rect.sheet, cell) for cell in row]
            for row in self._iter_cells(rect)
        ]

    def _resolve_value(self, sheet: str, cell: Any) -> CellValue:
        if cell.data_type != "f":
            return cell.value
        row_key = evaluate_row_key_formula(cell.value, cell.row)
        if row_key is not None:
            return row_key
        if self._cached_values is not None and sheet in self._cached_values.sheetnames:
            return self._cached_values[sheet].cell(row=cell.row, column=cell.column).value
        return str(cell.value)

    def write_values(self, rect: Rectangle, values: Sequence[Sequence[CellValue]]) -> None:
        self._ensure_not_connected(rect)
        self._write_literals(rect, values)
        self.session.notify_change(rect)

    def _write_literals(self, rect: Rectangle, values: Sequence[Sequence[CellValue]]) -> None:
        ws = self._sheet(rect.sheet)
        for r, row in enumerate(values[: rect.rows]):
            for c, value in enumerate(row[: rect.columns]):
                cell = ws.cell(row=rect.top + r, column=rect.left + c)
                cell.value = value
                if isinstance(value, str) and value.startswith("="):
                    cell.data_type = "s"

    def write_formulas(self, rect: Rectangle, formulas: Sequence[Sequence[str]]) -> None:
        self._ensure_not_connected(rect)
        ws = self._sheet(rect.sheet)
        for r, row in enumerate(formulas[: rect.rows]):
            for c, formula in enumerate(row[: rect.columns]):
                ws.cell(row=rect.top + r, column=rect.left + c).value = formula
        self.session.notify_change(rect)

    def clear_values(self, rect: Rectangle) -> None:
        if rect.is_empty:
            return
        self._ensure_not_connected(rect)
        for row in self._iter_cells(rect):
            for cell in row:
                cell.value = None
        self.session.notify_change(rect)

    def _ensure_not_connected(self, rect: Rectangle) -> None:
        for name in self._connected:
            info = self.find_table(rect.sheet, name)
            if info is None:
                continue
            if info.data_rectangle.intersect(rect) is not None:
                raise ValueError(
                    f"Cells {rect} belong to table '{name}' while it is bound to a data source."
                )

    # -- structure -----------------------------------------------------

    def insert_rows(self, sheet: str, before_row: int, count: int) -> None:
        ws = self._sheet(sheet)
        ws.insert_rows(before_row, count)
        self._shift_hidden_rows(ws, before_row, count)
        self._shift_objects(ws, "row", before_row, count)
        logger.debug("Inserted %d rows before row %d on '%s'", count, before_row, sheet)

    def insert_columns(self, sheet: str, before_column: int, count: int) -> None:
        ws = self._sheet(sheet)
        ws.insert_cols(before_column, count)
        self._shift_objects(ws, "column", before_column, count)
        logger.debug(
            "Inserted %d columns before column %d on '%s'", count, before_column, sheet
        )

    @staticmethod
    def _shift_hidden_rows(ws: Worksheet, before_row: int, count: int) -> None:
        hidden = sorted(
            (row for row, dim in ws.row_dimensions.items() if row >= before_row and dim.hidden),
            reverse=True,
        )
        for row in hidden:
            ws.row_dimensions[row].hidden = False
            ws.row_dimensions[row + count].hidden = True

    def _shift_objects(self, ws: Worksheet, axis: Axis, before: int, count: int) -> None:
        for table in ws.tables.values():
            table.ref = _shift_ref(table.ref, axis, before, count)
            if table.autoFilter is not None and table.autoFilter.ref:
                table.autoFilter.ref = _shift_ref(table.autoFilter.ref, axis, before, count)
        for pivot in getattr(ws, "_pivots", []):
            location = pivot.location
            if location is not None and location.ref:
                location.ref = _shift_ref(location.ref, axis, before, count)
        for chart in getattr(ws, "_charts", []):
            self._shift_chart_anchor(chart, axis, before, count)

    @staticmethod
    def _shift_chart_anchor(chart: Any, axis: Axis, before: int, count: int) -> None:
        anchor = chart.anchor
        if isinstance(anchor, str):
            row, column = parse_cell(anchor)
            if axis == "row" and row >= before:
                row += count
            elif axis == "column" and column >= before:
                column += count
            chart.anchor = format_cell(row, column)
            return
        for marker in (getattr(anchor, "_from", None), getattr(anchor, "to", None)):
            if marker is None:
                continue
            # markers are 0-based
            if axis == "row" and marker.row + 1 >= before:
                marker.row += count
            elif axis == "column" and marker.col + 1 >= before:
                marker.col += count

    # -- tables --------------------------------------------------------

    def _lookup_table(self, name: str) -> tuple[Worksheet, Table]:
        for ws in self.workbook.worksheets:
            for table in ws.tables.values():
                if table.displayName.lower() == name.lower():
                    return ws, table
        raise ValueError(f"Table not found: {name}")

    def _table_info(self, ws: Worksheet, table: Table) -> TableInfo:
        header_rows = 1 if table.headerRowCount is None else min(1, table.headerRowCount)
        return TableInfo(
            name=table.displayName,
            sheet=ws.title,
            rectangle=Rectangle.from_a1(ws.title, table.ref),
            header_rows=header_rows,
            totals_rows=min(1, table.totalsRowCount or 0),
            tag=table.comment or None,
            column_names=[column.name for column in table.tableColumns],
        )

    def table_names(self) -> list[str]:
        return [
            table.displayName
            for ws in self.workbook.worksheets
            for table in ws.tables.values()
        ]

    def find_table(self, sheet: str, name: str) -> TableInfo | None:
        if sheet not in self.workbook.sheetnames:
            return None
        ws = self.workbook[sheet]
        for table in ws.tables.values():
            if table.displayName.lower() == name.lower():
                return self._table_info(ws, table)
        return None

    def create_table(
        self,
        rect: Rectangle,
        name: str,
        *,
        has_headers: bool,
        style: str | None,
        tag: str | None,
    ) -> TableInfo:
        ws = self._sheet(rect.sheet)
        if rect.is_empty:
            raise ValueError("Cannot create a table over an empty range.")
        if name.lower() in {existing.lower() for existing in self.table_names()}:
            raise ValueError(f"Table with name {name} already exists.")
        for existing in ws.tables.values():
            if Rectangle.from_a1(ws.title, existing.ref).intersect(rect) is not None:
                raise ValueError(
                    f"Range {rect} overlaps existing table '{existing.displayName}'."
                )
        table = Table(
            displayName=name,
            ref=_rect_ref(rect),
            headerRowCount=1 if has_headers else 0,
            comment=tag,
        )
        if style:
            table.tableStyleInfo = TableStyleInfo(
                name=style,
                showFirstColumn=False,
                showLastColumn=False,
                showRowStripes=True,
                showColumnStripes=False,
            )
        ws.add_table(table)
        self._sync_table_columns(ws, table)
        logger.debug("Created table %s at %s", name, rect)
        return self._table_info(ws, table)

    def delete_table(self, name: str) -> None:
        ws, table = self._lookup_table(name)
        self._connected.discard(table.displayName)
        del ws.tables[table.displayName]

    def resize_table(self, name: str, rect: Rectangle) -> TableInfo:
        ws, table = self._lookup_table(name)
        if rect.sheet != ws.title:
            raise ValueError(f"Table '{name}' cannot move to sheet '{rect.sheet}'.")
        if rect.is_empty:
            raise ValueError(f"Cannot resize table '{name}' to an empty range.")
        table.ref = _rect_ref(rect)
        self._sync_table_columns(ws, table)
        return self._table_info(ws, table)

    def set_table_totals(self, name: str, show: bool) -> TableInfo:
        ws, table = self._lookup_table(name)
        info = self._table_info(ws, table)
        rect = info.rectangle
        if show and info.totals_rows == 0:
            rect = rect.sub(0, 0, rect.rows + 1, rect.columns)
            table.ref = _rect_ref(rect)
            table.totalsRowCount = 1
            table.totalsRowShown = True
            ws.cell(row=rect.bottom, column=rect.left).value = TOTALS_LABEL
        elif not show and info.totals_rows == 1:
            for cell in ws[_ref(rect.bottom, rect.left, rect.bottom, rect.right)][0]:
                cell.value = None
            rect = rect.sub(0, 0, rect.rows - 1, rect.columns)
            table.ref = _rect_ref(rect)
            table.totalsRowCount = None
            table.totalsRowShown = None
        self._sync_table_columns(ws, table)
        return self._table_info(ws, table)

    def rename_table_column(self, name: str, index: int, new_name: str) -> None:
        ws, table = self._lookup_table(name)
        info = self._table_info(ws, table)
        if not 1 <= index <= info.rectangle.columns:
            raise ValueError(f"Column {index} is outside table '{name}'.")
        taken = {
            column.name.lower()
            for position, column in enumerate(table.tableColumns, start=1)
            if position != index
        }
        unique = new_name
        suffix = 2
        while unique.lower() in taken:
            unique = f"{new_name}{suffix}"
            suffix += 1
        table.tableColumns[index - 1].name = unique
        if info.header_rows:
            ws.cell(row=info.rectangle.top, column=info.rectangle.left + index - 1).value = unique

    def _sync_table_columns(self, ws: Worksheet, table: Table) -> None:
        """Rebuild table columns and the autofilter for the current ref."""
        info_rect = Rectangle.from_a1(ws.title, table.ref)
        has_header = table.headerRowCount is None or table.headerRowCount > 0
        previous = [column.name for column in table.tableColumns]
        names: list[str] = []
        for offset in range(info_rect.columns):
            header = (
                ws.cell(row=info_rect.top, column=info_rect.left + offset).value
                if has_header
                else None
            )
            if header is None or str(header).strip() == "":
                header = previous[offset] if offset < len(previous) else f"Column{offset + 1}"
            candidate = str(header)
            unique = candidate
            suffix = 2
            while unique.lower() in {n.lower() for n in names}:
                unique = f"{candidate}{suffix}"
                suffix += 1
            names.append(unique)
            if has_header:
                ws.cell(row=info_rect.top, column=info_rect.left + offset).value = unique
        table.tableColumns = [
            TableColumn(id=position, name=column_name)
            for position, column_name in enumerate(names, start=1)
        ]
        if has_header:
            totals = min(1, table.totalsRowCount or 0)
            filter_rect = info_rect.sub(0, 0, info_rect.rows - totals, info_rect.columns)
            table.autoFilter = AutoFilter(ref=_rect_ref(filter_rect))

    def connect_table(self, name: str, rows: Sequence[Sequence[CellValue]]) -> None:
        ws, table = self._lookup_table(name)
        data = self._table_info(ws, table).data_rectangle
        if len(rows) > data.rows:
            raise ValueError(
                f"Table '{name}' holds {data.rows} data rows; got {len(rows)}."
            )
        self._write_literals(data, rows)
        self._connected.add(table.displayName)
        self.session.notify_change(data)

    def disconnect_table(self, name: str) -> None:
        _, table = self._lookup_table(name)
        self._connected.discard(table.displayName)

    def is_table_connected(self, name: str) -> bool:
        _, table = self._lookup_table(name)
        return table.displayName in self._connected

    # -- formatting ----------------------------------------------------

    def format_range(self, rect: Rectangle, number_formats: Sequence[str | None]) -> None:
        if rect.is_empty:
            return
        for row in self._iter_cells(rect):
            for offset, cell in enumerate(row):
                fmt = number_formats[offset] if offset < len(number_formats) else None
                cell.number_format = fmt or "General"

    def autofit_columns(self, rect: Rectangle) -> None:
        """Estimate column widths from the longest text in each column."""
        if rect.is_empty:
            return
        ws = self._sheet(rect.sheet)
        max_lengths = [0] * rect.columns
        for row in self.read_values(rect):
            for offset, value in enumerate(row):
                if value is not None:
                    max_lengths[offset] = max(max_lengths[offset], len(str(value)))
        for offset, length in enumerate(max_lengths):
            letter = ws.cell(row=rect.top, column=rect.left + offset).column_letter
            width = min(max(length + 2.0, _MIN_COLUMN_WIDTH), _MAX_COLUMN_WIDTH)
            ws.column_dimensions[letter].width = width

    # -- occupants -----------------------------------------------------

    def find_occupants(self, sheet: str) -> list[OccupyingObject]:
        ws = self._sheet(sheet)
        occupants: list[OccupyingObject] = []
        for table in ws.tables.values():
            occupants.append(
                OccupyingObject(
                    kind="table",
                    name=table.displayName,
                    bounds=Rectangle.from_a1(sheet, table.ref),
                    tag=table.comment or None,
                )
            )
        for pivot in getattr(ws, "_pivots", []):
            occupant = self._pivot_occupant(sheet, pivot)
            if occupant is not None:
                occupants.append(occupant)
        for index, chart in enumerate(getattr(ws, "_charts", []), start=1):
            occupants.append(
                OccupyingObject(
                    kind="chart",
                    name=f"Chart {index}",
                    bounds=self._chart_bounds(sheet, chart),
                )
            )
        return occupants

    @staticmethod
    def _pivot_occupant(sheet: str, pivot: Any) -> OccupyingObject | None:
        location = pivot.location
        if location is None or not location.ref:
            return None
        body = Rectangle.from_a1(sheet, location.ref)
        data_top = body.top + (location.firstDataRow or 0)
        data_left = body.left + (location.firstDataCol or 0)
        data = Rectangle(
            sheet=sheet,
            top=data_top,
            left=data_left,
            rows=max(0, body.bottom - data_top + 1),
            columns=max(0, body.right - data_left + 1),
        )
        page: Rectangle | None = None
        whole = body
        page_rows = location.rowPageCount or 0
        # page fields sit above the body with one blank row between
        page_top = body.top - page_rows - 1
        if page_rows > 0 and page_top >= 1:
            page = Rectangle(
                sheet=sheet,
                top=page_top,
                left=body.left,
                rows=page_rows,
                columns=max(2, 2 * (location.colPageCount or 1)),
            )
            right = max(body.right, page.right)
            whole = Rectangle(
                sheet=sheet,
                top=page.top,
                left=body.left,
                rows=body.bottom - page.top + 1,
                columns=right - body.left + 1,
            )
        return OccupyingObject(
            kind="pivot_table",
            name=getattr(pivot, "name", None),
            bounds=whole,
            regions=[body, whole, page, data],
        )

    @staticmethod
    def _chart_bounds(sheet: str, chart: Any) -> Rectangle:
        anchor = chart.anchor
        if isinstance(anchor, TwoCellAnchor):
            start, end = anchor._from, anchor.to
            return Rectangle(
                sheet=sheet,
                top=start.row + 1,
                left=start.col + 1,
                rows=end.row - start.row + 1,
                columns=end.col - start.col + 1,
            )
        warn_once(
            "openpyxl-chart-footprint",
            "Chart footprints are approximated from default row and column sizes.",
        )
        if isinstance(anchor, OneCellAnchor):
            top, left = anchor._from.row + 1, anchor._from.col + 1
            width_px = anchor.ext.cx / _EMU_PER_PIXEL if anchor.ext is not None else 0
            height_px = anchor.ext.cy / _EMU_PER_PIXEL if anchor.ext is not None else 0
        elif isinstance(anchor, AbsoluteAnchor):
            left = int(anchor.pos.x / _EMU_PER_PIXEL // _DEFAULT_COLUMN_WIDTH_PX) + 1
            top = int(anchor.pos.y / _EMU_PER_PIXEL // _DEFAULT_ROW_HEIGHT_PX) + 1
            width_px = anchor.ext.cx / _EMU_PER_PIXEL
            height_px = anchor.ext.cy / _EMU_PER_PIXEL
        else:
            top, left = parse_cell(str(anchor))
            width_px = chart.width * _EMU_PER_CM / _EMU_PER_PIXEL
            height_px = chart.height * _EMU_PER_CM / _EMU_PER_PIXEL
        return Rectangle(
            sheet=sheet,
            top=top,
            left=left,
            rows=max(1, math.ceil(height_px / _DEFAULT_ROW_HEIGHT_PX)),
            columns=max(1, math.ceil(width_px / _DEFAULT_COLUMN_WIDTH_PX)),
        )


__all__ = ["DOCUMENT_ID_PROPERTY", "OpenpyxlDocument"]
