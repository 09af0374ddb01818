from __future__ import annotations

from collections.abc import Iterator, Sequence
import logging
from typing import Any
import uuid

import xlwings as xw

from ..core.collision import OccupyingObject
from ..core.geometry import GridLimits, Rectangle, limits_for
from .base import CellValue, SheetVisibility, TableInfo
from .session import HostSession

logger = logging.getLogger(__name__)

DOCUMENT_ID_PROPERTY = "WorkbookGuid"

# Excel constants
_XL_SHEET_VISIBLE = -1
_XL_SHEET_HIDDEN = 0
_XL_SHEET_VERY_HIDDEN = 2
_XL_SRC_RANGE = 1
_XL_YES = 1
_XL_NO = 2
_XL_SHIFT_DOWN = -4121
_XL_SHIFT_TO_RIGHT = -4161
_MSO_PROPERTY_TYPE_STRING = 4

_VISIBILITY_TO_XL: dict[SheetVisibility, int] = {
    "visible": _XL_SHEET_VISIBLE,
    "hidden": _XL_SHEET_HIDDEN,
    "very_hidden": _XL_SHEET_VERY_HIDDEN,
}
_XL_TO_VISIBILITY: dict[int, SheetVisibility] = {
    value: key for key, value in _VISIBILITY_TO_XL.items()
}


def _rect_from_api(sheet: str, api_range: Any) -> Rectangle:
    return Rectangle(
        sheet=sheet,
        top=int(api_range.Row),
        left=int(api_range.Column),
        rows=int(api_range.Rows.Count),
        columns=int(api_range.Columns.Count),
    )


class XlwingsSession(HostSession):
    """Host session whose redraw and alert switches live on the Excel app."""

    def __init__(self, app: xw.App) -> None:
        self._app = app
        super().__init__()

    @property
    def screen_updating(self) -> bool:
        return bool(self._app.screen_updating)

    @screen_updating.setter
    def screen_updating(self, value: bool) -> None:
        self._app.screen_updating = value

    @property
    def display_alerts(self) -> bool:
        return bool(self._app.display_alerts)

    @display_alerts.setter
    def display_alerts(self, value: bool) -> None:
        self._app.display_alerts = value


class XlwingsDocument:
    """``GridDocument`` over a workbook open in Excel (COM)."""

    def __init__(self, book: xw.Book, *, session: HostSession | None = None) -> None:
        self.book = book
        self.session = session or XlwingsSession(book.app)
        self._connected: set[str] = set()

    @property
    def name(self) -> str:
        return str(self.book.name)

    @property
    def path(self) -> str | None:
        fullname = str(self.book.fullname)
        return fullname if fullname != self.name else None

    @property
    def limits(self) -> GridLimits:
        return limits_for(bool(self.book.api.Excel8CompatibilityMode))

    def get_or_create_document_id(self) -> str:
        props = self.book.api.CustomDocumentProperties
        for index in range(1, int(props.Count) + 1):
            prop = props.Item(index)
            if prop.Name == DOCUMENT_ID_PROPERTY:
                return str(prop.Value)
        document_id = str(uuid.uuid4())
        props.Add(
            Name=DOCUMENT_ID_PROPERTY,
            LinkToContent=False,
            Type=_MSO_PROPERTY_TYPE_STRING,
            Value=document_id,
        )
        return document_id

    # -- sheets --------------------------------------------------------

    def _sheet(self, sheet: str) -> xw.Sheet:
        if sheet not in self.sheet_names():
            raise ValueError(f"Sheet not found: {sheet}")
        return self.book.sheets[sheet]

    def _range(self, rect: Rectangle) -> xw.Range:
        return self._sheet(rect.sheet).range(
            (rect.top, rect.left), (rect.bottom, rect.right)
        )

    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.book.sheets]

    def add_sheet(self, name: str, visibility: SheetVisibility) -> None:
        sheet = self.book.sheets.add(name=name, after=self.book.sheets[-1])
        sheet.api.Visible = _VISIBILITY_TO_XL[visibility]

    def get_sheet_visibility(self, sheet: str) -> SheetVisibility:
        return _XL_TO_VISIBILITY[int(self._sheet(sheet).api.Visible)]

    def set_sheet_visibility(self, sheet: str, visibility: SheetVisibility) -> None:
        self._sheet(sheet).api.Visible = _VISIBILITY_TO_XL[visibility]

    def delete_sheet(self, sheet: str) -> None:
        target = self._sheet(sheet)
        for table in self._list_objects(target):
            self._connected.discard(str(table.Name))
        target.delete()

    def activate(self, rect: Rectangle) -> None:
        sheet = self._sheet(rect.sheet)
        if int(sheet.api.Visible) != _XL_SHEET_VISIBLE:
            return
        sheet.activate()
        self._range(rect).select()

    def is_row_hidden(self, sheet: str, row: int) -> bool:
        return bool(self._sheet(sheet).api.Rows(row).Hidden)

    # -- cells ---------------------------------------------------------

    def read_values(self, rect: Rectangle) -> list[list[CellValue]]:
        if rect.is_empty:
            return []
        return self._range(rect).options(ndim=2).value

    def write_values(self, rect: Rectangle, values: Sequence[Sequence[CellValue]]) -> None:
        self._ensure_not_connected(rect)
        self._write_literals(rect, values)
        self.session.notify_change(rect)

    def _write_literals(self, rect: Rectangle, values: Sequence[Sequence[CellValue]]) -> None:
        block = [
            [
                f"'{value}" if isinstance(value, str) and value.startswith("=") else value
                for value in row[: rect.columns]
            ]
            for row in values[: rect.rows]
        ]
        if not block or not block[0]:
            return
        target = rect.sub(0, 0, len(block), len(block[0]))
        self._range(target).value = block

    def write_formulas(self, rect: Rectangle, formulas: Sequence[Sequence[str]]) -> None:
        self._ensure_not_connected(rect)
        self._range(rect).formula = [list(row[: rect.columns]) for row in formulas[: rect.rows]]
        self.session.notify_change(rect)

    def clear_values(self, rect: Rectangle) -> None:
        if rect.is_empty:
            return
        self._ensure_not_connected(rect)
        self._range(rect).clear_contents()
        self.session.notify_change(rect)

    def _ensure_not_connected(self, rect: Rectangle) -> None:
        for name in self._connected:
            info = self.find_table(rect.sheet, name)
            if info is not None and info.data_rectangle.intersect(rect) is not None:
                raise ValueError(
                    f"Cells {rect} belong to table '{name}' while it is bound to a data source."
                )

    def insert_rows(self, sheet: str, before_row: int, count: int) -> None:
        rows = self._sheet(sheet).api.Rows(f"{before_row}:{before_row + count - 1}")
        rows.Insert(Shift=_XL_SHIFT_DOWN)

    def insert_columns(self, sheet: str, before_column: int, count: int) -> None:
        first = self._sheet(sheet).range((1, before_column), (1, before_column + count - 1))
        first.api.EntireColumn.Insert(Shift=_XL_SHIFT_TO_RIGHT)

    # -- tables --------------------------------------------------------

    @staticmethod
    def _list_objects(sheet: xw.Sheet) -> Iterator[Any]:
        list_objects = sheet.api.ListObjects
        for index in range(1, int(list_objects.Count) + 1):
            yield list_objects.Item(index)

    def _lookup_table(self, name: str) -> tuple[xw.Sheet, Any]:
        for sheet in self.book.sheets:
            for table in self._list_objects(sheet):
                if str(table.Name).lower() == name.lower():
                    return sheet, table
        raise ValueError(f"Table not found: {name}")

    def _table_info(self, sheet: xw.Sheet, table: Any) -> TableInfo:
        columns = table.ListColumns
        return TableInfo(
            name=str(table.Name),
            sheet=sheet.name,
            rectangle=_rect_from_api(sheet.name, table.Range),
            header_rows=1 if table.ShowHeaders else 0,
            totals_rows=1 if table.ShowTotals else 0,
            tag=str(table.Comment) or None,
            column_names=[
                str(columns.Item(i).Name) for i in range(1, int(columns.Count) + 1)
            ],
        )

    def table_names(self) -> list[str]:
        return [
            str(table.Name)
            for sheet in self.book.sheets
            for table in self._list_objects(sheet)
        ]

    def find_table(self, sheet: str, name: str) -> TableInfo | None:
        if sheet not in self.sheet_names():
            return None
        target = self.book.sheets[sheet]
        for table in self._list_objects(target):
            if str(table.Name).lower() == name.lower():
                return self._table_info(target, table)
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
        sheet = self._sheet(rect.sheet)
        table = sheet.api.ListObjects.Add(
            SourceType=_XL_SRC_RANGE,
            Source=self._range(rect).api,
            XlListObjectHasHeaders=_XL_YES if has_headers else _XL_NO,
        )
        table.Name = name
        if style:
            table.TableStyle = style
        if tag:
            table.Comment = tag
        return self._table_info(sheet, table)

    def delete_table(self, name: str) -> None:
        _, table = self._lookup_table(name)
        self._connected.discard(str(table.Name))
        table.Unlist()

    def resize_table(self, name: str, rect: Rectangle) -> TableInfo:
        sheet, table = self._lookup_table(name)
        table.Resize(self._range(rect).api)
        return self._table_info(sheet, table)

    def set_table_totals(self, name: str, show: bool) -> TableInfo:
        sheet, table = self._lookup_table(name)
        table.ShowTotals = show
        return self._table_info(sheet, table)

    def rename_table_column(self, name: str, index: int, new_name: str) -> None:
        _, table = self._lookup_table(name)
        table.ListColumns(index).Name = new_name

    def connect_table(self, name: str, rows: Sequence[Sequence[CellValue]]) -> None:
        sheet, table = self._lookup_table(name)
        data = self._table_info(sheet, table).data_rectangle
        if len(rows) > data.rows:
            raise ValueError(f"Table '{name}' holds {data.rows} data rows; got {len(rows)}.")
        self._write_literals(data, rows)
        self._connected.add(str(table.Name))

    def disconnect_table(self, name: str) -> None:
        _, table = self._lookup_table(name)
        self._connected.discard(str(table.Name))

    def is_table_connected(self, name: str) -> bool:
        _, table = self._lookup_table(name)
        return str(table.Name) in self._connected

    # -- formatting ----------------------------------------------------

    def format_range(self, rect: Rectangle, number_formats: Sequence[str | None]) -> None:
        if rect.is_empty:
            return
        for offset in range(rect.columns):
            fmt = number_formats[offset] if offset < len(number_formats) else None
            self._range(rect.column(offset + 1)).number_format = fmt or "General"

    def autofit_columns(self, rect: Rectangle) -> None:
        if not rect.is_empty:
            self._range(rect).columns.autofit()

    # -- occupants -----------------------------------------------------

    def find_occupants(self, sheet: str) -> list[OccupyingObject]:
        target = self._sheet(sheet)
        occupants: list[OccupyingObject] = []
        for table in self._list_objects(target):
            occupants.append(
                OccupyingObject(
                    kind="table",
                    name=str(table.Name),
                    bounds=_rect_from_api(sheet, table.Range),
                    tag=str(table.Comment) or None,
                )
            )
        pivots = target.api.PivotTables()
        for index in range(1, int(pivots.Count) + 1):
            pivot = pivots.Item(index)
            regions = [
                self._pivot_region(sheet, pivot, attribute)
                for attribute in ("TableRange1", "TableRange2", "PageRange", "DataBodyRange")
            ]
            bounds = regions[1] or regions[0]
            if bounds is None:
                continue
            occupants.append(
                OccupyingObject(
                    kind="pivot_table",
                    name=str(pivot.Name),
                    bounds=bounds,
                    regions=regions,
                )
            )
        charts = target.api.ChartObjects()
        for index in range(1, int(charts.Count) + 1):
            chart = charts.Item(index)
            top_left, bottom_right = chart.TopLeftCell, chart.BottomRightCell
            occupants.append(
                OccupyingObject(
                    kind="chart",
                    name=str(chart.Name),
                    bounds=Rectangle(
                        sheet=sheet,
                        top=int(top_left.Row),
                        left=int(top_left.Column),
                        rows=int(bottom_right.Row) - int(top_left.Row) + 1,
                        columns=int(bottom_right.Column) - int(top_left.Column) + 1,
                    ),
                )
            )
        return occupants

    @staticmethod
    def _pivot_region(sheet: str, pivot: Any, attribute: str) -> Rectangle | None:
        # PageRange raises when the pivot table has no page fields
        try:
            api_range = getattr(pivot, attribute)
        except Exception:
            logger.debug("Pivot table %s has no %s", pivot.Name, attribute)
            return None
        if api_range is None:
            return None
        return _rect_from_api(sheet, api_range)


__all__ = ["XlwingsDocument", "XlwingsSession"]
