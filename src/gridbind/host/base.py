from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Literal, Protocol, TypeAlias, runtime_checkable

from pydantic import BaseModel, Field

from ..core.geometry import GridLimits, Rectangle
from .session import HostSession

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..core.collision import OccupyingObject

CellValue: TypeAlias = str | int | float | bool | datetime | date | time | None
SheetVisibility = Literal["visible", "hidden", "very_hidden"]
TOTALS_LABEL = "Total"


class TableInfo(BaseModel):
    """Snapshot of a host table object (Excel ListObject)."""

    name: str
    sheet: str
    rectangle: Rectangle
    header_rows: int = Field(default=1, ge=0, le=1)
    totals_rows: int = Field(default=0, ge=0, le=1)
    tag: str | None = None
    column_names: list[str] = Field(default_factory=list)

    @property
    def data_rectangle(self) -> Rectangle:
        """Cells between the header row and the totals row."""
        return self.rectangle.sub(
            self.header_rows,
            0,
            self.rectangle.rows - self.header_rows - self.totals_rows,
            self.rectangle.columns,
        )


@runtime_checkable
class GridDocument(Protocol):
    """Capability interface over a host spreadsheet document.

    Sheets are identified by name. All rectangles are 1-based and inclusive.
    """

    session: HostSession

    @property
    def name(self) -> str:
        """Display name of the document."""

    @property
    def path(self) -> str | None:
        """Full path of the document when it has been saved."""

    @property
    def limits(self) -> GridLimits:
        """Maximum grid size for this document."""

    def get_or_create_document_id(self) -> str:
        """Return a stable identifier stored inside the document."""

    def sheet_names(self) -> list[str]:
        """Return sheet names in document order."""

    def add_sheet(self, name: str, visibility: SheetVisibility) -> None:
        """Create a new sheet with the given name and visibility."""

    def get_sheet_visibility(self, sheet: str) -> SheetVisibility:
        """Return sheet visibility."""

    def set_sheet_visibility(self, sheet: str, visibility: SheetVisibility) -> None:
        """Change sheet visibility."""

    def delete_sheet(self, sheet: str) -> None:
        """Remove a sheet from the document."""

    def activate(self, rect: Rectangle) -> None:
        """Give focus to a sheet and select a block of cells."""

    def is_row_hidden(self, sheet: str, row: int) -> bool:
        """Return whether a row is hidden by filters or grouping."""

    def read_values(self, rect: Rectangle) -> list[list[CellValue]]:
        """Return evaluated cell values as a rows x columns matrix."""

    def write_values(self, rect: Rectangle, values: Sequence[Sequence[CellValue]]) -> None:
        """Write literal values (never interpreted as formulas)."""

    def write_formulas(self, rect: Rectangle, formulas: Sequence[Sequence[str]]) -> None:
        """Write formulas into a block of cells."""

    def clear_values(self, rect: Rectangle) -> None:
        """Clear cell contents in a block of cells."""

    def insert_rows(self, sheet: str, before_row: int, count: int) -> None:
        """Insert whole rows, shifting content down."""

    def insert_columns(self, sheet: str, before_column: int, count: int) -> None:
        """Insert whole columns, shifting content right."""

    def table_names(self) -> list[str]:
        """Return table names across all sheets."""

    def find_table(self, sheet: str, name: str) -> TableInfo | None:
        """Locate a table by sheet and name."""

    def create_table(
        self,
        rect: Rectangle,
        name: str,
        *,
        has_headers: bool,
        style: str | None,
        tag: str | None,
    ) -> TableInfo:
        """Create a table covering ``rect``."""

    def delete_table(self, name: str) -> None:
        """Remove a table object, leaving its cells in place."""

    def resize_table(self, name: str, rect: Rectangle) -> TableInfo:
        """Move/resize a table so it covers ``rect``."""

    def set_table_totals(self, name: str, show: bool) -> TableInfo:
        """Show or hide a table's totals row."""

    def rename_table_column(self, name: str, index: int, new_name: str) -> None:
        """Rename the 1-based column ``index`` of a table."""

    def connect_table(self, name: str, rows: Sequence[Sequence[CellValue]]) -> None:
        """Bind rows to a table's data body."""

    def disconnect_table(self, name: str) -> None:
        """Release a table's data binding, leaving its cells editable."""

    def is_table_connected(self, name: str) -> bool:
        """Return whether a table is currently bound to a data source."""

    def format_range(self, rect: Rectangle, number_formats: Sequence[str | None]) -> None:
        """Apply one number format per column of ``rect``."""

    def autofit_columns(self, rect: Rectangle) -> None:
        """Fit column widths to the content of ``rect``."""

    def find_occupants(self, sheet: str) -> list[OccupyingObject]:
        """Return tables, pivot tables and charts on a sheet, in that order."""


__all__ = ["CellValue", "GridDocument", "SheetVisibility", "TOTALS_LABEL", "TableInfo"]
