from __future__ import annotations

from .a1 import (
    column_index_to_label,
    column_label_to_index,
    format_cell,
    format_range,
    parse_cell,
    parse_range,
    split_a1,
)
from .naming import table_name_for, unique_sheet_name, unique_table_name

__all__ = [
    "column_index_to_label",
    "column_label_to_index",
    "format_cell",
    "format_range",
    "parse_cell",
    "parse_range",
    "split_a1",
    "table_name_for",
    "unique_sheet_name",
    "unique_table_name",
]
