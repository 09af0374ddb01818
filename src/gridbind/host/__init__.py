from __future__ import annotations

from .base import CellValue, GridDocument, SheetVisibility, TableInfo
from .openpyxl_host import OpenpyxlDocument
from .session import HostSession

__all__ = [
    "CellValue",
    "GridDocument",
    "HostSession",
    "OpenpyxlDocument",
    "SheetVisibility",
    "TableInfo",
]
