"""Bind query results to spreadsheet tables and keep them refreshable."""

from __future__ import annotations

import logging

from .binding import (
    BindingDescriptor,
    BindingFault,
    BindingRecord,
    BindingRegistry,
    import_query_result,
)
from .core.collision import find_first_intersection, resolve
from .core.geometry import GridLimits, Rectangle, clamp
from .core.staging import StagingArea
from .host import GridDocument, HostSession, OpenpyxlDocument
from .query import QueryColumn, QueryResult, StaticConnectionCatalog
from .workbook import open_openpyxl_document

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "BindingDescriptor",
    "BindingFault",
    "BindingRecord",
    "BindingRegistry",
    "GridDocument",
    "GridLimits",
    "HostSession",
    "OpenpyxlDocument",
    "QueryColumn",
    "QueryResult",
    "Rectangle",
    "StagingArea",
    "StaticConnectionCatalog",
    "clamp",
    "find_first_intersection",
    "import_query_result",
    "open_openpyxl_document",
    "resolve",
]
