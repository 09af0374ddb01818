from __future__ import annotations

from .descriptor import BindingDescriptor, BindingRecord
from .errors import (
    BindingFault,
    ParentDocumentMissingError,
    SchemaMissingError,
    TableMissingError,
)
from .importer import import_query_result
from .rebind import column_number_formats, rebind_table
from .registry import BindingRegistry, RegistrySnapshot

__all__ = [
    "BindingDescriptor",
    "BindingFault",
    "BindingRecord",
    "BindingRegistry",
    "ParentDocumentMissingError",
    "RegistrySnapshot",
    "SchemaMissingError",
    "TableMissingError",
    "column_number_formats",
    "import_query_result",
    "rebind_table",
]
