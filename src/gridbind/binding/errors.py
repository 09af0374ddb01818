from __future__ import annotations

from enum import IntFlag


class BindingFault(IntFlag):
    """Fault bits of a binding; several may be set at once."""

    HEALTHY = 0
    UPSTREAM_CONNECTION_MISSING = 1
    CONNECTION_REFUSED = 2
    SCHEMA_MISSING = 4
    TABLE_MISSING = 8
    BOUND_OBJECT_MISSING = 16


CONNECTION_FAULTS = (
    BindingFault.UPSTREAM_CONNECTION_MISSING | BindingFault.CONNECTION_REFUSED
)
QUERY_FAULTS = (
    BindingFault.SCHEMA_MISSING
    | BindingFault.TABLE_MISSING
    | BindingFault.BOUND_OBJECT_MISSING
)


class SchemaMissingError(LookupError):
    """The upstream schema a binding reads from no longer exists."""


class TableMissingError(LookupError):
    """The upstream table a binding reads from no longer exists."""


class ParentDocumentMissingError(ValueError):
    """The target sheet or document of an import does not exist."""


__all__ = [
    "BindingFault",
    "CONNECTION_FAULTS",
    "ParentDocumentMissingError",
    "QUERY_FAULTS",
    "SchemaMissingError",
    "TableMissingError",
]
