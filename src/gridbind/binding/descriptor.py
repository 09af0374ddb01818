from __future__ import annotations

from datetime import datetime
import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

from ..host.base import GridDocument, TableInfo
from ..query import ConnectionCatalog, QueryResult, UpstreamConnection
from ..utils import warn_once
from .errors import (
    CONNECTION_FAULTS,
    QUERY_FAULTS,
    BindingFault,
    SchemaMissingError,
    TableMissingError,
)
from .rebind import rebind_table

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .registry import BindingRegistry

logger = logging.getLogger(__name__)


class BindingRecord(BaseModel):
    """Persisted identity and state of one import binding."""

    binding_id: str = ""
    connection_id: str
    host_identifier: str = ""
    schema_name: str | None = None
    table_name: str | None = None
    query: str
    result_set_index: int = Field(default=0, ge=0)
    import_column_names: bool = True
    synthetic_key: bool = False
    bound_object_name: str
    bound_object_tag: str | None = None
    document_id: str
    document_name: str = ""
    document_path: str | None = None
    sheet_name: str
    last_access: datetime = Field(default_factory=datetime.now)
    error_state: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _fill_binding_id(self) -> BindingRecord:
        if not self.binding_id:
            self.binding_id = f"{self.document_id}/{self.bound_object_name}"
        return self


class BindingDescriptor:
    """Runtime side of a ``BindingRecord``: restore, test and refresh.

    A descriptor is inert until ``restore`` finds its table in a document
    whose id matches the record. Faults are kept as ``BindingFault`` bits in
    ``record.error_state``.
    """

    def __init__(
        self,
        record: BindingRecord,
        *,
        connection: UpstreamConnection | None = None,
        registry: BindingRegistry | None = None,
    ) -> None:
        self.record = record
        self.connection = connection
        self.registry = registry
        self.document: GridDocument | None = None
        self.table: TableInfo | None = None
        self._refreshing = False

    def __repr__(self) -> str:
        return f"BindingDescriptor({self.record.binding_id!r}, state={self.error_state!r})"

    @property
    def binding_id(self) -> str:
        return self.record.binding_id

    @property
    def error_state(self) -> BindingFault:
        return BindingFault(self.record.error_state)

    @error_state.setter
    def error_state(self, value: BindingFault) -> None:
        self.record.error_state = int(value)

    @property
    def is_resolved(self) -> bool:
        return self.document is not None and self.table is not None

    def _touch(self) -> None:
        self.record.last_access = datetime.now()

    def _identity(self) -> tuple[object, ...]:
        r = self.record
        return (
            r.connection_id.casefold(),
            (r.schema_name or "").casefold(),
            (r.table_name or "").casefold(),
            r.bound_object_name.casefold(),
            r.document_id.casefold(),
            r.sheet_name.casefold(),
            r.query,
            r.result_set_index,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BindingDescriptor):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def restore(
        self, document: GridDocument, catalog: ConnectionCatalog | None = None
    ) -> bool:
        """Re-resolve the bound table after the document was (re)opened.

        Args:
            document: Open host document.
            catalog: Source of upstream connections by id.

        Returns:
            True when the bound table was found.
        """
        if document.get_or_create_document_id() != self.record.document_id:
            return False
        self._touch()
        found = catalog.get(self.record.connection_id) if catalog is not None else None
        if found is not None:
            self.connection = found
        table = document.find_table(self.record.sheet_name, self.record.bound_object_name)
        if table is None:
            logger.debug(
                "Table %s not found on '%s'; binding stays unresolved.",
                self.record.bound_object_name,
                self.record.sheet_name,
            )
            return False
        self.document = document
        self.table = table
        self.error_state &= ~BindingFault.BOUND_OBJECT_MISSING
        self.test_connection()
        return True

    def test_connection(self) -> bool:
        """Probe the upstream connection and update the connection fault bits."""
        state = self.error_state & ~CONNECTION_FAULTS
        if self.connection is None:
            state |= BindingFault.UPSTREAM_CONNECTION_MISSING
        else:
            try:
                reachable = self.connection.probe()
            except Exception:
                logger.warning(
                    "Probe of connection %s failed.", self.record.connection_id, exc_info=True
                )
                reachable = False
            if not reachable:
                state |= BindingFault.CONNECTION_REFUSED
        self.error_state = state
        return not state & CONNECTION_FAULTS

    def refresh(self) -> bool:
        """Re-run the query and rebind the table.

        Returns:
            True when the table was rebound. Faults never propagate; they are
            recorded in ``error_state`` or logged.
        """
        if self._refreshing:
            logger.debug("Refresh of %s already in progress.", self.binding_id)
            return False
        document = self.document
        if document is None or self.table is None or not self.record.query:
            return False
        self._refreshing = True
        try:
            return self._refresh(document)
        finally:
            self._refreshing = False

    def _refresh(self, document: GridDocument) -> bool:
        self._touch()
        connection = self.connection
        if not self.test_connection() or connection is None:
            if self.error_state & BindingFault.UPSTREAM_CONNECTION_MISSING:
                warn_once(
                    f"binding-removed:{self.binding_id}",
                    f"Connection {self.record.connection_id} no longer exists; "
                    f"binding {self.binding_id} was removed.",
                )
                if self.registry is not None:
                    self.registry.remove(self)
                return False
            logger.warning(
                "Connection %s refused; %s was not refreshed.",
                self.record.connection_id,
                self.record.bound_object_name,
            )
            return False

        table = document.find_table(self.record.sheet_name, self.record.bound_object_name)
        if table is None:
            self.error_state |= BindingFault.BOUND_OBJECT_MISSING
            logger.warning(
                "Table %s no longer exists on '%s'.",
                self.record.bound_object_name,
                self.record.sheet_name,
            )
            return False
        self.table = table
        self.error_state &= ~QUERY_FAULTS

        try:
            if document.is_table_connected(table.name):
                document.disconnect_table(table.name)
            result = self._execute(connection)
        except SchemaMissingError:
            self.error_state |= BindingFault.SCHEMA_MISSING
            logger.warning("Schema %s no longer exists.", self.record.schema_name)
            return False
        except TableMissingError:
            self.error_state |= BindingFault.TABLE_MISSING
            logger.warning("Table %s no longer exists upstream.", self.record.table_name)
            return False
        except Exception:
            logger.exception("Failed to run the query behind %s.", table.name)
            return False

        try:
            self.table = rebind_table(
                document,
                table.name,
                self.record.sheet_name,
                result,
                import_column_names=self.record.import_column_names,
                exclude_tag=table.tag,
            )
        except Exception:
            logger.exception("Failed to rebind %s.", table.name)
            return False
        return True

    def _execute(self, connection: UpstreamConnection) -> QueryResult:
        result = connection.execute(
            self.record.query,
            schema=self.record.schema_name,
            result_set_index=self.record.result_set_index,
        )
        return result.with_row_key() if self.record.synthetic_key else result

    def close(self, *, delete_table: bool = False) -> None:
        """Release the live table and drop runtime handles."""
        document, table = self.document, self.table
        self.document = None
        self.table = None
        self.connection = None
        if document is None or table is None:
            return
        try:
            if document.is_table_connected(table.name):
                document.disconnect_table(table.name)
            if delete_table:
                document.delete_table(table.name)
        except Exception:
            logger.exception("Failed to release table %s.", table.name)


__all__ = ["BindingDescriptor", "BindingRecord"]
