from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

KEY_COLUMN_NAME = "RowId"


class QueryColumn(BaseModel):
    """Column metadata of a query result."""

    name: str
    display_name: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @staticmethod
    def ordinal_name(index: int) -> str:
        """Return the positional fallback name for the 1-based ``index``."""
        return f"Column{index}"


class QueryResult(BaseModel):
    """Rows and columns returned by an upstream query."""

    columns: list[QueryColumn] = Field(default_factory=list)
    rows: list[list[Any]] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def with_row_key(self, name: str = KEY_COLUMN_NAME) -> QueryResult:
        """Return a copy with a leading 1-based row number column."""
        return QueryResult(
            columns=[QueryColumn(name=name), *self.columns],
            rows=[[position, *row] for position, row in enumerate(self.rows, start=1)],
        )

    def column_kinds(self) -> list[type | None]:
        """Return the Python type of the first non-empty value per column."""
        kinds: list[type | None] = []
        for index in range(self.column_count):
            kind: type | None = None
            for row in self.rows:
                value = row[index] if index < len(row) else None
                if value is not None:
                    kind = type(value)
                    break
            kinds.append(kind)
        return kinds


@runtime_checkable
class UpstreamConnection(Protocol):
    """A connection that can re-run the query behind a binding."""

    connection_id: str
    host_identifier: str

    def probe(self) -> bool:
        """Return True when the upstream accepts connections."""

    def execute(
        self, query: str, *, schema: str | None, result_set_index: int
    ) -> QueryResult:
        """Run ``query`` and return the selected result set."""


class ConnectionCatalog(Protocol):
    """Lookup of upstream connections by their persisted identity."""

    def get(self, connection_id: str) -> UpstreamConnection | None:
        """Return the connection, or None when it no longer exists."""


class StaticConnectionCatalog:
    """Dict-backed ``ConnectionCatalog``."""

    def __init__(self, connections: list[UpstreamConnection] | None = None) -> None:
        self._connections: dict[str, UpstreamConnection] = {}
        for connection in connections or []:
            self.add(connection)

    def add(self, connection: UpstreamConnection) -> None:
        self._connections[connection.connection_id] = connection

    def remove(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> UpstreamConnection | None:
        return self._connections.get(connection_id)

    def __len__(self) -> int:
        return len(self._connections)


__all__ = [
    "ConnectionCatalog",
    "KEY_COLUMN_NAME",
    "QueryColumn",
    "QueryResult",
    "StaticConnectionCatalog",
    "UpstreamConnection",
]
