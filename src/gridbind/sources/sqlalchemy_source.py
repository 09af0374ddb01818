"""SQLAlchemy-backed upstream connection."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..binding.errors import SchemaMissingError, TableMissingError
from ..query import QueryColumn, QueryResult

logger = logging.getLogger(__name__)

_MISSING_TABLE_MARKERS = (
    "no such table",
    "doesn't exist",
    "does not exist",
    "unknown table",
    "invalid object name",
)


def _is_in_memory_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(url: str | URL, **kwargs: Any) -> Engine:
    """Create an engine; in-memory SQLite shares one connection."""
    parsed = make_url(str(url)) if isinstance(url, str) else url
    if _is_in_memory_sqlite(parsed):
        kwargs.setdefault("poolclass", StaticPool)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(parsed, **kwargs)


class SqlAlchemyConnection:
    """``UpstreamConnection`` over a SQLAlchemy engine."""

    def __init__(
        self,
        connection_id: str,
        url: str | URL,
        *,
        engine: Engine | None = None,
    ) -> None:
        self.connection_id = connection_id
        self.url = make_url(str(url)) if isinstance(url, str) else url
        self.host_identifier = self.url.render_as_string(hide_password=True)
        self.engine = engine if engine is not None else build_engine(self.url)

    def __repr__(self) -> str:
        return f"SqlAlchemyConnection({self.connection_id!r}, {self.host_identifier!r})"

    def probe(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Connection %s refused: %s", self.connection_id, exc)
            return False
        return True

    def execute(
        self, query: str, *, schema: str | None = None, result_set_index: int = 0
    ) -> QueryResult:
        """Run ``query`` and return its rows.

        Raises:
            ValueError: If a result set other than the first is requested.
            SchemaMissingError: If ``schema`` does not exist.
            TableMissingError: If the query reads a table that does not exist.
        """
        if result_set_index != 0:
            raise ValueError("Only the first result set is supported.")
        if schema and schema not in inspect(self.engine).get_schema_names():
            raise SchemaMissingError(f"Schema not found: {schema}")
        try:
            with self.engine.connect() as conn:
                cursor = conn.execute(text(query))
                columns = [QueryColumn(name=str(key)) for key in cursor.keys()]
                rows = [list(row) for row in cursor]
        except DBAPIError as exc:
            message = str(exc.orig).lower()
            if any(marker in message for marker in _MISSING_TABLE_MARKERS):
                raise TableMissingError(str(exc.orig)) from exc
            raise
        logger.debug("%s returned %d rows", self.connection_id, len(rows))
        return QueryResult(columns=columns, rows=rows)

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = ["SqlAlchemyConnection", "build_engine"]
