from __future__ import annotations

import logging
import uuid

from ..core.geometry import Rectangle, clamp
from ..host.base import GridDocument
from ..query import UpstreamConnection
from ..shared.naming import table_name_for, unique_table_name
from .descriptor import BindingDescriptor, BindingRecord
from .errors import ParentDocumentMissingError
from .rebind import rebind_table
from .registry import BindingRegistry

logger = logging.getLogger(__name__)

DEFAULT_TABLE_STYLE = "TableStyleMedium2"


def import_query_result(
    document: GridDocument,
    connection: UpstreamConnection,
    query: str,
    at: Rectangle,
    *,
    registry: BindingRegistry,
    schema_name: str | None = None,
    table_name: str | None = None,
    result_set_index: int = 0,
    import_column_names: bool = True,
    synthetic_key: bool = False,
    add_summary_row: bool = False,
    table_style: str | None = DEFAULT_TABLE_STYLE,
) -> BindingDescriptor | None:
    """Import a query result as a new table and register its binding.

    Args:
        document: Target host document.
        connection: Upstream that runs ``query``.
        query: Query text; re-run on every refresh.
        at: Top-left cell of the new table.
        registry: Registry receiving the new binding.
        schema_name: Upstream schema.
        table_name: Upstream table, used to name the spreadsheet table.
        result_set_index: Result set to bind when the query returns several.
        import_column_names: Use result column names as headers.
        synthetic_key: Prepend a 1-based row number column.
        add_summary_row: Show a totals row under the data.
        table_style: Table style name.

    Returns:
        Registered descriptor, or None when the table could not be created.

    Raises:
        ParentDocumentMissingError: If the target sheet does not exist.
    """
    if at.sheet not in document.sheet_names():
        raise ParentDocumentMissingError(f"Sheet not found: {at.sheet}")
    result = connection.execute(query, schema=schema_name, result_set_index=result_set_index)
    if synthetic_key:
        result = result.with_row_key()

    name = unique_table_name(table_name_for(table_name or "Table"), document.table_names())
    tag = str(uuid.uuid4())
    columns = max(result.column_count, 1)
    try:
        document.create_table(
            clamp(at.top_left(), 2, columns, document.limits),
            name,
            has_headers=True,
            style=table_style,
            tag=tag,
        )
        if add_summary_row:
            document.set_table_totals(name, True)
        table = rebind_table(
            document,
            name,
            at.sheet,
            result,
            import_column_names=import_column_names,
            exclude_tag=tag,
        )
    except Exception:
        logger.exception("Failed to create table %s at %s.", name, at)
        return None

    record = BindingRecord(
        connection_id=connection.connection_id,
        host_identifier=connection.host_identifier,
        schema_name=schema_name,
        table_name=table_name,
        query=query,
        result_set_index=result_set_index,
        import_column_names=import_column_names,
        synthetic_key=synthetic_key,
        bound_object_name=name,
        bound_object_tag=tag,
        document_id=document.get_or_create_document_id(),
        document_name=document.name,
        document_path=document.path,
        sheet_name=at.sheet,
    )
    descriptor = BindingDescriptor(record, connection=connection)
    descriptor.document = document
    descriptor.table = table
    if not registry.add(descriptor):
        logger.debug("Binding %s already registered.", descriptor.binding_id)
    logger.info("Imported %d rows into %s", result.row_count, name)
    return descriptor


__all__ = ["DEFAULT_TABLE_STYLE", "import_query_result"]
