from __future__ import annotations

from typing import Any

from openpyxl import Workbook
import pytest

from gridbind.binding.errors import ParentDocumentMissingError
from gridbind.binding.importer import import_query_result
from gridbind.binding.registry import BindingRegistry
from gridbind.core.geometry import Rectangle
from gridbind.host.openpyxl_host import OpenpyxlDocument


def _rect(ref: str, sheet: str = "Data") -> Rectangle:
    return Rectangle.from_a1(sheet, ref)


def test_import_with_synthetic_key_then_shrink(
    document: OpenpyxlDocument,
    connection: Any,
    registry: BindingRegistry,
    make_result: Any,
) -> None:
    connection.result = make_result(10)
    descriptor = import_query_result(
        document,
        connection,
        "SELECT id, name, amount FROM orders",
        _rect("B2"),
        registry=registry,
        table_name="orders",
        synthetic_key=True,
    )
    assert descriptor is not None
    assert descriptor in registry
    assert descriptor.record.synthetic_key is True
    assert descriptor.record.bound_object_name == "orders"
    assert descriptor.record.document_id == document.get_or_create_document_id()
    table = document.find_table("Data", "orders")
    assert table is not None
    assert table.rectangle == _rect("B2:E12")
    assert table.column_names == ["RowId", "id", "name", "amount"]
    assert table.tag == descriptor.record.bound_object_tag
    assert document.read_values(_rect("B3:B5")) == [[1], [2], [3]]

    connection.result = make_result(6)
    assert descriptor.refresh() is True
    table = document.find_table("Data", "orders")
    assert table is not None
    assert table.rectangle == _rect("B2:E8")
    assert document.read_values(_rect("B8:E8")) == [[6, 6, "item 6", 9.0]]
    assert document.read_values(_rect("B9:E12")) == [[None] * 4] * 4
    assert not document.is_table_connected("orders")


def test_import_names_tables_uniquely(
    document: OpenpyxlDocument, connection: Any, registry: BindingRegistry
) -> None:
    first = import_query_result(
        document, connection, "q", _rect("A1"), registry=registry, table_name="sales data"
    )
    second = import_query_result(
        document, connection, "q", _rect("H1"), registry=registry, table_name="sales data"
    )
    assert first is not None and second is not None
    assert first.record.bound_object_name == "sales_data"
    assert second.record.bound_object_name == "sales_data.2"
    assert len(registry) == 2


def test_import_with_summary_row(
    workbook: Workbook,
    document: OpenpyxlDocument,
    connection: Any,
    registry: BindingRegistry,
) -> None:
    descriptor = import_query_result(
        document, connection, "q", _rect("A1"), registry=registry, add_summary_row=True
    )
    assert descriptor is not None
    table = document.find_table("Data", "Table")
    assert table is not None
    assert table.totals_rows == 1
    assert table.rectangle == _rect("A1:C5")
    assert workbook["Data"]["A5"].value == "Total"


def test_import_into_missing_sheet(
    document: OpenpyxlDocument, connection: Any, registry: BindingRegistry
) -> None:
    with pytest.raises(ParentDocumentMissingError):
        import_query_result(document, connection, "q", _rect("A1", "Nope"), registry=registry)
    assert connection.calls == 0


def test_import_over_existing_table_returns_none(
    document: OpenpyxlDocument, connection: Any, registry: BindingRegistry
) -> None:
    document.create_table(_rect("A1:B3"), "Existing", has_headers=True, style=None, tag=None)
    descriptor = import_query_result(document, connection, "q", _rect("B2"), registry=registry)
    assert descriptor is None
    assert len(registry) == 0
    assert document.table_names() == ["Existing"]
