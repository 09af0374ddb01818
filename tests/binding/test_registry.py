from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from openpyxl import Workbook
import pytest

from gridbind.binding.descriptor import BindingDescriptor, BindingRecord
from gridbind.binding.errors import BindingFault
from gridbind.binding.importer import import_query_result
from gridbind.binding.registry import BindingRegistry
from gridbind.core.geometry import Rectangle
from gridbind.host.openpyxl_host import OpenpyxlDocument
from gridbind.query import StaticConnectionCatalog


def _descriptor(document_id: str, name: str = "orders") -> BindingDescriptor:
    return BindingDescriptor(
        BindingRecord(
            connection_id="warehouse",
            query="SELECT * FROM orders",
            bound_object_name=name,
            document_id=document_id,
            sheet_name="Data",
        )
    )


def test_add_rejects_equal_descriptors() -> None:
    registry = BindingRegistry()
    first = _descriptor("doc-1")
    assert registry.add(first) is True
    assert registry.add(_descriptor("DOC-1", "Orders")) is False
    assert registry.add(_descriptor("doc-1", "returns")) is True
    assert registry.add(_descriptor("doc-2")) is True
    assert len(registry) == 3
    assert first.registry is registry
    assert [d.record.bound_object_name for d in registry.find_all("doc-1")] == [
        "orders",
        "returns",
    ]


def test_add_replaces_descriptor_with_same_binding_id() -> None:
    registry = BindingRegistry()
    stale = _descriptor("doc-1")
    registry.add(stale)
    fresh = _descriptor("DOC-1", "Orders")
    fresh.record.query = "SELECT id FROM orders"
    assert registry.add(fresh) is True
    assert registry.find_all("doc-1") == [fresh]
    assert registry.get("doc-1/ORDERS") is fresh
    assert stale.registry is None


def test_reimport_after_table_deleted_keeps_one_binding(
    document: OpenpyxlDocument, connection: Any, registry: BindingRegistry
) -> None:
    at = Rectangle.from_a1("Data", "A1")
    first = import_query_result(
        document, connection, "SELECT * FROM orders", at, registry=registry, table_name="orders"
    )
    assert first is not None
    document.delete_table("orders")
    second = import_query_result(
        document, connection, "SELECT id FROM orders", at, registry=registry, table_name="orders"
    )
    assert second is not None
    assert second.binding_id == first.binding_id
    assert registry.find_all(document.get_or_create_document_id()) == [second]
    assert second.record.query == "SELECT id FROM orders"
    assert first.registry is None


def test_remove() -> None:
    registry = BindingRegistry()
    descriptor = _descriptor("doc-1")
    registry.add(descriptor)
    assert registry.remove(descriptor) is True
    assert descriptor not in registry
    assert descriptor.registry is None
    assert registry.remove(descriptor) is False
    assert registry.find_all("doc-1") == []


def test_save_and_load_keep_every_field(tmp_path: Path, connection: Any) -> None:
    registry = BindingRegistry()
    descriptor = _descriptor("doc-1")
    descriptor.record.schema_name = "sales"
    descriptor.record.synthetic_key = True
    descriptor.error_state = BindingFault.CONNECTION_REFUSED | BindingFault.TABLE_MISSING
    registry.add(descriptor)

    path = registry.save(tmp_path / "nested" / "registry.json")
    loaded = BindingRegistry.load(path, StaticConnectionCatalog([connection]))
    (restored,) = list(loaded)
    assert restored.record == descriptor.record
    assert restored.error_state == BindingFault.CONNECTION_REFUSED | BindingFault.TABLE_MISSING
    assert restored.connection is connection
    assert restored.registry is loaded


def test_load_missing_file_is_empty(tmp_path: Path) -> None:
    assert len(BindingRegistry.load(tmp_path / "absent.json")) == 0


def test_load_rejects_unknown_version(tmp_path: Path) -> None:
    path = tmp_path / "registry.json"
    path.write_text(json.dumps({"version": 99, "bindings": []}), encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported registry version"):
        BindingRegistry.load(path)


def test_restore_and_refresh_only_touch_this_document(
    workbook: Workbook,
    document: OpenpyxlDocument,
    connection: Any,
    registry: BindingRegistry,
    make_result: Any,
) -> None:
    import_query_result(
        document,
        connection,
        "SELECT * FROM orders",
        Rectangle.from_a1("Data", "A1"),
        registry=registry,
        table_name="orders",
    )
    registry.add(_descriptor("some-other-document"))

    reopened = OpenpyxlDocument(workbook, name="Book1.xlsx")
    loaded = BindingRegistry()
    for descriptor in registry:
        loaded.add(BindingDescriptor(descriptor.record.model_copy()))
    restored = loaded.restore_all(reopened, StaticConnectionCatalog([connection]))
    assert [d.record.bound_object_name for d in restored] == ["orders"]

    connection.result = make_result(5)
    outcome = loaded.refresh_all(reopened)
    assert outcome == {restored[0].binding_id: True}
    table = reopened.find_table("Data", "orders")
    assert table is not None
    assert table.rectangle == Rectangle.from_a1("Data", "A1:C6")


def test_refresh_all_skips_unavailable_connections(
    document: OpenpyxlDocument, connection: Any, registry: BindingRegistry
) -> None:
    descriptor = import_query_result(
        document,
        connection,
        "SELECT * FROM orders",
        Rectangle.from_a1("Data", "A1"),
        registry=registry,
        table_name="orders",
    )
    assert descriptor is not None
    calls = connection.calls
    outcome = registry.refresh_all(document, connection_ids={"archive"})
    assert outcome == {descriptor.binding_id: False}
    assert descriptor in registry
    assert connection.calls == calls

    assert registry.refresh_all(document, connection_ids={"warehouse"}) == {
        descriptor.binding_id: True
    }
