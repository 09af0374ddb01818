from __future__ import annotations

from gridbind.shared.naming import table_name_for, unique_sheet_name, unique_table_name


def test_unique_sheet_name_keeps_free_name() -> None:
    assert unique_sheet_name("TEMP_SHEET", ["Data"]) == "TEMP_SHEET"


def test_unique_sheet_name_adds_copy_prefix() -> None:
    existing = ["Data", "temp_sheet", "Copy 1 of TEMP_SHEET"]
    assert unique_sheet_name("TEMP_SHEET", existing) == "Copy 2 of TEMP_SHEET"


def test_unique_table_name_appends_counter() -> None:
    assert unique_table_name("orders", []) == "orders"
    assert unique_table_name("orders", ["Orders"]) == "orders.2"
    assert unique_table_name("orders", ["orders", "orders.2"]) == "orders.3"


def test_table_name_for_replaces_invalid_characters() -> None:
    assert table_name_for("sales data-2024") == "sales_data_2024"
    assert table_name_for("2024 sales") == "_2024_sales"
    assert table_name_for("   ") == "Table"
