from __future__ import annotations

from functools import lru_cache
import os
import sys

from openpyxl import Workbook
import pytest

from gridbind.host.openpyxl_host import OpenpyxlDocument

IS_WINDOWS = sys.platform == "win32"


def _flag(name: str) -> bool:
    return os.getenv(name) == "1"


def pytest_configure(config: pytest.Config) -> None:
    """Register the ``com`` marker; ``-m com`` overrides SKIP_COM_TESTS."""
    config.addinivalue_line("markers", "com: requires Excel COM (Windows + Excel).")
    markexpr = (getattr(config.option, "markexpr", "") or "").split()
    if "com" in markexpr and "not" not in markexpr:
        os.environ.pop("SKIP_COM_TESTS", None)


@lru_cache(maxsize=1)
def _excel_available() -> bool:
    """Return True if an Excel application can be started through xlwings."""
    try:
        import xlwings as xw

        xw.App(add_book=False, visible=False).quit()
    except Exception:
        return False
    return True


def _com_skip_reason() -> str | None:
    if _flag("SKIP_COM_TESTS"):
        return "COM tests skipped via SKIP_COM_TESTS=1."
    if not IS_WINDOWS:
        return "COM tests require Windows."
    if _excel_available():
        return None
    if _flag("FORCE_COM_TESTS"):
        raise RuntimeError("Excel COM is unavailable but FORCE_COM_TESTS=1 is set.")
    return "Excel COM is unavailable."


def pytest_runtest_setup(item: pytest.Item) -> None:
    """Skip COM tests when Excel is not available."""
    if item.get_closest_marker("com") is None:
        return
    reason = _com_skip_reason()
    if reason:
        pytest.skip(reason)


@pytest.fixture
def workbook() -> Workbook:
    wb = Workbook()
    wb.active.title = "Data"
    return wb


@pytest.fixture
def document(workbook: Workbook) -> OpenpyxlDocument:
    return OpenpyxlDocument(workbook, name="Book1.xlsx")
