from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from pathlib import Path
import warnings

from openpyxl import Workbook, load_workbook

from .host.openpyxl_host import OpenpyxlDocument

logger = logging.getLogger(__name__)

_IGNORED_OPENPYXL_WARNINGS = (
    "Unknown extension is not supported and will be removed",
    "Conditional Formatting extension is not supported and will be removed",
    "Cannot parse header or footer so it will be ignored",
)


def _load(file_path: Path, *, data_only: bool) -> Workbook:
    with warnings.catch_warnings():
        for message in _IGNORED_OPENPYXL_WARNINGS:
            warnings.filterwarnings(
                "ignore", message=message, category=UserWarning, module="openpyxl"
            )
        return load_workbook(
            file_path, data_only=data_only, keep_vba=file_path.suffix.lower() == ".xlsm"
        )


@contextmanager
def open_openpyxl_document(
    file_path: Path,
    *,
    create: bool = False,
    compatibility_mode: bool = False,
) -> Iterator[OpenpyxlDocument]:
    """Open a workbook file as an ``OpenpyxlDocument`` and close it afterwards.

    Formula results cached by the last spreadsheet application that saved
    the file are loaded alongside so they can be read back as values.

    Args:
        file_path: Workbook path.
        create: Start from an empty workbook when the file does not exist.
        compatibility_mode: Use legacy grid limits.

    Yields:
        Document wrapper. Nothing is saved automatically.
    """
    if file_path.exists():
        workbook = _load(file_path, data_only=False)
        cached: Workbook | None = _load(file_path, data_only=True)
    elif create:
        logger.info("Creating new workbook %s", file_path)
        workbook = Workbook()
        cached = None
    else:
        raise FileNotFoundError(f"Workbook not found: {file_path}")
    try:
        yield OpenpyxlDocument(
            workbook,
            path=file_path,
            cached_values=cached,
            compatibility_mode=compatibility_mode,
        )
    finally:
        workbook.close()
        if cached is not None:
            cached.close()


@contextmanager
def open_xlwings_document(file_path: Path, *, visible: bool = False) -> Iterator[object]:
    """Open a workbook in Excel via xlwings; reuses an already open book.

    Args:
        file_path: Workbook path.
        visible: Whether to show the Excel application window.

    Yields:
        ``XlwingsDocument`` wrapper.
    """
    import xlwings as xw

    from .host.xlwings_host import XlwingsDocument

    existing = _find_open_workbook(file_path)
    if existing is not None:
        yield XlwingsDocument(existing)
        return

    app = xw.App(add_book=False, visible=visible)
    try:
        book = app.books.open(str(file_path))
        try:
            yield XlwingsDocument(book)
        finally:
            book.close()
    finally:
        app.quit()


def _find_open_workbook(file_path: Path) -> object | None:
    """Return the xlwings book already open for ``file_path``, if any."""
    import xlwings as xw

    resolved = file_path.resolve()
    for app in xw.apps:
        for book in app.books:
            if Path(book.fullname).resolve() == resolved:
                return book
    return None


__all__ = ["open_openpyxl_document", "open_xlwings_document"]
