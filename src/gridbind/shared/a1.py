from __future__ import annotations

import re

_CELL_PATTERN = re.compile(r"^\$?([A-Z]{1,3})\$?([1-9][0-9]*)$", re.IGNORECASE)
_LABEL_PATTERN = re.compile(r"^[A-Z]{1,3}$", re.IGNORECASE)


def split_a1(value: str) -> tuple[str, int]:
    """Split ``$B$7`` style text into (``"B"``, 7)."""
    match = _CELL_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"Not an A1 cell reference: {value!r}")
    return match.group(1).upper(), int(match.group(2))


def column_label_to_index(label: str) -> int:
    """Return the 1-based column number of a label such as ``AA``."""
    text = label.strip()
    if not _LABEL_PATTERN.match(text):
        raise ValueError(f"Not a column label: {label!r}")
    number = 0
    for letter in text.upper():
        number = number * 26 + ord(letter) - 64
    return number


def column_index_to_label(index: int) -> str:
    """Return the column label of a 1-based column number."""
    if index < 1:
        raise ValueError(f"Column number must be >= 1, got {index}.")
    label = ""
    while index:
        index, remainder = divmod(index - 1, 26)
        label = chr(65 + remainder) + label
    return label


def parse_cell(value: str) -> tuple[int, int]:
    """Parse an A1 cell reference into 1-based (row, column)."""
    label, row = split_a1(value)
    return row, column_label_to_index(label)


def format_cell(row: int, column: int) -> str:
    """Format 1-based (row, column) as an A1 cell reference."""
    if row < 1:
        raise ValueError("Row index must be positive.")
    return f"{column_index_to_label(column)}{row}"


def parse_range(value: str) -> tuple[int, int, int, int]:
    """Parse an A1 cell or range into (top, left, bottom, right).

    A single cell reference is treated as a 1x1 range. Reversed corners are
    normalized so that top <= bottom and left <= right.
    """
    candidate = value.strip()
    if ":" in candidate:
        start, _, end = candidate.partition(":")
    else:
        start, end = candidate, candidate
    start_row, start_col = parse_cell(start)
    end_row, end_col = parse_cell(end)
    return (
        min(start_row, end_row),
        min(start_col, end_col),
        max(start_row, end_row),
        max(start_col, end_col),
    )


def format_range(top: int, left: int, bottom: int, right: int) -> str:
    """Format corner coordinates as an A1 range (``B2:D6``)."""
    return f"{format_cell(top, left)}:{format_cell(bottom, right)}"
