from __future__ import annotations

import re

# =ROW(), =ROW()-1, = row() + 2 ...
_ROW_KEY_PATTERN = re.compile(
    r"^=\s*ROW\s*\(\s*\)\s*(?:(?P<sign>[+-])\s*(?P<offset>[0-9]+))?\s*$",
    re.IGNORECASE,
)


def row_key_formula(offset: int) -> str:
    """Build the row-position formula used for synthetic key columns.

    Args:
        offset: Amount subtracted from the row number.

    Returns:
        Formula text such as ``=ROW()-1``.
    """
    if offset == 0:
        return "=ROW()"
    if offset > 0:
        return f"=ROW()-{offset}"
    return f"=ROW()+{-offset}"


def evaluate_row_key_formula(formula: object, row: int) -> int | None:
    """Evaluate a row-position formula for a cell on ``row``.

    Args:
        formula: Raw cell content.
        row: 1-based row number of the cell holding the formula.

    Returns:
        The computed integer, or ``None`` when the text is not a row formula.
    """
    if not isinstance(formula, str):
        return None
    match = _ROW_KEY_PATTERN.match(formula.strip())
    if match is None:
        return None
    offset = int(match.group("offset") or 0)
    if match.group("sign") == "-":
        return row - offset
    return row + offset
