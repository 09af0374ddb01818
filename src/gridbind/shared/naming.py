from __future__ import annotations

from collections.abc import Iterable
import re

_INVALID_TABLE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.\\]")
_MAX_ATTEMPTS = 10_000


def unique_sheet_name(proposed: str, existing: Iterable[str]) -> str:
    """Return a sheet name that avoids duplicates (``Copy N of <name>``)."""
    taken = {name.casefold() for name in existing}
    if proposed.casefold() not in taken:
        return proposed
    for index in range(1, _MAX_ATTEMPTS):
        candidate = f"Copy {index} of {proposed}"
        if candidate.casefold() not in taken:
            return candidate
    raise RuntimeError(f"Failed to resolve unique sheet name for {proposed}")


def unique_table_name(proposed: str, existing: Iterable[str]) -> str:
    """Return a table name that avoids duplicates (``name``, ``name.2``, ...)."""
    taken = {name.casefold() for name in existing}
    if proposed.casefold() not in taken:
        return proposed
    for index in range(2, _MAX_ATTEMPTS):
        candidate = f"{proposed}.{index}"
        if candidate.casefold() not in taken:
            return candidate
    raise RuntimeError(f"Failed to resolve unique table name for {proposed}")


def table_name_for(source_name: str) -> str:
    """Derive a valid spreadsheet table name from an upstream object name.

    Table names may only hold letters, digits, underscores, periods and
    backslashes, and must not start with a digit or period.
    """
    candidate = _INVALID_TABLE_NAME_CHARS.sub("_", source_name.strip())
    if not candidate:
        return "Table"
    if candidate[0].isdigit() or candidate[0] == ".":
        candidate = f"_{candidate}"
    return candidate
