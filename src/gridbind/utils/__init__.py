from __future__ import annotations

from collections.abc import Sequence
import logging

import numpy as np

logger = logging.getLogger(__name__)
_warned_keys: set[str] = set()


def warn_once(key: str, message: str) -> None:
    if key not in _warned_keys:
        logger.warning(message)
        _warned_keys.add(key)


def is_empty_value(value: object) -> bool:
    # blank strings count as empty, like cells holding only whitespace
    return value is None or str(value).strip() == ""


def non_empty_mask(values: Sequence[Sequence[object]]) -> np.ndarray:
    """Return a rows x columns boolean mask of cells holding a value."""
    rows_n = len(values)
    cols_n = max((len(row) for row in values), default=0)
    mask = np.zeros((rows_n, cols_n), dtype=bool)
    for r, row in enumerate(values):
        for c, value in enumerate(row):
            if not is_empty_value(value):
                mask[r, c] = True
    return mask


def mask_bounds(mask: np.ndarray) -> tuple[int, int, int, int] | None:
    """Return (top, left, bottom, right) 0-based bounds of True cells."""
    if mask.size == 0 or not mask.any():
        return None
    ys, xs = np.where(mask)
    return int(ys.min()), int(xs.min()), int(ys.max()), int(xs.max())
