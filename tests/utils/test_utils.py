from __future__ import annotations

import logging

import numpy as np
import pytest

from gridbind.utils import is_empty_value, mask_bounds, non_empty_mask, warn_once
from gridbind.utils.formula import evaluate_row_key_formula, row_key_formula


@pytest.mark.parametrize(
    ("offset", "expected"), [(0, "=ROW()"), (1, "=ROW()-1"), (-2, "=ROW()+2")]
)
def test_row_key_formula(offset: int, expected: str) -> None:
    assert row_key_formula(offset) == expected
    assert evaluate_row_key_formula(expected, 5) == 5 - offset


def test_evaluate_ignores_other_formulas() -> None:
    assert evaluate_row_key_formula("= row ( ) - 3", 10) == 7
    assert evaluate_row_key_formula("=ROW(A1)", 10) is None
    assert evaluate_row_key_formula(42, 10) is None


def test_empty_values() -> None:
    assert is_empty_value(None)
    assert is_empty_value("  ")
    assert not is_empty_value(0)
    assert not is_empty_value(False)


def test_mask_bounds() -> None:
    mask = non_empty_mask([[None, None, None], [None, "x", None], [None, None, 3]])
    assert mask.dtype == np.bool_
    assert mask_bounds(mask) == (1, 1, 2, 2)
    assert mask_bounds(non_empty_mask([[None, ""]])) is None
    assert mask_bounds(non_empty_mask([])) is None


def test_warn_once(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="gridbind.utils"):
        warn_once("test-warn-once", "first")
        warn_once("test-warn-once", "second")
    assert [r.getMessage() for r in caplog.records] == ["first"]
