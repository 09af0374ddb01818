from __future__ import annotations

from collections.abc import Callable

import pytest

from gridbind.binding.registry import BindingRegistry
from gridbind.query import QueryColumn, QueryResult

ResultFactory = Callable[..., QueryResult]


def _make_result(
    row_count: int, columns: tuple[str, ...] = ("id", "name", "amount")
) -> QueryResult:
    rows = [[i, f"item {i}", i * 1.5][: len(columns)] for i in range(1, row_count + 1)]
    return QueryResult(columns=[QueryColumn(name=name) for name in columns], rows=rows)


class FakeConnection:
    """In-memory upstream whose reachability and result can be changed by tests."""

    def __init__(self, connection_id: str = "warehouse", result: QueryResult | None = None):
        self.connection_id = connection_id
        self.host_identifier = f"fake://{connection_id}"
        self.result = result if result is not None else _make_result(3)
        self.reachable = True
        self.error: Exception | None = None
        self.on_execute: Callable[[], None] | None = None
        self.calls = 0

    def probe(self) -> bool:
        return self.reachable

    def execute(
        self, query: str, *, schema: str | None = None, result_set_index: int = 0
    ) -> QueryResult:
        self.calls += 1
        if self.on_execute is not None:
            self.on_execute()
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def make_result() -> ResultFactory:
    return _make_result


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def registry() -> BindingRegistry:
    return BindingRegistry()
