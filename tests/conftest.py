import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from unittest.mock import MagicMock

import pytest

from querygate.models import ProductTypeEnum


class FakePool:
    """Pool stand-in that hands out one MagicMock connection and counts checkouts."""

    def __init__(self, product_type: ProductTypeEnum = ProductTypeEnum.ORACLE) -> None:
        self.product_type = product_type
        self.conn = MagicMock(name="conn")
        self.acquired = 0
        self.released = 0
        self.disposed = False
        self._lock = threading.Lock()

    @property
    def cursor(self) -> MagicMock:
        return self.conn.cursor.return_value

    def returns(self, columns: list[str], rows: list[tuple[Any, ...]]) -> None:
        self.cursor.description = [(c,) for c in columns]
        self.cursor.fetchmany.return_value = rows

    @contextmanager
    def connection(self) -> Iterator[Any]:
        with self._lock:
            self.acquired += 1
        try:
            yield self.conn
        finally:
            with self._lock:
                self.released += 1

    def dispose(self) -> None:
        self.disposed = True

    def stats(self) -> dict[str, int]:
        return {"pool_size": 1, "in_use": self.acquired - self.released, "idle_connections": 0}


@pytest.fixture
def pool() -> FakePool:
    return FakePool()
