"""
Bounded connection pool for the configured data source.

At most ``DB_POOL_SIZE`` connections are checked out at once; further callers
block in ``get_connection`` until one is released (or the acquire timeout
expires). Idle connections are reused with a health-check on checkout and a
max-age eviction.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, NamedTuple

from querygate.core.config import settings
from querygate.core.errors import QueryExecutionError
from querygate.models import DataSourceConfig

from .connect import connect

_log = logging.getLogger(__name__)

_PING_IDLE_THRESHOLD = 30.0  # only ping connections idle longer than this (seconds)


class _PoolEntry(NamedTuple):
    conn: Any
    created_at: float  # time.monotonic() when the connection was opened
    last_used: float   # time.monotonic() when last returned to pool


class PoolManager:
    """Connection pool with a capacity ceiling, health-check and max-age."""

    def __init__(
        self,
        datasource: DataSourceConfig,
        *,
        pool_size: int | None = None,
        max_age: float | None = None,
        acquire_timeout: float | None = None,
        connector: Callable[[DataSourceConfig], Any] = connect,
    ) -> None:
        self.datasource = datasource
        self._pool_size = pool_size or settings.DB_POOL_SIZE
        self._max_age = float(max_age if max_age is not None else settings.DB_POOL_MAX_AGE_SEC)
        self._acquire_timeout = (
            acquire_timeout if acquire_timeout is not None else settings.DB_POOL_ACQUIRE_TIMEOUT
        )
        self._connector = connector
        self._idle: list[_PoolEntry] = []
        self._created: dict[int, float] = {}
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(self._pool_size)
        self._in_use = 0

    @property
    def product_type(self):
        return self.datasource.product_type

    def get_connection(self) -> Any:
        """Check out a healthy connection, blocking while the pool is saturated."""
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise QueryExecutionError(
                f"Timed out after {self._acquire_timeout}s waiting for a database connection"
            )
        try:
            conn = self._checkout()
        except BaseException:
            self._slots.release()
            raise
        with self._lock:
            self._in_use += 1
        return conn

    def release(self, conn: Any) -> None:
        """Return a checked-out connection (kept idle, or closed when expired/broken)."""
        try:
            self._return(conn)
        finally:
            with self._lock:
                self._in_use -= 1
            self._slots.release()

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Scoped checkout: the connection is released on every exit path."""
        conn = self.get_connection()
        try:
            yield conn
        except BaseException:
            try:
                conn.rollback()
            except Exception:
                _log.debug("rollback after failure failed", exc_info=True)
            raise
        finally:
            self.release(conn)

    def dispose(self) -> None:
        """Close all idle connections."""
        with self._lock:
            entries, self._idle = self._idle, []
        for e in entries:
            self._forget(e.conn)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "pool_size": self._pool_size,
                "in_use": self._in_use,
                "idle_connections": len(self._idle),
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _checkout(self) -> Any:
        now = time.monotonic()
        while True:
            with self._lock:
                entry = self._idle.pop() if self._idle else None
            if entry is None:
                break
            if self._is_expired(entry.created_at):
                self._forget(entry.conn)
                continue
            if now - entry.last_used > _PING_IDLE_THRESHOLD and not self._is_alive(entry.conn):
                self._forget(entry.conn)
                continue
            return entry.conn

        conn = self._connector(self.datasource)
        with self._lock:
            self._created[id(conn)] = time.monotonic()
        return conn

    def _return(self, conn: Any) -> None:
        try:
            conn.rollback()
        except Exception:
            self._forget(conn)
            return
        with self._lock:
            created_at = self._created.get(id(conn), time.monotonic())
        if self._is_expired(created_at):
            self._forget(conn)
            return
        with self._lock:
            self._idle.append(
                _PoolEntry(conn=conn, created_at=created_at, last_used=time.monotonic())
            )

    def _is_expired(self, created_at: float) -> bool:
        return (time.monotonic() - created_at) > self._max_age

    def _forget(self, conn: Any) -> None:
        with self._lock:
            self._created.pop(id(conn), None)
        self._close_quiet(conn)

    @staticmethod
    def _is_alive(conn: Any) -> bool:
        """Lightweight ping: ``conn.ping()`` when the driver has it, else a no-op query."""
        try:
            ping = getattr(conn, "ping", None)
            if callable(ping):
                ping()
                return True
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.close()
            return True
        except Exception:
            return False

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except Exception:
            pass
