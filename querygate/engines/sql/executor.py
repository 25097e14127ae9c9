"""
Execute resolved SQL against the pool.

- No OUT binds: returns a ``RowSet`` of at most ``max_rows`` rows.
- OUT binds: returns an ``OutBindResult``; every cursor bind is drained row
  by row and closed before the connection goes back to the pool.

Exactly one connection is checked out per call and it is released on every
exit path. Driver errors are wrapped in ``QueryExecutionError`` and never
retried here.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import oracledb
import psycopg
import pymysql
from trino.exceptions import TrinoExternalError, TrinoUserError

from querygate.core.errors import QueryExecutionError, QueryGateError
from querygate.core.pool import bind_variable, column_names, execute
from querygate.engines.sql.binds import BindDescriptor
from querygate.engines.sql.result import OutBindResult, RawResult, RowSet
from querygate.models import ProductTypeEnum

_log = logging.getLogger(__name__)

_DRIVER_ERRORS = (
    oracledb.Error,
    psycopg.Error,
    pymysql.Error,
    TrinoUserError,
    TrinoExternalError,
)


class ConnectionSource(Protocol):
    product_type: ProductTypeEnum

    def connection(self) -> Any: ...


def _close_quiet(cur: Any) -> None:
    try:
        cur.close()
    except Exception:
        pass


def _read_row(row: Any) -> tuple[Any, ...]:
    # LOB handles are only readable while the connection is checked out
    return tuple(v.read() if isinstance(v, oracledb.LOB) else v for v in row)


def fetch_row_set(cursor: Any, max_rows: int) -> RowSet:
    """Read up to *max_rows* rows from an executed cursor."""
    columns = column_names(cursor)
    if not columns:
        return RowSet()
    rows = [_read_row(r) for r in cursor.fetchmany(max_rows)]
    return RowSet(columns=columns, rows=rows)


def drain_cursor(ref_cursor: Any) -> RowSet:
    """Fetch every row of a REF CURSOR one at a time, then close it."""
    if ref_cursor is None:
        return RowSet()
    try:
        columns = column_names(ref_cursor)
        rows: list[tuple[Any, ...]] = []
        while True:
            row = ref_cursor.fetchone()
            if row is None:
                break
            rows.append(_read_row(row))
        return RowSet(columns=columns, rows=rows)
    finally:
        _close_quiet(ref_cursor)


def _execute_with_binds(
    conn: Any,
    sql: str,
    binds: Mapping[str, BindDescriptor],
    max_rows: int,
    product_type: ProductTypeEnum,
) -> RawResult:
    cur = conn.cursor()
    try:
        params: dict[str, Any] = {}
        out_vars: dict[str, tuple[BindDescriptor, Any]] = {}
        for name, bind in binds.items():
            if bind.is_out:
                var = bind_variable(cur, bind.scalar_type, product_type)
                out_vars[name] = (bind, var)
                params[name] = var
            else:
                params[name] = bind.value

        execute(conn, sql, params, product_type=product_type, cursor=cur)

        if not out_vars:
            return fetch_row_set(cur, max_rows)

        values: dict[str, Any] = {}
        for name, (bind, var) in out_vars.items():
            value = var.getvalue()
            values[name] = drain_cursor(value) if bind.is_cursor else value
        return OutBindResult(
            values=values,
            types={name: bind.scalar_type for name, (bind, _) in out_vars.items()},
        )
    finally:
        _close_quiet(cur)


def execute_query(
    pool: ConnectionSource,
    sql: str,
    binds: Mapping[str, BindDescriptor] | None = None,
    *,
    max_rows: int,
) -> RawResult:
    """Run *sql* with *binds* on one pooled connection and return the raw result."""
    try:
        with pool.connection() as conn:
            if binds:
                return _execute_with_binds(conn, sql, binds, max_rows, pool.product_type)
            cur = execute(conn, sql, product_type=pool.product_type)
            try:
                return fetch_row_set(cur, max_rows)
            finally:
                _close_quiet(cur)
    except QueryGateError:
        raise
    except _DRIVER_ERRORS as e:
        _log.error("Database error: %s. SQL: %s", e, sql, exc_info=True)
        raise QueryExecutionError(f"SQL execution failed: {e}", e) from e
    except Exception as e:
        _log.error("SQL execution failed: %s. SQL: %s", e, sql, exc_info=True)
        raise QueryExecutionError(f"SQL execution failed: {e}", e) from e
