"""
DB connection helpers for the configured data source.

Uses python-oracledb (Oracle), psycopg (PostgreSQL), pymysql (MySQL) or trino
(Trino) depending on product_type. Output bind variables (including REF
CURSOR binds) are only available on Oracle.
"""

import logging
from typing import Any

import oracledb
import psycopg
import pymysql
from trino.auth import BasicAuthentication
from trino.dbapi import connect as trino_connect

from querygate.core.config import settings
from querygate.core.errors import ConfigurationError
from querygate.models import BindTypeEnum, DataSourceConfig, ProductTypeEnum

_log = logging.getLogger(__name__)

_DEFAULT_PORTS = {
    ProductTypeEnum.ORACLE: 1521,
    ProductTypeEnum.POSTGRES: 5432,
    ProductTypeEnum.MYSQL: 3306,
    ProductTypeEnum.TRINO: 8080,
}

_ORACLE_BIND_TYPES = {
    BindTypeEnum.STRING: oracledb.DB_TYPE_VARCHAR,
    BindTypeEnum.NUMBER: oracledb.DB_TYPE_NUMBER,
    BindTypeEnum.CURSOR: oracledb.DB_TYPE_CURSOR,
}

# CLOB/BLOB columns are fetched as str/bytes, not as connection-bound LOB handles
oracledb.defaults.fetch_lobs = False


def init_oracle_client(lib_dir: str | None) -> bool:
    """Switch python-oracledb to thick mode when an Instant Client dir is configured."""
    if not lib_dir:
        return False
    try:
        oracledb.init_oracle_client(lib_dir=lib_dir)
    except oracledb.Error:
        _log.exception("Oracle thick mode init failed (lib_dir=%s); staying in thin mode", lib_dir)
        return False
    _log.info("Oracle thick mode enabled (lib_dir=%s)", lib_dir)
    return True


def datasource_from_settings() -> DataSourceConfig:
    return DataSourceConfig(
        product_type=settings.DB_PRODUCT_TYPE,
        host=settings.DB_HOST,
        port=settings.DB_PORT,
        database=settings.DB_DATABASE,
        username=settings.DB_USER,
        password=settings.DB_PASSWORD,
        dsn=settings.DB_DSN,
    )


def connect(datasource: DataSourceConfig) -> Any:
    """Open one DB-API connection to *datasource*."""
    pt = datasource.product_type
    port = int(datasource.port or _DEFAULT_PORTS[pt])
    timeout = settings.DB_CONNECT_TIMEOUT

    if pt == ProductTypeEnum.ORACLE:
        dsn = datasource.dsn or oracledb.makedsn(
            datasource.host, port, service_name=datasource.database
        )
        return oracledb.connect(
            user=datasource.username,
            password=datasource.password,
            dsn=dsn,
            tcp_connect_timeout=float(timeout),
        )

    if not datasource.database or not datasource.username:
        raise ConfigurationError(f"{pt.value} data source must provide database and username")

    if pt == ProductTypeEnum.POSTGRES:
        return psycopg.connect(
            host=datasource.host,
            port=port,
            dbname=datasource.database,
            user=datasource.username,
            password=datasource.password,
            connect_timeout=timeout,
        )
    if pt == ProductTypeEnum.MYSQL:
        return pymysql.connect(
            host=datasource.host,
            port=port,
            database=datasource.database,
            user=datasource.username,
            password=datasource.password,
            connect_timeout=timeout,
        )
    if pt == ProductTypeEnum.TRINO:
        return trino_connect(
            host=datasource.host,
            port=port,
            user=datasource.username,
            auth=BasicAuthentication(datasource.username, datasource.password)
            if datasource.password
            else None,
            catalog=datasource.database,
            schema="default",
            source="querygate",
            http_scheme="https" if datasource.use_ssl else "http",
            request_timeout=timeout,
        )
    raise ConfigurationError(f"Unsupported product_type: {pt}")


def _set_statement_timeout(conn: Any, product_type: ProductTypeEnum, seconds: float) -> None:
    timeout_ms = int(seconds * 1000)
    if product_type == ProductTypeEnum.ORACLE:
        conn.call_timeout = timeout_ms
        return
    cur = conn.cursor()
    try:
        if product_type == ProductTypeEnum.POSTGRES:
            cur.execute("SET statement_timeout = %s", (str(timeout_ms),))
        elif product_type == ProductTypeEnum.MYSQL:
            cur.execute("SET SESSION max_execution_time = %s", (timeout_ms,))
        elif product_type == ProductTypeEnum.TRINO:
            cur.execute("SET SESSION query_max_execution_time = '%ss'" % int(seconds))
    finally:
        cur.close()


def execute(
    conn: Any,
    sql: str,
    params: dict | None = None,
    *,
    product_type: ProductTypeEnum | None = None,
    cursor: Any = None,
) -> Any:
    """Execute *sql* and return the cursor.

    Applies ``DB_STATEMENT_TIMEOUT`` around the statement when product_type is
    given and resets it afterwards. Pass *cursor* to execute on a cursor that
    already owns bind variables.
    """
    timeout_sec = settings.DB_STATEMENT_TIMEOUT
    timed = bool(timeout_sec and timeout_sec > 0 and product_type is not None)
    if timed:
        _set_statement_timeout(conn, product_type, timeout_sec)

    cur = cursor if cursor is not None else conn.cursor()
    try:
        if params:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    finally:
        if timed:
            try:
                _set_statement_timeout(conn, product_type, 0)
            except Exception:
                _log.debug("statement timeout reset failed", exc_info=True)
    return cur


def column_names(cursor: Any) -> list[str]:
    """Column names from ``cursor.description`` (empty when there is no result set)."""
    desc = cursor.description
    if not desc:
        return []
    return [d[0] for d in desc]


def bind_variable(cursor: Any, scalar_type: BindTypeEnum, product_type: ProductTypeEnum) -> Any:
    """Create an output bind variable on *cursor* for the declared scalar type."""
    if product_type != ProductTypeEnum.ORACLE:
        raise ConfigurationError(
            f"Output binds are not supported for product_type {product_type.value}"
        )
    return cursor.var(_ORACLE_BIND_TYPES[scalar_type])
