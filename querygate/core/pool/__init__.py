"""
DB connections and the bounded pool for the configured data source.
"""

from .connect import (
    bind_variable,
    column_names,
    connect,
    datasource_from_settings,
    execute,
    init_oracle_client,
)
from .health import health_check
from .manager import PoolManager

__all__ = [
    "bind_variable",
    "column_names",
    "connect",
    "datasource_from_settings",
    "execute",
    "health_check",
    "init_oracle_client",
    "PoolManager",
]
