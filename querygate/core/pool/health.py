"""
Connection health check for the configured data source.
"""

import logging

from querygate.models import ProductTypeEnum

from .manager import PoolManager

_log = logging.getLogger(__name__)

_HEALTH_SQL = {
    ProductTypeEnum.ORACLE: "SELECT 1 FROM DUAL",
}


def health_check(pool: PoolManager) -> bool:
    """Run a trivial SELECT through the pool; True if it returns a row."""
    sql = _HEALTH_SQL.get(pool.product_type, "SELECT 1")
    try:
        with pool.connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(sql)
                return cur.fetchone() is not None
            finally:
                cur.close()
    except Exception:
        _log.warning("Database health check failed", exc_info=True)
        return False
