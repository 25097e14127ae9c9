"""
Query pipeline: descriptor + request parameters -> normalized rows.

Selects the SQL source by descriptor dialect (plain ``${name}`` template or
mapper statement), builds binds, executes on the pool and normalizes.
Shared by the endpoint dispatcher and the interval publisher.
"""

import logging
from collections.abc import Mapping
from typing import Any

from querygate.core.errors import ConfigurationError, ValidationError
from querygate.engines.sql import (
    BindDescriptor,
    NormalizedResult,
    build_binds,
    execute_query,
    map_request_params,
    normalize,
    resolve_statement,
)
from querygate.engines.sql.executor import ConnectionSource
from querygate.engines.sql.resolver import StatementSource
from querygate.models import DialectEnum, QueryDescriptor

_log = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 1000


class QueryPipeline:
    """run(descriptor, params) -> list of records."""

    def __init__(
        self,
        pool: ConnectionSource,
        mapper: StatementSource | None = None,
        *,
        default_max_rows: int = DEFAULT_MAX_ROWS,
    ) -> None:
        self.pool = pool
        self.mapper = mapper
        self.default_max_rows = default_max_rows

    def max_rows_for(self, descriptor: QueryDescriptor) -> int:
        return descriptor.max_rows or self.default_max_rows

    def render(
        self,
        descriptor: QueryDescriptor,
        params: Mapping[str, Any],
    ) -> tuple[str, dict[str, BindDescriptor]]:
        """Resolve the final SQL text and the bind descriptors for one request."""
        if not descriptor.is_complete:
            if descriptor.dialect == DialectEnum.PLAIN:
                raise ValidationError("Query item empty")
            raise ValidationError("Namespace or Query ID is empty")

        if descriptor.dialect == DialectEnum.PLAIN:
            sql = map_request_params(
                descriptor.template or "",
                params,
                check_injection_enabled=descriptor.injection_check,
                query_label=descriptor.label,
            )
            return sql, {}

        if descriptor.dialect == DialectEnum.DYNAMIC:
            if self.mapper is None:
                raise ConfigurationError(
                    f"{descriptor.label}: dynamic statements need a statement mapper"
                )
            sql = resolve_statement(
                self.mapper,
                descriptor.namespace or "",
                descriptor.statement_id or "",
                params,
                check_injection_enabled=descriptor.injection_check,
                query_label=descriptor.label,
            )
            return sql, build_binds(descriptor.output_params, params)

        raise ConfigurationError(f"Unsupported dialect: {descriptor.dialect}")

    def run(self, descriptor: QueryDescriptor, params: Mapping[str, Any]) -> NormalizedResult:
        sql, binds = self.render(descriptor, params)
        _log.debug("Final SQL for %s: %s", descriptor.label, sql)
        raw = execute_query(self.pool, sql, binds, max_rows=self.max_rows_for(descriptor))
        return normalize(raw)
