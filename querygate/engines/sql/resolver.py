"""
Dynamic statement resolution: request values -> mapper statement SQL.

Every request value goes through the injection gate (on its raw text, when
enabled) and then a best-effort JSON parse, so ``ids=[1,2]`` reaches the
statement as a list while ``name=Hannah`` stays a string.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from querygate.engines.sql.injection import check_injection

_log = logging.getLogger(__name__)


class StatementSource(Protocol):
    def resolve(self, namespace: str, statement_id: str, values: dict[str, Any]) -> str: ...


def coerce_json_best_effort(value: Any) -> Any:
    """``json.loads`` strings; return the original value when it is not valid JSON."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def map_statement_params(
    params: Mapping[str, Any],
    *,
    check_injection_enabled: bool = False,
    query_label: str | None = None,
) -> dict[str, Any]:
    """Gate and coerce all request values. Empty values are not passed on."""
    values: dict[str, Any] = {}
    for name, raw in params.items():
        if raw is None:
            continue
        if check_injection_enabled:
            check_injection(name, raw, query=query_label)
        if raw == "":
            continue
        values[name] = coerce_json_best_effort(raw)
    return values


def resolve_statement(
    mapper: StatementSource,
    namespace: str,
    statement_id: str,
    params: Mapping[str, Any],
    *,
    check_injection_enabled: bool = False,
    query_label: str | None = None,
) -> str:
    """Map *params* and ask the mapper for the statement's SQL text.

    Raises ``InjectionRejected`` before any resolution when a value trips the
    heuristic; mapper failures surface as ``ResolutionError``.
    """
    values = map_statement_params(
        params,
        check_injection_enabled=check_injection_enabled,
        query_label=query_label,
    )
    _log.info("%s.%s values=%s", namespace, statement_id, json.dumps(values, default=str))
    sql = mapper.resolve(namespace, statement_id, values)
    _log.debug("Resolved SQL: %s", sql)
    return sql
