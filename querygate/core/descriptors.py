"""
Query declarations from the environment.

Every variable whose name starts with ``QUERY_`` declares one query; fields
are separated by ``;``::

    QUERY_MEMBERS=api;select ${field} from member where name='${name}';/members
    QUERY_DETAIL=mybatis;member;detail;/members/detail;{"p_id":{"dir":"in","type":"number"}}
    QUERY_STATUS=mqtt;select * from status;/status;5000
    QUERY_LATEST=mqtt-mybatis;member;latest;/latest;10000

The result is an immutable tuple built once at startup. Any malformed
declaration raises ``ConfigurationError`` so the service refuses to start.
"""

import json
import logging
import os
from collections.abc import Mapping

from dotenv import dotenv_values
from pydantic import ValidationError as PydanticValidationError

from querygate.core.errors import ConfigurationError
from querygate.engines.sql.binds import parse_output_params
from querygate.engines.sql.placeholder import extract_names
from querygate.models import DialectEnum, ExposureEnum, QueryDescriptor, QueryKindEnum

_log = logging.getLogger(__name__)

QUERY_PREFIX = "QUERY_"
ENV_FILE = ".env"


def _require(parts: list[str], count: int, name: str, usage: str) -> list[str]:
    fields = [p.strip() for p in parts]
    if len(fields) < count or any(not f for f in fields[:count]):
        raise ConfigurationError(f"{name}: expected '{usage}'")
    return fields


def _parse_interval(raw: str, name: str) -> int:
    try:
        interval = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name}: interval must be an integer (ms), got {raw!r}") from e
    if interval <= 0:
        raise ConfigurationError(f"{name}: interval must be positive, got {interval}")
    return interval


def _normalize_endpoint(raw: str) -> str:
    return "/" + raw.strip().strip("/")


def parse_declaration(
    name: str,
    value: str,
    *,
    injection_check: bool = False,
    max_rows: int | None = None,
) -> QueryDescriptor:
    """Parse one ``QUERY_*`` value into a descriptor."""
    parts = value.split(";")
    raw_kind = parts[0].strip().lower()
    try:
        kind = QueryKindEnum(raw_kind)
    except ValueError as e:
        allowed = ", ".join(k.value for k in QueryKindEnum)
        raise ConfigurationError(f"{name}: unknown query type {raw_kind!r} (expected {allowed})") from e

    common = {"name": name, "injection_check": injection_check, "max_rows": max_rows}
    try:
        if kind == QueryKindEnum.API_PLAIN:
            f = _require(parts, 3, name, "api;<sql>;<endpoint>")
            return QueryDescriptor(
                dialect=DialectEnum.PLAIN,
                exposure=ExposureEnum.PULL,
                template=f[1],
                endpoint=_normalize_endpoint(f[2]),
                **common,
            )

        if kind == QueryKindEnum.API_DYNAMIC:
            f = _require(parts, 4, name, "mybatis;<namespace>;<statement id>;<endpoint>[;<output params>]")
            raw_params = ";".join(f[4:]).strip()
            output_params = {}
            if raw_params:
                try:
                    output_params = parse_output_params(json.loads(raw_params))
                except ValueError as e:
                    raise ConfigurationError(f"{name}: output params are not valid JSON: {e}") from e
            return QueryDescriptor(
                dialect=DialectEnum.DYNAMIC,
                exposure=ExposureEnum.PULL,
                namespace=f[1],
                statement_id=f[2],
                endpoint=_normalize_endpoint(f[3]),
                output_params=output_params,
                **common,
            )

        if kind == QueryKindEnum.PUSH_PLAIN:
            f = _require(parts, 4, name, "mqtt;<sql>;<topic>;<interval ms>")
            if extract_names(f[1]):
                _log.warning("%s: push query has placeholders %s that are never filled", name, extract_names(f[1]))
            return QueryDescriptor(
                dialect=DialectEnum.PLAIN,
                exposure=ExposureEnum.PUSH,
                template=f[1],
                topic=f[2],
                interval_ms=_parse_interval(f[3], name),
                **common,
            )

        f = _require(parts, 5, name, "mqtt-mybatis;<namespace>;<statement id>;<topic>;<interval ms>")
        return QueryDescriptor(
            dialect=DialectEnum.DYNAMIC,
            exposure=ExposureEnum.PUSH,
            namespace=f[1],
            statement_id=f[2],
            topic=f[3],
            interval_ms=_parse_interval(f[4], name),
            **common,
        )
    except PydanticValidationError as e:
        raise ConfigurationError(f"{name}: invalid declaration: {e}") from e


def load_descriptors(
    environ: Mapping[str, str] | None = None,
    *,
    injection_check: bool = False,
    max_rows: int | None = None,
) -> tuple[QueryDescriptor, ...]:
    """Parse all ``QUERY_*`` variables (sorted by name). Duplicate endpoints are rejected.

    Reads ``.env`` plus the process environment (process wins) unless *environ* is given.
    """
    env = environ
    if env is None:
        env = {**dotenv_values(ENV_FILE, interpolate=False), **os.environ}
    descriptors: list[QueryDescriptor] = []
    endpoints: dict[str, str] = {}
    for key in sorted(env):
        if not key.startswith(QUERY_PREFIX):
            continue
        d = parse_declaration(key, env[key], injection_check=injection_check, max_rows=max_rows)
        if d.endpoint:
            if d.endpoint in endpoints:
                raise ConfigurationError(
                    f"{key}: endpoint {d.endpoint} already declared by {endpoints[d.endpoint]}"
                )
            endpoints[d.endpoint] = key
        descriptors.append(d)
        _log.info("Query declared: %s (%s)", key, d.label)
    return tuple(descriptors)


def check_statements(descriptors: tuple[QueryDescriptor, ...], mapper) -> None:
    """Fail fast when a dynamic descriptor names a statement the mapper does not know."""
    for d in descriptors:
        if d.dialect != DialectEnum.DYNAMIC:
            continue
        if mapper is None or not mapper.has_statement(d.namespace, d.statement_id):
            raise ConfigurationError(
                f"{d.name}: statement {d.namespace}.{d.statement_id} is not defined in any mapper file"
            )
