"""
Bind descriptors for dynamic statements with declared output parameters.

Declarations look like ``{"p_id": {"dir": "in", "type": "number"},
"p_cursor": {"dir": "out", "type": "cursor"}}``; they are validated when the
descriptor is loaded, and turned into per-request ``BindDescriptor`` values
by ``build_binds``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from querygate.core.errors import ConfigurationError
from querygate.models import BindDirectionEnum, BindTypeEnum, OutputParam


@dataclass(frozen=True)
class BindDescriptor:
    """One bind slot for a single execution. ``value`` is only set for IN binds."""

    direction: BindDirectionEnum
    scalar_type: BindTypeEnum
    value: Any = None

    @property
    def is_out(self) -> bool:
        return self.direction == BindDirectionEnum.OUT

    @property
    def is_cursor(self) -> bool:
        return self.scalar_type == BindTypeEnum.CURSOR


def _parse_token(enum_cls: type, raw: Any, what: str, name: str) -> Any:
    token = raw.strip().lower() if isinstance(raw, str) else raw
    try:
        return enum_cls(token)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"Output param '{name}': unknown {what} {raw!r} (expected one of: {allowed})"
        ) from e


def parse_output_params(raw: Mapping[str, Any] | None) -> dict[str, OutputParam]:
    """Validate a raw declaration mapping into ordered ``OutputParam`` values.

    Accepts ``dir``/``direction`` and ``type``/``scalar_type`` keys.
    """
    if not raw:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Output params must be an object, got {type(raw).__name__}")

    out: dict[str, OutputParam] = {}
    for name, spec in raw.items():
        if not isinstance(spec, Mapping):
            raise ConfigurationError(f"Output param '{name}' must be an object")
        direction = _parse_token(
            BindDirectionEnum, spec.get("dir", spec.get("direction")), "direction", name
        )
        scalar_type = _parse_token(
            BindTypeEnum, spec.get("type", spec.get("scalar_type")), "type", name
        )
        out[name] = OutputParam(direction=direction, scalar_type=scalar_type)
    return out


def _coerce_number(value: Any) -> float:
    """Parse as float; unparseable input becomes NaN (callers validate)."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return math.nan


def build_binds(
    output_params: Mapping[str, OutputParam],
    request_values: Mapping[str, Any],
) -> dict[str, BindDescriptor]:
    """One ``BindDescriptor`` per declared param, in declaration order.

    IN number -> float (NaN on parse failure); IN string -> raw value;
    IN cursor with a value -> ``ConfigurationError``; OUT -> no value.
    """
    binds: dict[str, BindDescriptor] = {}
    for name, param in output_params.items():
        if param.direction == BindDirectionEnum.OUT:
            binds[name] = BindDescriptor(param.direction, param.scalar_type)
            continue

        value = request_values.get(name)
        if param.scalar_type == BindTypeEnum.NUMBER:
            value = _coerce_number(value)
        elif param.scalar_type == BindTypeEnum.CURSOR and value is not None:
            raise ConfigurationError(
                f"Bind '{name}' is an IN cursor; cursor binds cannot take a request value"
            )
        binds[name] = BindDescriptor(param.direction, param.scalar_type, value)
    return binds
