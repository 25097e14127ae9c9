"""
JSON-safe conversion of normalized rows.

Integers outside the IEEE-754 safe range (|n| > 2**53 - 1) are emitted as
decimal strings so JavaScript consumers do not lose precision; every other
integer stays a JSON number. Integral ``Decimal`` values (Oracle NUMBER
columns) follow the integer rule.
"""

import json
import math
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

MAX_SAFE_INTEGER = 2**53 - 1


def _safe_int(n: int) -> int | str:
    if abs(n) > MAX_SAFE_INTEGER:
        return str(n)
    return n


def make_json_safe(obj: Any) -> Any:
    """Recursively convert DB values to JSON-serializable primitives.

    Handles: big integers, Decimal, datetime/date/time, timedelta, UUID,
    bytes, sets. Non-finite floats become None (JSON has no NaN). LOB values
    are read by the executor while the connection is held; anything left
    unrecognised is stringified without further I/O.
    """
    if obj is None or isinstance(obj, (bool, str)):
        return obj
    if isinstance(obj, int):
        return _safe_int(obj)
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            return None
        if obj == obj.to_integral_value():
            return _safe_int(int(obj))
        return float(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (date, time)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, dict):
        return {str(k): make_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [make_json_safe(item) for item in obj]
    if isinstance(obj, (set, frozenset)):
        return [make_json_safe(item) for item in sorted(obj, key=str)]
    return str(obj)


def rows_payload(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """The response/publish envelope: ``{"rows": [...]}``, JSON-safe."""
    return {"rows": make_json_safe(rows)}


def dumps_rows(rows: list[dict[str, Any]]) -> bytes:
    """UTF-8 JSON bytes of the rows envelope (publish payload)."""
    return json.dumps(rows_payload(rows), ensure_ascii=False, separators=(",", ":")).encode(
        "utf-8"
    )
