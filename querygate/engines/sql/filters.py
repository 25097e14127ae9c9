"""
Jinja2 filters for dynamic statement bodies.

Every filter returns ``SqlSafe`` so the ``finalize`` auto-escape knows the
value is already an SQL literal and does not quote it twice.
"""

import json
from datetime import date, datetime
from typing import Any

from jinja2 import Undefined

_SQL_QUOTE_ESCAPE = str.maketrans({"'": "''"})

# "x IN (NULL)" never matches, on every supported product
_EMPTY_IN = "(NULL)"


class SqlSafe(str):
    """String already rendered as SQL; ``sql_finalize`` passes it through."""


def _safe(v: str) -> SqlSafe:
    return SqlSafe(v)


def _quote(value: Any) -> str:
    return "'" + str(value).translate(_SQL_QUOTE_ESCAPE) + "'"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def sql_string(value: Any) -> SqlSafe:
    """Quoted string literal. None -> NULL."""
    if value is None:
        return _safe("NULL")
    return _safe(_quote(value))


def sql_int(value: Any) -> SqlSafe:
    """Integer literal; anything unparseable renders NULL."""
    if value is None:
        return _safe("NULL")
    try:
        return _safe(str(int(value)))
    except (TypeError, ValueError):
        return _safe("NULL")


def sql_float(value: Any) -> SqlSafe:
    if value is None:
        return _safe("NULL")
    try:
        return _safe(str(float(value)))
    except (TypeError, ValueError):
        return _safe("NULL")


def sql_date(value: Any) -> SqlSafe:
    """ANSI ``DATE 'YYYY-MM-DD'`` literal (Oracle, Postgres and MySQL accept it)."""
    if value is None:
        return _safe("NULL")
    d = value
    if isinstance(d, datetime):
        d = d.date()
    if isinstance(d, date):
        return _safe(f"DATE '{d.isoformat()}'")
    if isinstance(d, str) and len(d) >= 10 and d[4] == "-" and d[7] == "-":
        try:
            parsed = date.fromisoformat(d[:10])
        except ValueError:
            return _safe("NULL")
        return _safe(f"DATE '{parsed.isoformat()}'")
    return _safe("NULL")


def in_list(value: Any) -> SqlSafe:
    """Iterable -> ``(1, 'a', NULL)``; empty or not iterable -> ``(NULL)``."""
    if value is None or isinstance(value, (str, bytes, dict)):
        if isinstance(value, str) and value:
            return _safe(f"({_quote(value)})")
        return _safe(_EMPTY_IN)
    try:
        items = list(value)
    except TypeError:
        return _safe(_EMPTY_IN)
    if not items:
        return _safe(_EMPTY_IN)
    parts = []
    for v in items:
        if v is None:
            parts.append("NULL")
        elif isinstance(v, bool):
            parts.append("1" if v else "0")
        elif isinstance(v, (int, float)):
            parts.append(str(v))
        else:
            parts.append(_quote(v))
    return _safe("(" + ", ".join(parts) + ")")


def _escape_like(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def sql_like(value: Any) -> SqlSafe:
    """Contains-match pattern ``'%value%'`` with % and _ escaped."""
    if value is None:
        return _safe("NULL")
    return _safe(_quote(f"%{_escape_like(str(value))}%"))


def sql_like_start(value: Any) -> SqlSafe:
    if value is None:
        return _safe("NULL")
    return _safe(_quote(f"{_escape_like(str(value))}%"))


def sql_like_end(value: Any) -> SqlSafe:
    if value is None:
        return _safe("NULL")
    return _safe(_quote(f"%{_escape_like(str(value))}"))


def sql_json(value: Any) -> SqlSafe:
    """JSON text as a quoted literal."""
    if value is None:
        return _safe("NULL")
    try:
        s = json.dumps(value, default=str)
    except (TypeError, ValueError):
        return _safe("NULL")
    return _safe(_quote(s))


def sql_raw(value: Any) -> SqlSafe:
    """Insert verbatim. Only for identifiers the mapper author controls."""
    if value is None:
        return _safe("NULL")
    return _safe(str(value))


# ---------------------------------------------------------------------------
# Finalize callback
# ---------------------------------------------------------------------------


def sql_finalize(value: Any) -> str:
    """Auto-escape ``{{ }}`` output that did not go through an SQL filter.

    ``SqlSafe`` passes through; None and missing parameters render NULL;
    numbers are bare; booleans are 1/0; sequences become IN lists; dicts
    become JSON literals; dates become DATE literals. Anything else is a
    quoted string.
    """
    if isinstance(value, SqlSafe):
        return str(value)
    if value is None or isinstance(value, Undefined):
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return in_list(value)
    if isinstance(value, dict):
        return sql_json(value)
    if isinstance(value, (date, datetime)):
        return sql_date(value)
    return sql_string(value)


SQL_FILTERS: dict[str, Any] = {
    "sql_string": sql_string,
    "sql_int": sql_int,
    "sql_float": sql_float,
    "sql_date": sql_date,
    "in_list": in_list,
    "sql_like": sql_like,
    "sql_like_start": sql_like_start,
    "sql_like_end": sql_like_end,
    "json": sql_json,
    "sql_raw": sql_raw,
}
