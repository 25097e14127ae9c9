"""
Heuristic SQL-injection gate for substituted parameter values.

This is a textual scan, not a parser. It rejects legitimate values that
happen to contain a marker (false positives) and lets encoded or obfuscated
payloads through (false negatives). Treat it as a best-effort filter in front
of plain ``${name}`` substitution, never as a security boundary.
"""

import re
from typing import Any

from querygate.core.errors import InjectionRejected

# Statement separators and comment openers/closers
_MARKERS: tuple[str, ...] = (";", "--", "/*", "*/")

_KEYWORDS: tuple[str, ...] = (
    "DROP",
    "DELETE",
    "UPDATE",
    "INSERT",
    "UNION",
    "EXEC",
    "EXECUTE",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "MERGE",
    "SHUTDOWN",
)

_KEYWORD_PATTERN = re.compile(
    r"\b(?:" + "|".join(_KEYWORDS) + r")\b",
    re.IGNORECASE,
)


def looks_like_injection(value: Any) -> bool:
    """True if the text form of *value* carries a separator, comment or attack keyword."""
    if value is None:
        return False
    s = value if isinstance(value, str) else str(value)
    if any(marker in s for marker in _MARKERS):
        return True
    return _KEYWORD_PATTERN.search(s) is not None


def check_injection(name: str, value: Any, *, query: str | None = None) -> None:
    """Raise ``InjectionRejected`` carrying *name* and *value* if the heuristic trips."""
    if looks_like_injection(value):
        raise InjectionRejected(name, value, query=query)
