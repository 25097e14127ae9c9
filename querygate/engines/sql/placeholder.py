"""
Plain ``${name}`` SQL templates.

Substitution is textual: values are inserted verbatim, with no quoting or
escaping. The quoting in the surrounding SQL is the template author's
responsibility and the injection heuristic is the only gate in front of it.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from querygate.engines.sql.injection import check_injection

_log = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def extract_names(template: str) -> list[str]:
    """Distinct placeholder names in first-occurrence order."""
    seen: dict[str, None] = {}
    for m in _PLACEHOLDER.finditer(template or ""):
        seen.setdefault(m.group(1), None)
    return list(seen)


def substitute(template: str, values: Mapping[str, Any]) -> str:
    """Replace every ``${name}`` with ``str(values[name])``.

    Names missing from *values* are left as-is.
    """

    def _repl(m: re.Match[str]) -> str:
        name = m.group(1)
        if name not in values:
            return m.group(0)
        return str(values[name])

    return _PLACEHOLDER.sub(_repl, template)


def map_request_params(
    template: str,
    params: Mapping[str, Any],
    *,
    check_injection_enabled: bool = False,
    query_label: str | None = None,
) -> str:
    """Build the final SQL for a plain template from request parameters.

    Only placeholders present in the template are considered; ``None`` values
    are skipped (placeholder stays unresolved). With the injection check on,
    the first suspicious value raises ``InjectionRejected``.
    """
    names = extract_names(template)
    if not names:
        return template

    values: dict[str, Any] = {}
    for name in names:
        value = params.get(name)
        if value is None:
            continue
        if check_injection_enabled:
            check_injection(name, value, query=query_label)
        values[name] = value

    _log.info("Mapped template parameters %s from request keys %s", values, list(params))
    return substitute(template, values)
