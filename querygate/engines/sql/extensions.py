"""
Custom Jinja2 block tags for dynamic statements.

{% where %} ... {% endwhere %}: prefix WHERE, strip a leading AND/OR.
{% set_clause %} ... {% endset_clause %}: prefix SET, strip a trailing comma.
"""

import re

from jinja2 import nodes
from jinja2.ext import Extension


class WhereExtension(Extension):
    """Renders the block, drops a leading AND/OR and prefixes ``WHERE `` if anything is left."""

    tags = {"where"}

    def parse(self, parser) -> nodes.CallBlock:
        token = next(parser.stream)
        lineno = token.lineno
        body = parser.parse_statements(("name:endwhere",), drop_needle=True)
        return nodes.CallBlock(
            self.call_method("_render_where", [], [], []),
            [],
            [],
            body,
        ).set_lineno(lineno)

    def _render_where(self, caller: object) -> str:
        inner = caller()
        if not inner or not isinstance(inner, str):
            return ""
        s = re.sub(r"^\s*(AND|OR)\s+", "", inner.strip(), flags=re.IGNORECASE).strip()
        if not s:
            return ""
        return "WHERE " + s


class SetClauseExtension(Extension):
    """UPDATE helper: prefixes ``SET `` and removes the trailing comma of the last assignment."""

    tags = {"set_clause"}

    def parse(self, parser) -> nodes.CallBlock:
        token = next(parser.stream)
        lineno = token.lineno
        body = parser.parse_statements(("name:endset_clause",), drop_needle=True)
        return nodes.CallBlock(
            self.call_method("_render_set", [], [], []),
            [],
            [],
            body,
        ).set_lineno(lineno)

    def _render_set(self, caller: object) -> str:
        inner = caller()
        if not inner or not isinstance(inner, str):
            return ""
        s = inner.strip().rstrip(",").strip()
        if not s:
            return ""
        return "SET " + s


SQL_EXTENSIONS: list[type[Extension]] = [WhereExtension, SetClauseExtension]
