"""
Jinja2 engine for dynamic statement bodies.

Security: ``sql_finalize`` auto-escapes every ``{{ }}`` output that was not
already processed by an explicit SQL filter, so ``{{ name }}`` renders as a
quoted literal. ``:name`` bind markers are plain text to Jinja2 and pass
through untouched.

Statements are compiled once when the mapper registers them; rendered SQL is
never cached.
"""

from jinja2 import (
    Environment,
    Template,
    TemplateError,
    TemplateSyntaxError,
    UndefinedError,
    meta,
)

from querygate.core.errors import ResolutionError
from querygate.engines.sql.extensions import SQL_EXTENSIONS
from querygate.engines.sql.filters import SQL_FILTERS, sql_finalize

_SQL_ENV: Environment | None = None


def _get_sql_env() -> Environment:
    """Shared Environment (filters, extensions, auto-escape finalize)."""
    global _SQL_ENV
    if _SQL_ENV is None:
        _SQL_ENV = Environment(
            autoescape=False,
            extensions=SQL_EXTENSIONS,
            finalize=sql_finalize,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _SQL_ENV.filters.update(SQL_FILTERS)
    return _SQL_ENV


def _preview(source: str) -> str:
    return source[:500] + "..." if len(source) > 500 else source


class SQLTemplateEngine:
    """Compiles and renders statement bodies; parses their parameter names."""

    def compile(self, source: str) -> Template:
        """Compile *source*. Syntax errors surface as ``ResolutionError``."""
        try:
            return _get_sql_env().from_string(source)
        except TemplateSyntaxError as e:
            raise ResolutionError(
                f"SQL statement syntax error: {e}. Statement preview:\n{_preview(source)}"
            ) from e

    def render(self, template: Template | str, params: dict) -> str:
        """Render a compiled template (or source) with *params* to final SQL text."""
        t = self.compile(template) if isinstance(template, str) else template
        try:
            return t.render(**params).strip()
        except UndefinedError as e:
            raise ResolutionError(
                f"SQL statement variable not found: {e}. "
                f"Available params: {list(params.keys())}."
            ) from e
        except TemplateError as e:
            raise ResolutionError(
                f"SQL statement render error: {e}. Params: {list(params.keys())}."
            ) from e

    def parse_parameters(self, source: str) -> list[str]:
        """Variable names the statement reads (undeclared in the template), sorted."""
        ast = _get_sql_env().parse(source)
        return sorted(meta.find_undeclared_variables(ast))
