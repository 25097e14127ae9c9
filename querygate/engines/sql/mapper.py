"""
Statement mapper: named dynamic SQL statements grouped by namespace.

Mapper files are XML, one ``<mapper namespace="...">`` root per file, with
``<select>``, ``<insert>``, ``<update>`` and ``<delete>`` children keyed by
``id``. Each statement body is a Jinja2 SQL template (see
``template_engine``)::

    <mapper namespace="member">
      <select id="search">
        SELECT id, name FROM member
        {% where %}
          {% if name %}AND name = {{ name }}{% endif %}
          {% if ids %}AND id IN {{ ids | in_list }}{% endif %}
        {% endwhere %}
      </select>
      <select id="detail">
        BEGIN member_pkg.detail(:p_id, :p_name, :p_cursor); END;
      </select>
    </mapper>

Use CDATA for bodies containing ``<`` or ``&``. Nested XML elements (MyBatis
``<if>``, ``<foreach>``, ``<include>``) are rejected at load. Statements are
registered at startup and only read afterwards.
"""

import logging
from pathlib import Path
from typing import Any, NamedTuple

from jinja2 import Template
from lxml import etree

from querygate.core.errors import ConfigurationError, ResolutionError
from querygate.engines.sql.template_engine import SQLTemplateEngine

_log = logging.getLogger(__name__)

STATEMENT_TAGS = ("select", "insert", "update", "delete")


class _Statement(NamedTuple):
    kind: str
    template: Template
    source: str | None


def _statement_body(elem: Any, path: Path, namespace: str, statement_id: str) -> str:
    """Text of a statement element. Comments are dropped; nested elements are rejected."""
    parts = [elem.text or ""]
    for child in elem:
        if isinstance(child.tag, str):
            raise ConfigurationError(
                f"{path}: {namespace}.{statement_id} contains <{child.tag}>; "
                "dynamic SQL is written as template tags, not XML elements"
            )
        parts.append(child.tail or "")
    return "".join(parts).strip()


class StatementMapper:
    """Registry of compiled statements; ``resolve`` renders one with request values."""

    def __init__(self, engine: SQLTemplateEngine | None = None) -> None:
        self._engine = engine or SQLTemplateEngine()
        self._statements: dict[tuple[str, str], _Statement] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        namespace: str,
        statement_id: str,
        body: str,
        *,
        kind: str = "select",
        source: str | None = None,
    ) -> None:
        """Compile and register one statement. Duplicate keys are a configuration error."""
        key = (namespace, statement_id)
        if key in self._statements:
            raise ConfigurationError(
                f"Duplicate statement {namespace}.{statement_id}"
                + (f" in {source}" if source else "")
            )
        try:
            template = self._engine.compile(body)
        except ResolutionError as e:
            raise ConfigurationError(
                f"Statement {namespace}.{statement_id} does not compile: {e}"
            ) from e
        self._statements[key] = _Statement(kind=kind, template=template, source=source)

    def load_file(self, path: str | Path) -> int:
        """Register every statement of one mapper file. Returns how many were added."""
        p = Path(path)
        try:
            root = etree.parse(str(p)).getroot()
        except (OSError, etree.XMLSyntaxError) as e:
            raise ConfigurationError(f"Cannot read mapper file {p}: {e}") from e

        if root.tag != "mapper":
            raise ConfigurationError(f"{p}: root element must be <mapper>, got <{root.tag}>")
        namespace = (root.get("namespace") or "").strip()
        if not namespace:
            raise ConfigurationError(f"{p}: <mapper> has no namespace")

        count = 0
        for elem in root:
            if not isinstance(elem.tag, str) or elem.tag not in STATEMENT_TAGS:
                continue
            statement_id = (elem.get("id") or "").strip()
            if not statement_id:
                raise ConfigurationError(f"{p}: <{elem.tag}> without id in {namespace}")
            body = _statement_body(elem, p, namespace, statement_id)
            self.register(namespace, statement_id, body, kind=elem.tag, source=str(p))
            count += 1
        _log.info("mapper file %s: %d statement(s) in namespace %s", p.name, count, namespace)
        return count

    def load_directory(self, directory: str | Path) -> int:
        """Load every ``*.xml`` file directly under *directory* (sorted by name)."""
        d = Path(directory)
        if not d.is_dir():
            raise ConfigurationError(f"Mapper directory not found: {d}")
        total = 0
        for path in sorted(d.glob("*.xml")):
            total += self.load_file(path)
        return total

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def has_statement(self, namespace: str, statement_id: str) -> bool:
        return (namespace, statement_id) in self._statements

    def statement_names(self) -> list[str]:
        return sorted(f"{ns}.{sid}" for ns, sid in self._statements)

    def resolve(self, namespace: str, statement_id: str, values: dict[str, Any]) -> str:
        """Render the statement with *values*; unknown keys raise ``ResolutionError``."""
        stmt = self._statements.get((namespace, statement_id))
        if stmt is None:
            raise ResolutionError(f"Unknown statement {namespace}.{statement_id}")
        return self._engine.render(stmt.template, values)
