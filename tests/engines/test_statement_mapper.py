"""Unit tests for engines.sql.mapper and engines.sql.resolver."""

from pathlib import Path

import pytest

from querygate.core.errors import ConfigurationError, InjectionRejected, ResolutionError
from querygate.engines.sql import (
    StatementMapper,
    coerce_json_best_effort,
    map_statement_params,
    resolve_statement,
)

MAPPER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<mapper namespace="member">
  <select id="search">
    SELECT id, name FROM member
    {% where %}
      {% if name %}AND name = {{ name }}{% endif %}
      {% if ids %}AND id IN {{ ids | in_list }}{% endif %}
    {% endwhere %}
  </select>
  <select id="count"><![CDATA[SELECT count(*) AS n FROM member WHERE age < {{ age | sql_int }}]]></select>
  <!-- ignored -->
  <update id="touch">UPDATE member SET touched = 1</update>
</mapper>
"""


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def _squash(sql: str) -> str:
    return " ".join(sql.split())


@pytest.fixture
def mapper(tmp_path: Path) -> StatementMapper:
    m = StatementMapper()
    m.load_file(_write(tmp_path, "member.xml", MAPPER_XML))
    return m


class TestStatementMapperLoading:
    def test_load_file_registers_statements(self, mapper):
        assert mapper.statement_names() == ["member.count", "member.search", "member.touch"]
        assert mapper.has_statement("member", "search")
        assert not mapper.has_statement("member", "missing")

    def test_load_directory_sorted(self, tmp_path):
        _write(tmp_path, "b.xml", '<mapper namespace="b"><select id="x">SELECT 2</select></mapper>')
        _write(tmp_path, "a.xml", '<mapper namespace="a"><select id="x">SELECT 1</select></mapper>')
        _write(tmp_path, "notes.txt", "not a mapper")
        m = StatementMapper()
        assert m.load_directory(tmp_path) == 2
        assert m.statement_names() == ["a.x", "b.x"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            StatementMapper().load_directory(tmp_path / "nope")

    def test_duplicate_statement(self, tmp_path, mapper):
        with pytest.raises(ConfigurationError, match="Duplicate statement member.search"):
            mapper.load_file(_write(tmp_path, "again.xml", MAPPER_XML))

    def test_root_must_be_mapper(self, tmp_path):
        with pytest.raises(ConfigurationError, match="root element"):
            StatementMapper().load_file(_write(tmp_path, "x.xml", "<sqls/>"))

    def test_namespace_required(self, tmp_path):
        with pytest.raises(ConfigurationError, match="namespace"):
            StatementMapper().load_file(_write(tmp_path, "x.xml", "<mapper><select id='a'>x</select></mapper>"))

    @pytest.mark.parametrize(
        "inner",
        [
            '<if test="name != null">AND name = #{name}</if>',
            '<include refid="columns"/>',
            '<foreach collection="ids" item="id">#{id}</foreach>',
        ],
    )
    def test_nested_elements_rejected(self, tmp_path, inner):
        text = f'<mapper namespace="m"><select id="s">SELECT * FROM member WHERE 1=1 {inner}</select></mapper>'
        m = StatementMapper()
        with pytest.raises(ConfigurationError, match="m.s contains"):
            m.load_file(_write(tmp_path, "x.xml", text))
        assert not m.has_statement("m", "s")

    def test_comment_inside_statement_dropped(self, tmp_path):
        text = '<mapper namespace="m"><select id="s">SELECT 1 <!-- note --> FROM dual</select></mapper>'
        m = StatementMapper()
        m.load_file(_write(tmp_path, "x.xml", text))
        assert _squash(m.resolve("m", "s", {})) == "SELECT 1 FROM dual"

    def test_broken_xml(self, tmp_path):
        with pytest.raises(ConfigurationError):
            StatementMapper().load_file(_write(tmp_path, "x.xml", "<mapper namespace='a'>"))

    def test_statement_must_compile(self):
        with pytest.raises(ConfigurationError, match="does not compile"):
            StatementMapper().register("a", "b", "SELECT {% if %}")


class TestStatementMapperResolve:
    def test_conditional_directives(self, mapper):
        sql = mapper.resolve("member", "search", {"name": "Hannah"})
        assert _squash(sql) == "SELECT id, name FROM member WHERE name = 'Hannah'"

    def test_iteration_directive(self, mapper):
        sql = mapper.resolve("member", "search", {"ids": [1, 2]})
        assert _squash(sql) == "SELECT id, name FROM member WHERE id IN (1, 2)"

    def test_no_values(self, mapper):
        assert _squash(mapper.resolve("member", "search", {})) == "SELECT id, name FROM member"

    def test_cdata_body(self, mapper):
        assert mapper.resolve("member", "count", {"age": "30"}) == (
            "SELECT count(*) AS n FROM member WHERE age < 30"
        )

    def test_unknown_statement(self, mapper):
        with pytest.raises(ResolutionError, match="member.nope"):
            mapper.resolve("member", "nope", {})


class TestResolver:
    def test_coerce_json_best_effort(self):
        assert coerce_json_best_effort("[1,2]") == [1, 2]
        assert coerce_json_best_effort("42") == 42
        assert coerce_json_best_effort("Hannah") == "Hannah"
        assert coerce_json_best_effort(7) == 7

    def test_map_statement_params_drops_empty(self):
        assert map_statement_params({"a": "", "b": None, "c": '{"k": 1}'}) == {"c": {"k": 1}}

    def test_injection_checked_on_raw_value(self):
        with pytest.raises(InjectionRejected):
            map_statement_params({"ids": "[1]; drop table x"}, check_injection_enabled=True)

    def test_resolve_statement(self, mapper):
        sql = resolve_statement(mapper, "member", "search", {"ids": "[3]", "name": ""})
        assert _squash(sql) == "SELECT id, name FROM member WHERE id IN (3)"

    def test_resolve_statement_rejects_before_resolution(self):
        class _Boom:
            def resolve(self, namespace, statement_id, values):
                raise AssertionError("resolve must not be reached")

        with pytest.raises(InjectionRejected):
            resolve_statement(_Boom(), "a", "b", {"x": "1 union select 1"}, check_injection_enabled=True)
