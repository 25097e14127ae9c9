"""Unit tests for core.descriptors (QUERY_* declarations)."""

import pytest

from querygate.core.descriptors import check_statements, load_descriptors, parse_declaration
from querygate.core.errors import ConfigurationError
from querygate.engines.sql import StatementMapper
from querygate.models import (
    BindDirectionEnum,
    BindTypeEnum,
    DialectEnum,
    ExposureEnum,
    QueryKindEnum,
)


class TestParseDeclaration:
    def test_api_plain(self):
        d = parse_declaration(
            "QUERY_MEMBERS", "api;select ${field} from member where name='${name}';members"
        )
        assert d.kind == QueryKindEnum.API_PLAIN
        assert d.template == "select ${field} from member where name='${name}'"
        assert d.endpoint == "/members"
        assert d.is_complete

    def test_api_dynamic_with_output_params(self):
        d = parse_declaration(
            "QUERY_DETAIL",
            'mybatis;member;detail;/members/detail;{"p_id":{"dir":"in","type":"number"},'
            '"p_rows":{"dir":"out","type":"cursor"}}',
        )
        assert d.kind == QueryKindEnum.API_DYNAMIC
        assert (d.namespace, d.statement_id) == ("member", "detail")
        assert d.output_params["p_id"].direction == BindDirectionEnum.IN
        assert d.output_params["p_rows"].scalar_type == BindTypeEnum.CURSOR

    def test_api_dynamic_without_output_params(self):
        d = parse_declaration("QUERY_SEARCH", "mybatis;member;search;/members/search")
        assert d.output_params == {}

    def test_push_plain(self):
        d = parse_declaration("QUERY_STATUS", "MQTT;select * from status;status/all;5000")
        assert d.exposure == ExposureEnum.PUSH
        assert d.dialect == DialectEnum.PLAIN
        assert d.topic == "status/all"
        assert d.interval_ms == 5000
        assert d.endpoint is None

    def test_push_dynamic(self):
        d = parse_declaration("QUERY_LATEST", "mqtt-mybatis;member;latest;member/latest;10000")
        assert d.kind == QueryKindEnum.PUSH_DYNAMIC
        assert d.interval_ms == 10000

    def test_flags_carried(self):
        d = parse_declaration("Q", "api;select 1;/one", injection_check=True, max_rows=20)
        assert d.injection_check is True
        assert d.max_rows == 20

    @pytest.mark.parametrize(
        "value",
        [
            "rest;select 1;/x",
            "api;select 1",
            "api;;/x",
            "mybatis;member;;/x",
            "mybatis;member;detail;/x;{not json}",
            'mybatis;member;detail;/x;{"p":{"dir":"sideways","type":"string"}}',
            "mqtt;select 1;topic;soon",
            "mqtt;select 1;topic;0",
            "mqtt-mybatis;member;latest;topic",
        ],
    )
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_declaration("QUERY_BAD", value)


class TestLoadDescriptors:
    def test_only_query_variables_sorted(self):
        env = {
            "QUERY_B": "api;select 2;/b",
            "PATH": "/usr/bin",
            "QUERY_A": "api;select 1;/a",
        }
        out = load_descriptors(env)
        assert [d.name for d in out] == ["QUERY_A", "QUERY_B"]
        assert isinstance(out, tuple)

    def test_duplicate_endpoint(self):
        env = {"QUERY_A": "api;select 1;/same", "QUERY_B": "api;select 2;same"}
        with pytest.raises(ConfigurationError, match="already declared"):
            load_descriptors(env)

    def test_empty(self):
        assert load_descriptors({}) == ()


class TestCheckStatements:
    def test_known_statement(self):
        mapper = StatementMapper()
        mapper.register("member", "search", "SELECT 1")
        d = load_descriptors({"QUERY_S": "mybatis;member;search;/s"})
        check_statements(d, mapper)

    def test_unknown_statement(self):
        d = load_descriptors({"QUERY_S": "mybatis;member;search;/s"})
        with pytest.raises(ConfigurationError, match="member.search"):
            check_statements(d, StatementMapper())

    def test_plain_ignored(self):
        check_statements(load_descriptors({"QUERY_P": "api;select 1;/p"}), None)
