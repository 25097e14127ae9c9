"""Unit tests for engines.sql.executor and engines.sql.normalizer."""

from decimal import Decimal
from unittest.mock import MagicMock

import oracledb
import pytest

from querygate.core.errors import ConfigurationError, NormalizationError, QueryExecutionError
from querygate.engines.sql import (
    BindDescriptor,
    OutBindResult,
    RowSet,
    execute_query,
    normalize,
)
from querygate.engines.sql.executor import drain_cursor, fetch_row_set
from querygate.models import BindDirectionEnum, BindTypeEnum, ProductTypeEnum

from conftest import FakePool

IN = BindDirectionEnum.IN
OUT = BindDirectionEnum.OUT


def _ref_cursor(columns: list[str], rows: list[tuple]) -> MagicMock:
    ref = MagicMock(name="ref_cursor")
    ref.description = [(c,) for c in columns]
    ref.fetchone.side_effect = list(rows) + [None]
    return ref


def _out_var(value) -> MagicMock:
    var = MagicMock()
    var.getvalue.return_value = value
    return var


class TestFetch:
    def test_fetch_row_set_caps_rows(self):
        cur = MagicMock()
        cur.description = [("ID",)]
        cur.fetchmany.return_value = [(1,), (2,)]
        rs = fetch_row_set(cur, 2)
        cur.fetchmany.assert_called_once_with(2)
        assert rs == RowSet(columns=["ID"], rows=[(1,), (2,)])

    def test_fetch_row_set_without_result(self):
        cur = MagicMock()
        cur.description = None
        assert fetch_row_set(cur, 10) == RowSet()
        cur.fetchmany.assert_not_called()

    def test_drain_cursor_reads_every_row_and_closes(self):
        ref = _ref_cursor(["N"], [(i,) for i in range(5)])
        rs = drain_cursor(ref)
        assert len(rs) == 5
        assert ref.fetchone.call_count == 6
        ref.close.assert_called_once()

    def test_drain_cursor_none(self):
        assert drain_cursor(None) == RowSet()


class TestExecuteQuery:
    def test_plain_select(self, pool: FakePool):
        pool.returns(["ID", "NAME"], [(1, "Hannah")])
        raw = execute_query(pool, "select id, name from member", max_rows=50)
        assert raw == RowSet(columns=["ID", "NAME"], rows=[(1, "Hannah")])
        pool.cursor.execute.assert_called_once_with("select id, name from member")
        pool.cursor.fetchmany.assert_called_once_with(50)
        assert pool.acquired == pool.released == 1

    def test_in_binds_only_returns_row_set(self, pool: FakePool):
        pool.returns(["ID"], [(7,)])
        binds = {"p_id": BindDescriptor(IN, BindTypeEnum.NUMBER, 7.0)}
        raw = execute_query(pool, "select id from member where id = :p_id", binds, max_rows=10)
        assert isinstance(raw, RowSet)
        pool.cursor.execute.assert_called_once_with(
            "select id from member where id = :p_id", {"p_id": 7.0}
        )

    def test_out_binds_and_cursor_drain(self, pool: FakePool):
        orders = _ref_cursor(["ORDER_ID"], [(10,), (11,), (12,)])
        name_var = _out_var("Hannah")
        rows_var = _out_var(orders)
        pool.cursor.var.side_effect = [name_var, rows_var]
        binds = {
            "p_id": BindDescriptor(IN, BindTypeEnum.NUMBER, 1.0),
            "p_name": BindDescriptor(OUT, BindTypeEnum.STRING),
            "p_orders": BindDescriptor(OUT, BindTypeEnum.CURSOR),
        }

        raw = execute_query(pool, "BEGIN pkg.detail(:p_id, :p_name, :p_orders); END;", binds, max_rows=1)

        assert isinstance(raw, OutBindResult)
        assert raw.values["p_name"] == "Hannah"
        # cursor drains ignore max_rows
        assert len(raw.values["p_orders"]) == 3
        assert raw.types == {"p_name": BindTypeEnum.STRING, "p_orders": BindTypeEnum.CURSOR}
        pool.cursor.execute.assert_called_once_with(
            "BEGIN pkg.detail(:p_id, :p_name, :p_orders); END;",
            {"p_id": 1.0, "p_name": name_var, "p_orders": rows_var},
        )
        orders.close.assert_called_once()
        assert pool.acquired == pool.released == 1

    def test_driver_error_wrapped_and_connection_released(self, pool: FakePool):
        boom = RuntimeError("ORA-00942: table or view does not exist")
        pool.cursor.execute.side_effect = boom
        with pytest.raises(QueryExecutionError) as exc_info:
            execute_query(pool, "select * from nope", max_rows=10)
        assert exc_info.value.cause is boom
        assert pool.acquired == pool.released == 1

    def test_drain_failure_releases_once(self, pool: FakePool):
        ref = MagicMock()
        ref.description = [("N",)]
        ref.fetchone.side_effect = RuntimeError("fetch failed")
        pool.cursor.var.return_value = _out_var(ref)
        binds = {"p_rows": BindDescriptor(OUT, BindTypeEnum.CURSOR)}
        with pytest.raises(QueryExecutionError):
            execute_query(pool, "BEGIN pkg.rows(:p_rows); END;", binds, max_rows=10)
        ref.close.assert_called_once()
        assert pool.acquired == pool.released == 1

    def test_lobs_read_while_connection_held(self, pool: FakePool):
        held = []
        clob = MagicMock(spec=oracledb.LOB)
        clob.read.side_effect = lambda: held.append(pool.acquired - pool.released) or "clob text"
        pool.returns(["ID", "NOTE"], [(1, clob)])

        raw = execute_query(pool, "select id, note from member", max_rows=10)

        assert raw.rows == [(1, "clob text")]
        assert held == [1]
        assert pool.acquired == pool.released == 1

    def test_lobs_in_ref_cursor_read_before_close(self):
        clob = MagicMock(spec=oracledb.LOB)
        clob.read.return_value = "detail"
        ref = _ref_cursor(["NOTE"], [(clob,)])
        assert drain_cursor(ref).rows == [("detail",)]
        ref.close.assert_called_once()

    def test_out_binds_need_oracle(self):
        pool = FakePool(product_type=ProductTypeEnum.POSTGRES)
        binds = {"p_out": BindDescriptor(OUT, BindTypeEnum.STRING)}
        with pytest.raises(ConfigurationError):
            execute_query(pool, "call p(%(p_out)s)", binds, max_rows=10)
        assert pool.released == 1


class TestNormalize:
    def test_row_set(self):
        raw = RowSet(columns=["ID", "NAME"], rows=[(1, "a"), (2, "b")])
        assert normalize(raw) == [{"ID": 1, "NAME": "a"}, {"ID": 2, "NAME": "b"}]

    def test_empty_row_set(self):
        assert normalize(RowSet(columns=["ID"], rows=[])) == []
        assert normalize(RowSet()) == []

    def test_out_binds_single_record(self):
        raw = OutBindResult(
            values={
                "p_total": Decimal("3"),
                "p_rows": RowSet(columns=["N"], rows=[(1,), (2,)]),
            },
            types={"p_total": BindTypeEnum.NUMBER, "p_rows": BindTypeEnum.CURSOR},
        )
        assert normalize(raw) == [{"p_total": Decimal("3"), "p_rows": [{"N": 1}, {"N": 2}]}]

    def test_empty_cursor_is_empty_list(self):
        raw = OutBindResult(values={"p_rows": RowSet()}, types={"p_rows": BindTypeEnum.CURSOR})
        assert normalize(raw) == [{"p_rows": []}]

    def test_row_width_mismatch(self):
        with pytest.raises(NormalizationError):
            normalize(RowSet(columns=["A", "B"], rows=[(1,)]))

    def test_unexpected_type(self):
        with pytest.raises(NormalizationError):
            normalize([{"a": 1}])
