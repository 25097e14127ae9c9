"""
Flatten raw results into a list of records.
"""

from typing import Any

from querygate.core.errors import NormalizationError
from querygate.engines.sql.result import NormalizedResult, OutBindResult, RowSet


def _rows_to_records(row_set: RowSet) -> NormalizedResult:
    names = row_set.columns
    records: NormalizedResult = []
    for row in row_set.rows:
        if len(row) != len(names):
            raise NormalizationError(
                f"Row has {len(row)} values but the result set has {len(names)} columns"
            )
        records.append(dict(zip(names, row)))
    return records


def normalize(raw: Any) -> NormalizedResult:
    """``RowSet`` -> one record per row; ``OutBindResult`` -> exactly one record.

    In the OUT-bind record, cursor binds hold their own nested record list.
    """
    if isinstance(raw, RowSet):
        return _rows_to_records(raw)
    if isinstance(raw, OutBindResult):
        record: dict[str, Any] = {}
        for name, value in raw.values.items():
            record[name] = _rows_to_records(value) if isinstance(value, RowSet) else value
        return [record]
    raise NormalizationError(f"Unexpected raw result type: {type(raw).__name__}")
