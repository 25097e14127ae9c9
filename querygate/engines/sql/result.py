"""
Raw execution results, before normalization.

``RowSet`` is a plain result set (column names + positional rows).
``OutBindResult`` holds the values read back from OUT binds; a cursor-typed
bind has already been drained into a ``RowSet``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from querygate.models import BindTypeEnum


@dataclass(frozen=True)
class RowSet:
    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class OutBindResult:
    values: dict[str, Any] = field(default_factory=dict)
    types: dict[str, BindTypeEnum] = field(default_factory=dict)


RawResult = RowSet | OutBindResult

NormalizedResult = list[dict[str, Any]]
