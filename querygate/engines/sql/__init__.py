"""
SQL pipeline: templating, dynamic statements, binds, execution, normalization.
"""

from querygate.engines.sql.binds import BindDescriptor, build_binds, parse_output_params
from querygate.engines.sql.executor import execute_query
from querygate.engines.sql.injection import check_injection, looks_like_injection
from querygate.engines.sql.mapper import StatementMapper
from querygate.engines.sql.normalizer import normalize
from querygate.engines.sql.placeholder import extract_names, map_request_params, substitute
from querygate.engines.sql.resolver import (
    coerce_json_best_effort,
    map_statement_params,
    resolve_statement,
)
from querygate.engines.sql.result import NormalizedResult, OutBindResult, RowSet
from querygate.engines.sql.template_engine import SQLTemplateEngine

__all__ = [
    "BindDescriptor",
    "NormalizedResult",
    "OutBindResult",
    "RowSet",
    "SQLTemplateEngine",
    "StatementMapper",
    "build_binds",
    "check_injection",
    "coerce_json_best_effort",
    "execute_query",
    "extract_names",
    "looks_like_injection",
    "map_request_params",
    "map_statement_params",
    "normalize",
    "parse_output_params",
    "resolve_statement",
    "substitute",
]
