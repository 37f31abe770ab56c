"""Column extraction and before/after diffing for model files."""

from impact_engine.columns.aggregator import ColumnDiffAggregator
from impact_engine.columns.differ import diff_columns
from impact_engine.columns.extractors import (
    extract_columns,
    extract_sql_columns,
    extract_yaml_columns,
    is_supported,
    strip_jinja,
)

__all__ = [
    "ColumnDiffAggregator",
    "diff_columns",
    "extract_columns",
    "extract_sql_columns",
    "extract_yaml_columns",
    "is_supported",
    "strip_jinja",
]
