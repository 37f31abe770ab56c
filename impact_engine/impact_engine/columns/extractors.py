"""Extract column sets from dbt SQL models and YAML schema files.

SQL models are parsed with sqlglot after Jinja blocks have been neutralised.
The projections of the outermost ``SELECT`` are reduced to bare column names
(aliases, table qualifiers, quoting and function wrappers removed).  When
sqlglot cannot parse the text, a regex fallback reads the column list of the
first ``SELECT ... FROM`` clause and applies the same reduction.

YAML files are read with ``yaml.safe_load``; every column declared under a
``models`` (or ``sources[].tables``) entry, or under a top-level
``columns`` key, becomes one :class:`ColumnDescriptor` carrying its declared
attributes (type, description, tests, ...).
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Any

import sqlglot
import yaml  # type: ignore[import-untyped]
from sqlglot import exp
from sqlglot.errors import SqlglotError

from impact_engine.errors import ColumnParseError
from impact_engine.models.columns import ColumnDescriptor

logger = logging.getLogger(__name__)

SQL_EXTENSIONS = frozenset({".sql"})
YAML_EXTENSIONS = frozenset({".yml", ".yaml"})

# ---------------------------------------------------------------------------
# Jinja neutralisation
# ---------------------------------------------------------------------------

_REF_PATTERN = re.compile(r"\{\{\s*ref\s*\(\s*(?:'([^']+)'|\"([^\"]+)\")\s*\)\s*\}\}")
_SOURCE_PATTERN = re.compile(
    r"\{\{\s*source\s*\(\s*['\"]([^'\"]+)['\"]\s*,\s*['\"]([^'\"]+)['\"]\s*\)\s*\}\}"
)
_CONFIG_PATTERN = re.compile(r"\{\{\s*config\s*\(.*?\)\s*\}\}", re.DOTALL)
_JINJA_EXPR_PATTERN = re.compile(r"\{\{.*?\}\}", re.DOTALL)
_JINJA_STMT_PATTERN = re.compile(r"\{%.*?%\}", re.DOTALL)
_JINJA_COMMENT_PATTERN = re.compile(r"\{#.*?#\}", re.DOTALL)

_JINJA_PLACEHOLDER = "__jinja_expr__"


def strip_jinja(sql: str) -> str:
    """Replace dbt Jinja with plain SQL so that the text can be parsed.

    ``ref('x')`` becomes ``x``, ``source('s', 't')`` becomes ``s.t``,
    ``config(...)``, statements and comments are removed, and any other
    expression becomes a placeholder identifier.
    """
    text = _JINJA_COMMENT_PATTERN.sub("", sql)
    text = _CONFIG_PATTERN.sub("", text)
    text = _JINJA_STMT_PATTERN.sub("", text)
    text = _REF_PATTERN.sub(lambda m: m.group(1) or m.group(2), text)
    text = _SOURCE_PATTERN.sub(lambda m: f"{m.group(1)}.{m.group(2)}", text)
    return _JINJA_EXPR_PATTERN.sub(_JINJA_PLACEHOLDER, text)


# ---------------------------------------------------------------------------
# SQL extraction
# ---------------------------------------------------------------------------

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"--[^\n]*")
_SELECT_FROM = re.compile(r"\bSELECT\s+([\s\S]+?)\s+FROM\b", re.IGNORECASE)
_ALIAS_SUFFIX = re.compile(r"\s+as\s+([\w\"`\[\]]+)\s*$", re.IGNORECASE)
_DISTINCT_PREFIX = re.compile(r"^\s*distinct\s+", re.IGNORECASE)
_FUNCTION_CALL = re.compile(r"^[\w.$]+\s*\(")
_QUOTES = re.compile(r"[`\"'\[\]]")


def _dedupe(columns: list[ColumnDescriptor]) -> list[ColumnDescriptor]:
    seen: set[str] = set()
    unique: list[ColumnDescriptor] = []
    for column in columns:
        if column.name in seen:
            continue
        seen.add(column.name)
        unique.append(column)
    return unique


def _split_top_level(clause: str) -> list[str]:
    """Split *clause* on commas that are not nested inside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in clause:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def _first_argument(text: str) -> str | None:
    """Return the first argument of a leading function call, or ``None``."""
    match = _FUNCTION_CALL.match(text)
    if match is None:
        return None
    start = match.end()
    depth = 1
    for index in range(start, len(text)):
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                args = _split_top_level(text[start:index])
                return args[0] if args else ""
    return ""


def _bare_name(fragment: str) -> str:
    """Reduce one SELECT-list fragment to a column name (regex path)."""
    text = fragment.strip()
    alias = ""
    alias_match = _ALIAS_SUFFIX.search(text)
    if alias_match is not None:
        alias = _QUOTES.sub("", alias_match.group(1))
        text = text[: alias_match.start()]
    text = _DISTINCT_PREFIX.sub("", text)
    # f(g(col)) -> col
    argument = _first_argument(text)
    while argument is not None:
        text = _DISTINCT_PREFIX.sub("", argument)
        argument = _first_argument(text)
    tokens = text.split()
    if not tokens:
        # No column reference, e.g. ROW_NUMBER() OVER (...) AS rn.
        return alias
    token = _QUOTES.sub("", tokens[0])
    return token.rsplit(".", 1)[-1] or alias


def _extract_sql_regex(sql: str) -> list[ColumnDescriptor]:
    text = _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", sql))
    match = _SELECT_FROM.search(text)
    if match is None:
        return []
    columns: list[ColumnDescriptor] = []
    for fragment in _split_top_level(match.group(1)):
        name = _bare_name(fragment)
        if name:
            columns.append(ColumnDescriptor(name=name, attributes={"expression": " ".join(fragment.split())}))
    return _dedupe(columns)


def _projection_name(projection: exp.Expression) -> str:
    """Reduce a sqlglot projection to a bare column name."""
    node = projection.this if isinstance(projection, exp.Alias) else projection
    if isinstance(node, exp.Window):
        # PARTITION BY / ORDER BY columns are not what the window selects.
        node = node.this
    if isinstance(node, exp.Star):
        return "*"
    if isinstance(node, exp.Column):
        return node.name
    column = node.find(exp.Column)
    if column is not None:
        return column.name
    # No column reference at all (literals, COUNT(*)): keep the output name.
    return projection.alias_or_name or projection.sql()


def _outermost_select(statements: list[exp.Expression | None]) -> exp.Select | None:
    for statement in statements:
        if statement is None:
            continue
        if isinstance(statement, exp.Select):
            return statement
        found = statement.find(exp.Select)
        if isinstance(found, exp.Select):
            return found
    return None


def extract_sql_columns(sql: str, dialect: str | None = None) -> list[ColumnDescriptor]:
    """Return the columns selected by a SQL model, deduplicated by name.

    Parameters
    ----------
    sql:
        Raw model text; dbt Jinja is allowed.
    dialect:
        sqlglot dialect name used for parsing (generic SQL when ``None``).
    """
    clean = strip_jinja(sql)
    try:
        statements = sqlglot.parse(clean, read=dialect)
    except SqlglotError as exc:
        logger.debug("sqlglot could not parse model (%s); using regex fallback", exc)
        return _extract_sql_regex(clean)

    select = _outermost_select(statements)
    if select is None:
        return _extract_sql_regex(clean)

    columns: list[ColumnDescriptor] = []
    for projection in select.expressions:
        name = _projection_name(projection)
        if not name:
            continue
        inner = projection.this if isinstance(projection, exp.Alias) else projection
        columns.append(ColumnDescriptor(name=name, attributes={"expression": inner.sql(dialect=dialect)}))
    return _dedupe(columns)


# ---------------------------------------------------------------------------
# YAML extraction
# ---------------------------------------------------------------------------


def _column_from_entry(entry: Any, fallback_name: str | None = None) -> ColumnDescriptor | None:
    if isinstance(entry, str):
        return ColumnDescriptor(name=entry)
    if isinstance(entry, dict):
        name = entry.get("name", fallback_name)
        if not name:
            return None
        attributes = {k: v for k, v in entry.items() if k != "name"}
        return ColumnDescriptor(name=str(name), attributes=attributes)
    if entry is None and fallback_name:
        return ColumnDescriptor(name=fallback_name)
    return None


def _columns_of(container: Any) -> list[ColumnDescriptor]:
    """Columns declared directly on a model/table mapping."""
    if not isinstance(container, dict):
        return []
    raw = container.get("columns")
    columns: list[ColumnDescriptor] = []
    if isinstance(raw, list):
        for entry in raw:
            column = _column_from_entry(entry)
            if column is not None:
                columns.append(column)
    elif isinstance(raw, dict):
        for key, entry in raw.items():
            column = _column_from_entry(entry, fallback_name=str(key))
            if column is not None:
                columns.append(column)
    return columns


def _columns_of_document(document: Any) -> list[ColumnDescriptor]:
    if isinstance(document, list):
        columns: list[ColumnDescriptor] = []
        for item in document:
            columns.extend(_columns_of_document(item))
        return columns
    if not isinstance(document, dict):
        return []

    columns = _columns_of(document)
    models = document.get("models")
    if isinstance(models, list):
        for model in models:
            columns.extend(_columns_of(model))
    sources = document.get("sources")
    if isinstance(sources, list):
        for source in sources:
            tables = source.get("tables") if isinstance(source, dict) else None
            if isinstance(tables, list):
                for table in tables:
                    columns.extend(_columns_of(table))
    return columns


def extract_yaml_columns(content: str) -> list[ColumnDescriptor]:
    """Return the columns declared in a dbt schema YAML document.

    Raises
    ------
    ColumnParseError
        If *content* is not valid YAML.
    """
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ColumnParseError(f"Invalid YAML: {exc}") from exc
    return _dedupe(_columns_of_document(document))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def is_supported(path: str) -> bool:
    """Return ``True`` if *path* has an extension with a column extractor."""
    suffix = PurePosixPath(path).suffix.lower()
    return suffix in SQL_EXTENSIONS or suffix in YAML_EXTENSIONS


def extract_columns(content: str, path: str, *, dialect: str | None = None) -> list[ColumnDescriptor]:
    """Extract columns from *content* using the extractor for *path*'s extension.

    Unsupported extensions yield an empty list.
    """
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in SQL_EXTENSIONS:
        return extract_sql_columns(content, dialect=dialect)
    if suffix in YAML_EXTENSIONS:
        return extract_yaml_columns(content)
    return []
