"""
Schema loading: turns a single CREATE TABLE statement into a TableSchema.

Parsing is delegated to sqlglot (MySQL dialect by default). Only the column
types and key definitions are interpreted; defaults, comments, charsets and
table options are ignored.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from txnmem.domain.models import (
    UNSPECIFIED_LENGTH,
    ColumnKind,
    ColumnSpec,
    IndexSpec,
    TableSchema,
)
from txnmem.errors import ConfigError, SchemaParseError
from txnmem.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_DIALECT = "mysql"

# sqlglot DataType.Type member names, compared by name so that members missing
# from older sqlglot releases do not break the import.
_SIGNED_INT_TYPES = {"TINYINT", "SMALLINT", "MEDIUMINT", "INT", "BIGINT", "BOOLEAN"}
_UNSIGNED_INT_TYPES = {"UTINYINT", "USMALLINT", "UMEDIUMINT", "UINT", "UBIGINT"}
_FLOAT_TYPES = {"FLOAT", "DOUBLE", "UFLOAT", "UDOUBLE"}
_DECIMAL_TYPES = {"DECIMAL", "UDECIMAL"}
_BYTES_TYPES = {
    "CHAR",
    "NCHAR",
    "VARCHAR",
    "NVARCHAR",
    "BINARY",
    "VARBINARY",
    "TEXT",
    "TINYTEXT",
    "MEDIUMTEXT",
    "LONGTEXT",
    "BLOB",
    "TINYBLOB",
    "MEDIUMBLOB",
    "LONGBLOB",
}
_DURATION_TYPES = {"TIME"}
_DATETIME_TYPES = {"DATE", "DATETIME", "TIMESTAMP", "TIMESTAMPTZ", "TIMESTAMPLTZ"}


def _classify(type_name: str) -> Tuple[ColumnKind, bool]:
    """Map a sqlglot type member name to (kind, unsigned)."""
    if type_name in _UNSIGNED_INT_TYPES:
        return ColumnKind.UNSIGNED_INT, True
    if type_name in _SIGNED_INT_TYPES:
        return ColumnKind.SIGNED_INT, False
    if type_name in _FLOAT_TYPES:
        return ColumnKind.FLOAT, type_name.startswith("U")
    if type_name in _DECIMAL_TYPES:
        return ColumnKind.DECIMAL, type_name.startswith("U")
    if type_name in _BYTES_TYPES:
        return ColumnKind.BYTES, False
    if type_name in _DURATION_TYPES:
        return ColumnKind.DURATION, False
    if type_name in _DATETIME_TYPES:
        return ColumnKind.DATETIME, False
    return ColumnKind.UNSUPPORTED, False


def _declared_length(dtype: exp.DataType) -> int:
    params = dtype.expressions
    if not params:
        return UNSPECIFIED_LENGTH
    try:
        return int(params[0].name)
    except ValueError:
        return UNSPECIFIED_LENGTH


def _column_spec(node: exp.ColumnDef, dialect: str) -> ColumnSpec:
    dtype = node.args.get("kind")
    if not isinstance(dtype, exp.DataType):
        return ColumnSpec(name=node.name, kind=ColumnKind.UNSUPPORTED, type_name="")
    kind, unsigned = _classify(dtype.this.name)
    return ColumnSpec(
        name=node.name,
        kind=kind,
        type_name=dtype.sql(dialect=dialect),
        declared_length=_declared_length(dtype),
        unsigned=unsigned,
    )


def _column_names(nodes: Iterable[exp.Expression]) -> Tuple[str, ...]:
    names: List[str] = []
    for node in nodes:
        ident = node if isinstance(node, exp.Identifier) else node.find(exp.Identifier)
        if ident is not None:
            names.append(ident.name)
    return tuple(names)


def _table_index(node: exp.Expression, name: Optional[str]) -> Optional[IndexSpec]:
    """Interpret a table-level key definition, or None for other constraints."""
    if isinstance(node, exp.PrimaryKey):
        return IndexSpec(
            name="PRIMARY", columns=_column_names(node.expressions), unique=True, primary=True
        )
    if isinstance(node, exp.UniqueColumnConstraint):
        target = node.this
        if isinstance(target, exp.Schema):
            if target.this is not None:
                name = name or target.this.name
            columns = _column_names(target.expressions)
        else:
            columns = _column_names(node.expressions)
        return IndexSpec(name=name or "", columns=columns, unique=True)
    if isinstance(node, exp.IndexColumnConstraint):
        if node.this is not None:
            name = name or node.this.name
        return IndexSpec(name=name or "", columns=_column_names(node.expressions))
    return None


def _column_indexes(node: exp.ColumnDef) -> List[IndexSpec]:
    indexes: List[IndexSpec] = []
    for constraint in node.args.get("constraints") or []:
        kind = constraint.args.get("kind")
        if isinstance(kind, exp.PrimaryKeyColumnConstraint):
            indexes.append(
                IndexSpec(name="PRIMARY", columns=(node.name,), unique=True, primary=True)
            )
        elif isinstance(kind, exp.UniqueColumnConstraint):
            indexes.append(IndexSpec(name=node.name, columns=(node.name,), unique=True))
    return indexes


def _finalize_indexes(indexes: List[IndexSpec], columns: Tuple[ColumnSpec, ...]) -> Tuple[IndexSpec, ...]:
    known = {column.name.lower() for column in columns}
    seen = set()
    result: List[IndexSpec] = []
    for position, index in enumerate(indexes, start=1):
        if not index.columns:
            continue
        for column in index.columns:
            if column.lower() not in known:
                raise SchemaParseError(
                    f"Key '{index.name or position}' references unknown column '{column}'"
                )
        signature = (index.primary, index.unique, tuple(c.lower() for c in index.columns))
        if signature in seen:
            continue
        seen.add(signature)
        if not index.name:
            index = index.model_copy(update={"name": f"idx_{position}"})
        result.append(index)
    return tuple(result)


def parse_schema(sql: str, dialect: str = DEFAULT_DIALECT) -> TableSchema:
    """
    Parse exactly one CREATE TABLE statement.

    Raises
    ------
    SchemaParseError
        On malformed SQL, zero or several statements, or any statement that
        is not a CREATE TABLE with a column list.
    """
    try:
        statements = [stmt for stmt in sqlglot.parse(sql, read=dialect) if stmt is not None]
    except SqlglotError as exc:
        raise SchemaParseError(f"Malformed schema: {exc}") from exc

    if len(statements) != 1:
        raise SchemaParseError(f"Unexpected count of SQL statements {len(statements)}")

    create = statements[0]
    kind = str(create.args.get("kind") or "").upper() if isinstance(create, exp.Create) else ""
    if kind != "TABLE" or not isinstance(create.this, exp.Schema):
        raise SchemaParseError("Only CREATE TABLE statements with a column list are supported")

    schema = create.this
    columns: List[ColumnSpec] = []
    indexes: List[IndexSpec] = []
    for node in schema.expressions:
        if isinstance(node, exp.ColumnDef):
            columns.append(_column_spec(node, dialect))
            indexes.extend(_column_indexes(node))
            continue
        if isinstance(node, exp.Constraint):
            for inner in node.expressions:
                index = _table_index(inner, node.name or None)
                if index is not None:
                    indexes.append(index)
            continue
        index = _table_index(node, None)
        if index is not None:
            indexes.append(index)

    if not columns:
        raise SchemaParseError("CREATE TABLE statement declares no columns")

    table = TableSchema(
        name=schema.this.name if schema.this is not None else "",
        columns=tuple(columns),
        indexes=_finalize_indexes(indexes, tuple(columns)),
    )
    log.debug(
        "Schema parsed",
        extra={
            "table": table.name,
            "columns": len(table.columns),
            "indexes": len(table.indexes),
        },
    )
    return table


def load_schema(path: Path | str, dialect: str = DEFAULT_DIALECT) -> TableSchema:
    """Read a UTF-8 schema file and parse it."""
    schema_path = Path(path)
    try:
        sql = schema_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read schema file '{schema_path}': {exc}") from exc
    return parse_schema(sql, dialect=dialect)


__all__ = ["DEFAULT_DIALECT", "load_schema", "parse_schema"]
