"""Single-entity CRUD statement templates.

Each builder turns an entity's :class:`~entsql.table.metadata.Metadata`
and a dialect into SQL text with named ``:db_field`` placeholders. The
output depends only on the metadata's column order and the dialect's
quote character, so it can be cached per entity type.

RETURNING clauses are emitted whenever the metadata asks for them; a
backend without RETURNING support rejects the statement when it runs.
"""

from __future__ import annotations

from ..engine.dialects import DialectSpec
from ..table.metadata import Metadata, require_primary_key
from ..utils.exceptions import MetadataError
from .builders import comma_separated, pk_predicate, quote_column, quote_identifier


def build_select(md: Metadata, dialect: DialectSpec) -> str:
    require_primary_key(md, "select")
    columns = comma_separated(quote_column(col.db_field, dialect) for col in md.columns)
    return (
        f"SELECT {columns} FROM {quote_identifier(md.table_name, dialect)} "
        f"WHERE {pk_predicate(md.primary_keys, dialect)} LIMIT 1"
    )


def build_insert(md: Metadata, dialect: DialectSpec) -> str:
    """Build ``INSERT INTO ... VALUES ...``.

    Auto-increment columns are left to the database. Columns flagged
    ``returning_insert`` are read back through RETURNING and never bound
    as values.
    """
    columns = []
    placeholders = []
    returning = []
    for col in md.columns:
        quoted = quote_column(col.db_field, dialect)
        if col.returning_insert:
            returning.append(quoted)
        elif not col.auto_increment:
            columns.append(quoted)
            placeholders.append(f":{col.db_field}")

    sql = (
        f"INSERT INTO {quote_identifier(md.table_name, dialect)} "
        f"({comma_separated(columns)}) VALUES ({comma_separated(placeholders)})"
    )
    if returning:
        sql += f" RETURNING {comma_separated(returning)}"
    return sql


def build_update(md: Metadata, dialect: DialectSpec) -> str:
    """Build ``UPDATE ... SET ... WHERE <primary key>``.

    ``refuse_update`` columns are left out of SET; ``returning_update``
    columns only appear in the RETURNING clause.
    """
    require_primary_key(md, "update")
    assignments = []
    returning = []
    for col in md.columns:
        quoted = quote_column(col.db_field, dialect)
        if col.returning_update:
            returning.append(quoted)
        elif not col.refuse_update:
            assignments.append(f"{quoted} = :{col.db_field}")
    if not assignments:
        raise MetadataError(
            f"{md.type.__name__} has no updatable columns",
            context={"table": md.table_name, "operation": "update"},
        )

    sql = (
        f"UPDATE {quote_identifier(md.table_name, dialect)} SET {comma_separated(assignments)} "
        f"WHERE {pk_predicate(md.primary_keys, dialect)}"
    )
    if returning:
        sql += f" RETURNING {comma_separated(returning)}"
    return sql


def build_delete(md: Metadata, dialect: DialectSpec) -> str:
    require_primary_key(md, "delete")
    return (
        f"DELETE FROM {quote_identifier(md.table_name, dialect)} "
        f"WHERE {pk_predicate(md.primary_keys, dialect)}"
    )

