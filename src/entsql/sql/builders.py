"""Helper utilities for SQL generation."""

from __future__ import annotations

from typing import Iterable

from ..engine.dialects import DialectSpec
from ..table.metadata import Column
from ..utils.exceptions import ValidationError


def comma_separated(values: Iterable[str]) -> str:
    return ", ".join(values)


def quote_column(name: str, dialect: DialectSpec) -> str:
    """Wrap a bare column name in the dialect's identifier quote."""
    return f"{dialect.quote_char}{name}{dialect.quote_char}"


def quote_identifier(identifier: str, dialect: DialectSpec) -> str:
    """Quote a possibly dot-qualified identifier, one segment at a time.

    Existing quote characters are stripped first, so quoting an already
    quoted identifier yields the same text. A ``*`` segment is left bare.

    Raises:
        ValidationError: If the identifier is empty
    """
    symbol = dialect.quote_char
    bare = identifier.replace(symbol, "")
    if not bare.strip():
        raise ValidationError("identifier cannot be empty", context={"identifier": identifier})
    parts = []
    for part in bare.split("."):
        if part != "*":
            part = f"{symbol}{part}{symbol}"
        parts.append(part)
    return ".".join(parts)


def pk_predicate(primary_keys: Iterable[Column], dialect: DialectSpec) -> str:
    """Render ``"a" = :a AND "b" = :b`` for the given key columns."""
    return " AND ".join(
        f"{quote_column(col.db_field, dialect)} = :{col.db_field}" for col in primary_keys
    )
