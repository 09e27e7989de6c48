"""Dialect registry and helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class DialectSpec:
    name: str
    quote_char: str = '"'
    supports_returning: bool = False
    # False where the engine has no universal last-insert-id concept
    supports_last_insert_id: bool = True
    # Substring of the engine's uniqueness-violation message
    conflict_marker: Optional[str] = None


MYSQL = "mysql"
POSTGRESQL = "postgresql"
SQLITE = "sqlite"

DIALECTS: dict[str, DialectSpec] = {
    POSTGRESQL: DialectSpec(
        name=POSTGRESQL,
        quote_char='"',
        supports_returning=True,
        supports_last_insert_id=False,
        conflict_marker="duplicate key value violates unique constraint",
    ),
    MYSQL: DialectSpec(
        name=MYSQL,
        quote_char="`",
        supports_returning=False,
        conflict_marker="Duplicate entry",
    ),
    SQLITE: DialectSpec(
        name=SQLITE,
        quote_char='"',
        supports_returning=True,
        conflict_marker="UNIQUE constraint failed",
    ),
}

# Driver and legacy names that are wire-compatible with a known dialect
DIALECT_ALIASES: dict[str, str] = {
    "pgx": POSTGRESQL,
    "postgres": POSTGRESQL,
    "psycopg": POSTGRESQL,
    "psycopg2": POSTGRESQL,
    "asyncpg": POSTGRESQL,
    "pg8000": POSTGRESQL,
    "mariadb": MYSQL,
    "pymysql": MYSQL,
    "mysqldb": MYSQL,
    "aiomysql": MYSQL,
    "asyncmy": MYSQL,
    "sqlite3": SQLITE,
    "pysqlite": SQLITE,
    "aiosqlite": SQLITE,
}


def resolve_dialect(raw: str) -> str:
    """Map a raw driver or dialect name to its canonical dialect name.

    ``postgresql+psycopg`` and ``pgx`` both resolve to ``postgresql``.
    Unknown names, driver suffix included, are returned unchanged.
    """
    base = raw.split("+", 1)[0].strip().lower()
    if base in DIALECTS:
        return base
    return DIALECT_ALIASES.get(base, raw)


def get_dialect(raw: str) -> DialectSpec:
    """Return the :class:`DialectSpec` for ``raw``.

    Unknown dialects get a generic spec: double-quote identifiers, no
    conflict detection and no last-insert-id suppression.
    """
    name = resolve_dialect(raw)
    spec = DIALECTS.get(name)
    if spec is None:
        return DialectSpec(name=name)
    return spec


def driver_name(handle: Any) -> str:
    """Return the SQLAlchemy dialect name behind a database handle.

    Accepts a ``Connection``, ``Session``, ``AsyncConnection`` or
    ``AsyncSession``.
    """
    dialect = getattr(handle, "dialect", None)
    if dialect is None:
        if hasattr(handle, "get_bind"):
            dialect = getattr(handle.get_bind(), "dialect", None)
        elif getattr(handle, "bind", None) is not None:
            dialect = getattr(handle.bind, "dialect", None)
    if dialect is None:
        raise TypeError(
            "handle must be a SQLAlchemy Connection, Session, AsyncConnection or "
            f"AsyncSession. Got: {type(handle).__name__}"
        )
    return str(dialect.name)
