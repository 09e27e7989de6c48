"""Column declaration primitives for entity dataclasses."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Optional

# Key under which column options live in ``dataclasses.field(metadata=...)``
METADATA_KEY = "entsql"


@dataclass(frozen=True)
class ColumnOptions:
    """Per-field flags controlling how a column appears in generated SQL."""

    db_field: Optional[str] = None
    primary_key: bool = False
    auto_increment: bool = False
    returning_insert: bool = False
    returning_update: bool = False
    refuse_update: bool = False
    transient: bool = False


def column(
    db_field: Optional[str] = None,
    *,
    primary_key: bool = False,
    auto_increment: bool = False,
    returning_insert: bool = False,
    returning_update: bool = False,
    refuse_update: bool = False,
    default: Any = dataclasses.MISSING,
    default_factory: Callable[[], Any] | Any = dataclasses.MISSING,
) -> Any:
    """Declare an entity field bound to a table column.

    Args:
        db_field: Physical column name (defaults to the attribute name)
        primary_key: Column is part of the primary key; implies ``refuse_update``
        auto_increment: Value is generated by the database; left out of INSERT
        returning_insert: Value is read back through ``INSERT ... RETURNING``
        returning_update: Value is read back through ``UPDATE ... RETURNING``
        refuse_update: Column never appears in the UPDATE SET list
        default: Dataclass default value
        default_factory: Dataclass default factory

    Returns:
        A ``dataclasses.field`` carrying the column options

    Example:
        >>> @dataclass
        ... class Account:
        ...     __tablename__ = "account"
        ...     id: int | None = column(primary_key=True, auto_increment=True, default=None)
        ...     email: str = column(default="")
    """
    options = ColumnOptions(
        db_field=db_field,
        primary_key=primary_key,
        auto_increment=auto_increment,
        returning_insert=returning_insert,
        returning_update=returning_update,
        refuse_update=refuse_update or primary_key,
    )
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={METADATA_KEY: options},
    )


def transient(
    *,
    default: Any = dataclasses.MISSING,
    default_factory: Callable[[], Any] | Any = dataclasses.MISSING,
) -> Any:
    """Declare an entity field that is not stored in the table."""
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        compare=False,
        metadata={METADATA_KEY: ColumnOptions(transient=True)},
    )
