"""Structural metadata extracted from entity dataclasses.

A :class:`Metadata` describes one entity type: its table, its columns in
declaration order and the primary key subset. Statement builders only ever
look at metadata; field values reach the database through
:func:`bind_params` and come back through :func:`scan_into`.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from ..utils.exceptions import MetadataError, ScanError
from .schema import METADATA_KEY, ColumnOptions

logger = logging.getLogger(__name__)

_DEFAULT_OPTIONS = ColumnOptions()


@dataclass(frozen=True)
class Column:
    """One table column bound to an entity attribute."""

    attr: str
    db_field: str
    primary_key: bool = False
    auto_increment: bool = False
    returning_insert: bool = False
    returning_update: bool = False
    refuse_update: bool = False


@dataclass(frozen=True)
class Metadata:
    """Per-type descriptor of table name, columns and primary keys."""

    type: type
    table_name: str
    columns: Tuple[Column, ...]
    primary_keys: Tuple[Column, ...]
    has_returning_insert: bool = False
    has_returning_update: bool = False

    def column_for(self, db_field: str) -> Optional[Column]:
        for col in self.columns:
            if col.db_field == db_field:
                return col
        return None


def get_metadata(entity: Any) -> Metadata:
    """Return the metadata of an entity instance or entity class.

    Raises:
        MetadataError: If the type is not a dataclass, lacks ``__tablename__``,
            declares no columns or maps two fields to one column
    """
    entity_type = entity if isinstance(entity, type) else type(entity)
    return _metadata_for_type(entity_type)


@functools.lru_cache(maxsize=None)
def _metadata_for_type(entity_type: type) -> Metadata:
    if not dataclasses.is_dataclass(entity_type):
        raise MetadataError(
            f"{entity_type.__name__} is not a dataclass entity",
            context={"type": entity_type.__qualname__},
        )

    table_name = getattr(entity_type, "__tablename__", None)
    if not isinstance(table_name, str) or not table_name.strip():
        raise MetadataError(
            f"{entity_type.__name__} does not declare a __tablename__",
            context={"type": entity_type.__qualname__},
        )

    columns = []
    seen: set[str] = set()
    for f in dataclasses.fields(entity_type):
        options = f.metadata.get(METADATA_KEY, _DEFAULT_OPTIONS)
        if options.transient:
            continue
        db_field = options.db_field or f.name
        if db_field in seen:
            raise MetadataError(
                f"{entity_type.__name__} maps more than one field to column '{db_field}'",
                context={"type": entity_type.__qualname__, "column": db_field},
            )
        seen.add(db_field)
        columns.append(
            Column(
                attr=f.name,
                db_field=db_field,
                primary_key=options.primary_key,
                auto_increment=options.auto_increment,
                returning_insert=options.returning_insert,
                returning_update=options.returning_update,
                refuse_update=options.refuse_update,
            )
        )

    if not columns:
        raise MetadataError(
            f"{entity_type.__name__} declares no columns",
            context={"type": entity_type.__qualname__},
        )

    md = Metadata(
        type=entity_type,
        table_name=table_name,
        columns=tuple(columns),
        primary_keys=tuple(col for col in columns if col.primary_key),
        has_returning_insert=any(col.returning_insert for col in columns),
        has_returning_update=any(col.returning_update for col in columns),
    )
    logger.debug(
        "Extracted metadata for %s: table=%s columns=%d primary_keys=%d",
        entity_type.__qualname__,
        md.table_name,
        len(md.columns),
        len(md.primary_keys),
    )
    return md


def require_primary_key(md: Metadata, operation: str) -> None:
    """Raise :class:`MetadataError` if ``md`` has no primary key."""
    if not md.primary_keys:
        raise MetadataError(
            f"{md.type.__name__} has no primary key; {operation} requires one",
            context={"table": md.table_name, "operation": operation},
        )


def bind_params(entity: Any, md: Metadata) -> dict[str, Any]:
    """Read every column value of ``entity`` keyed by its DB field name."""
    return {col.db_field: getattr(entity, col.attr) for col in md.columns}


def scan_into(entity: Any, md: Metadata, row: Mapping[str, Any]) -> None:
    """Write the values of a result row back onto ``entity``.

    Only attributes whose column is present in ``row`` are overwritten.

    Raises:
        ScanError: If a row key matches no column or the entity is read-only
    """
    for key, value in row.items():
        col = md.column_for(key)
        if col is None:
            raise ScanError(
                "scanning result into entity failed because column "
                f"'{key}' has no matching field on {md.type.__name__}",
                context={"table": md.table_name},
            )
        try:
            setattr(entity, col.attr, value)
        except AttributeError as exc:
            raise ScanError(
                "scanning result into entity failed because field "
                f"'{col.attr}' of {md.type.__name__} is not writable: {exc}",
                context={"table": md.table_name},
            ) from exc
