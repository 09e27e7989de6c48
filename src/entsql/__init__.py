"""Metadata-driven CRUD statements for dataclass entities.

Public API:
- :class:`CrudExecutor` / :class:`AsyncCrudExecutor`: load, insert, update
  and delete an entity by primary key over a SQLAlchemy handle
- :class:`StatementCache`: per-entity-type statement memoisation shared by
  executors
- :func:`column`, :func:`transient`: entity field declarations
- :func:`is_conflict`: unique constraint violation check for driver errors
"""

from __future__ import annotations

from .config import EntsqlConfig, create_config
from .engine.async_execution import AsyncCrudExecutor
from .engine.cache import Operation, StatementCache
from .engine.conflicts import is_conflict
from .engine.dialects import DialectSpec, get_dialect, resolve_dialect
from .engine.execution import (
    CrudExecutor,
    register_performance_hook,
    unregister_performance_hook,
)
from .table.metadata import Column, Metadata, get_metadata
from .table.schema import column, transient
from .utils.exceptions import (
    EntsqlError,
    ExecutionError,
    MetadataError,
    NotFoundError,
    QueryTimeoutError,
    ScanError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncCrudExecutor",
    "Column",
    "CrudExecutor",
    "DialectSpec",
    "EntsqlConfig",
    "EntsqlError",
    "ExecutionError",
    "Metadata",
    "MetadataError",
    "NotFoundError",
    "Operation",
    "QueryTimeoutError",
    "ScanError",
    "StatementCache",
    "ValidationError",
    "column",
    "create_config",
    "get_dialect",
    "get_metadata",
    "is_conflict",
    "register_performance_hook",
    "resolve_dialect",
    "transient",
    "unregister_performance_hook",
]

