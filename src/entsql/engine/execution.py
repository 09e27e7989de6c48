"""Execution helpers for running entity CRUD statements."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from ..config import DEFAULT_CONFIG, EntsqlConfig
from ..sql.statements import build_delete, build_insert, build_select, build_update
from ..table.metadata import Metadata, bind_params, get_metadata, scan_into
from ..utils.exceptions import ExecutionError, NotFoundError, QueryTimeoutError
from .cache import Operation, StatementCache
from .dialects import DialectSpec, driver_name, get_dialect

logger = logging.getLogger(__name__)

# Optional performance monitoring hooks
_perf_hooks: dict[str, list[Callable[[str, float, dict[str, Any]], None]]] = {
    "query_start": [],
    "query_end": [],
}

BUILDERS: Dict[Operation, Callable[[Metadata, DialectSpec], str]] = {
    Operation.SELECT: build_select,
    Operation.INSERT: build_insert,
    Operation.UPDATE: build_update,
    Operation.DELETE: build_delete,
}


class Deadline:
    """Absolute point in time after which a statement must not start."""

    def __init__(self, timeout: Optional[float]):
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(self._expires_at - time.monotonic(), 0.0)

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, sql: str) -> None:
        """Raise :class:`QueryTimeoutError` if the deadline has passed."""
        if self.expired():
            raise QueryTimeoutError(
                f"Deadline expired before execution\nSQL query: {sql}",
                timeout=self.timeout,
            )


class _CrudBase:
    """Statement preparation and result interpretation shared by both executors."""

    def __init__(
        self,
        cache: Optional[StatementCache] = None,
        config: Optional[EntsqlConfig] = None,
    ):
        self.cache = cache if cache is not None else StatementCache()
        self.config = config or DEFAULT_CONFIG

    def dialect_for(self, handle: Any) -> DialectSpec:
        """Resolve the dialect once per call, preferring the configured override."""
        return get_dialect(self.config.dialect or driver_name(handle))

    def statement_for(self, operation: Operation, md: Metadata, dialect: DialectSpec) -> str:
        return self.cache.get_or_build(
            operation, md.type, dialect.name, lambda: BUILDERS[operation](md, dialect)
        )

    def _prepare(
        self, operation: Operation, entity: Any, handle: Any
    ) -> Tuple[Metadata, DialectSpec, str, Dict[str, Any]]:
        md = get_metadata(entity)
        dialect = self.dialect_for(handle)
        sql = self.statement_for(operation, md, dialect)
        return md, dialect, sql, bind_params(entity, md)

    def _deadline(self, timeout: Optional[float]) -> Deadline:
        return Deadline(timeout if timeout is not None else self.config.query_timeout)

    def _text(self, sql: str, deadline: Deadline) -> TextClause:
        stmt = text(sql)
        remaining = deadline.remaining()
        if remaining is not None:
            stmt = stmt.execution_options(timeout=remaining)
        return stmt

    def _hook_metadata(self, params: Mapping[str, Any], **extra: Any) -> dict[str, Any]:
        metadata = dict(extra)
        if self.config.log_parameters:
            metadata["params"] = dict(params)
        return metadata

    def _log_start(self, operation: Operation, sql: str, params: Mapping[str, Any]) -> None:
        if self.config.log_parameters:
            logger.debug(
                "Executing %s: %s params=%r", operation.value, self.config.preview(sql), params
            )
        else:
            logger.debug("Executing %s: %s", operation.value, self.config.preview(sql))

    def _execution_error(
        self,
        exc: SQLAlchemyError,
        sql: str,
        params: Mapping[str, Any],
        elapsed: float,
        dialect: DialectSpec,
    ) -> ExecutionError:
        logger.error("SQL execution failed after %.3f seconds: %s", elapsed, exc, exc_info=True)
        _call_hooks("query_end", sql, elapsed, self._hook_metadata(params, error=str(exc)))
        context: dict[str, Any] = {
            "sql": self.config.preview(sql),
            "elapsed_seconds": elapsed,
            "dialect": dialect.name,
        }
        if self.config.log_parameters:
            context["params"] = dict(params)
        suggestion = None
        if not dialect.supports_returning and " RETURNING " in sql:
            suggestion = (
                f"The {dialect.name} dialect does not support RETURNING. "
                "Remove the returning_insert/returning_update flags from the entity "
                "or reload it after writing."
            )
        return ExecutionError(
            f"SQL execution failed: {exc}\nSQL query: {self.config.preview(sql)}",
            suggestion=suggestion,
            context=context,
            orig=exc,
        )

    def _timeout_error(
        self,
        sql: str,
        params: Mapping[str, Any],
        deadline: Deadline,
        elapsed: float,
        exc: Optional[BaseException] = None,
    ) -> QueryTimeoutError:
        logger.error("Statement exceeded its %.3f second deadline", deadline.timeout or 0.0)
        reason = f": {exc}" if exc is not None and str(exc) else ""
        _call_hooks(
            "query_end", sql, elapsed, self._hook_metadata(params, error=f"timeout{reason}")
        )
        return QueryTimeoutError(
            f"Query exceeded timeout{reason}\nSQL query: {self.config.preview(sql)}",
            timeout=deadline.timeout,
            context={"sql": self.config.preview(sql), "elapsed_seconds": elapsed},
        )

    def _finish(self, sql: str, params: Mapping[str, Any], start_time: float, result: Any) -> None:
        elapsed = time.perf_counter() - start_time
        if getattr(result, "returns_rows", False):
            # rowcount is undefined (-1) until the rows are consumed
            logger.debug("Statement returned rows in %.3f seconds", elapsed)
            _call_hooks("query_end", sql, elapsed, self._hook_metadata(params))
            return
        rowcount = result.rowcount or 0
        logger.debug("Statement affected %d rows in %.3f seconds", rowcount, elapsed)
        _call_hooks("query_end", sql, elapsed, self._hook_metadata(params, rowcount=rowcount))

    @staticmethod
    def _not_found(md: Metadata, operation: Operation) -> NotFoundError:
        return NotFoundError(
            f"No {md.table_name} row matched the primary key ({operation.value})",
            table=md.table_name,
            operation=operation.value,
        )

    @staticmethod
    def _require_row(
        row: Optional[Mapping[str, Any]], md: Metadata, operation: Operation
    ) -> Mapping[str, Any]:
        if row is None:
            raise _CrudBase._not_found(md, operation)
        return row


class CrudExecutor(_CrudBase):
    """Runs load/insert/update/delete for entities over a SQLAlchemy handle.

    The handle is a ``Connection`` or ``Session`` owned by the caller; the
    executor never commits, rolls back or closes it.

    Example:
        >>> executor = CrudExecutor()
        >>> with engine.begin() as conn:
        ...     executor.insert(account, conn)
        ...     executor.load(account, conn)
    """

    def load(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> None:
        """Fill ``entity`` from the row addressed by its primary key.

        Raises:
            NotFoundError: If no row matches
            ScanError: If the row does not fit the entity
            ExecutionError: If the driver rejects the statement
        """
        md, dialect, sql, params = self._prepare(Operation.SELECT, entity, handle)
        row = self._fetch_row(
            Operation.SELECT, handle, dialect, sql, params, self._deadline(timeout)
        )
        scan_into(entity, md, self._require_row(row, md, Operation.SELECT))

    def insert(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> Optional[int]:
        """Insert ``entity`` and return the driver's last inserted id.

        When columns are flagged ``returning_insert`` they are written back
        onto the entity and ``None`` is returned. PostgreSQL-family dialects
        have no last-insert-id and also return ``None``.
        """
        md, dialect, sql, params = self._prepare(Operation.INSERT, entity, handle)
        deadline = self._deadline(timeout)
        if md.has_returning_insert:
            row = self._fetch_row(Operation.INSERT, handle, dialect, sql, params, deadline)
            scan_into(entity, md, self._require_row(row, md, Operation.INSERT))
            return None

        result = self._execute(Operation.INSERT, handle, dialect, sql, params, deadline)
        if not dialect.supports_last_insert_id:
            return None
        return result.lastrowid

    def update(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> None:
        """Update the row addressed by the entity's primary key.

        Raises:
            NotFoundError: If no row was affected (or RETURNING produced none)
        """
        md, dialect, sql, params = self._prepare(Operation.UPDATE, entity, handle)
        deadline = self._deadline(timeout)
        if md.has_returning_update:
            row = self._fetch_row(Operation.UPDATE, handle, dialect, sql, params, deadline)
            scan_into(entity, md, self._require_row(row, md, Operation.UPDATE))
            return

        result = self._execute(Operation.UPDATE, handle, dialect, sql, params, deadline)
        if not result.rowcount:
            raise self._not_found(md, Operation.UPDATE)

    def delete(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> None:
        """Delete the row addressed by the entity's primary key.

        Deleting a row that does not exist is not an error.
        """
        _, dialect, sql, params = self._prepare(Operation.DELETE, entity, handle)
        self._execute(Operation.DELETE, handle, dialect, sql, params, self._deadline(timeout))

    def _execute(
        self,
        operation: Operation,
        handle: Any,
        dialect: DialectSpec,
        sql: str,
        params: Dict[str, Any],
        deadline: Deadline,
    ) -> Any:
        deadline.check(self.config.preview(sql))
        self._log_start(operation, sql, params)
        start_time = time.perf_counter()
        _call_hooks("query_start", sql, 0.0, self._hook_metadata(params))
        try:
            result = handle.execute(self._text(sql, deadline), params)
        except SQLAlchemyError as exc:
            elapsed = time.perf_counter() - start_time
            # A lock wait or connect timeout inside the deadline is a plain driver error
            if deadline.expired() and _is_timeout(exc):
                raise self._timeout_error(
                    sql, params, deadline, elapsed, getattr(exc, "orig", None) or exc
                ) from exc
            raise self._execution_error(exc, sql, params, elapsed, dialect) from exc
        self._finish(sql, params, start_time, result)
        return result

    def _fetch_row(
        self,
        operation: Operation,
        handle: Any,
        dialect: DialectSpec,
        sql: str,
        params: Dict[str, Any],
        deadline: Deadline,
    ) -> Optional[Mapping[str, Any]]:
        result = self._execute(operation, handle, dialect, sql, params, deadline)
        try:
            return result.mappings().first()
        except SQLAlchemyError as exc:
            raise self._execution_error(exc, sql, params, 0.0, dialect) from exc


def _is_timeout(exc: SQLAlchemyError) -> bool:
    # Only the driver's own message; the statement text may mention "timeout"
    message = str(getattr(exc, "orig", None) or exc).lower()
    return "timeout" in message or "timed out" in message or "canceling statement" in message


def register_performance_hook(
    event: str, callback: Callable[[str, float, dict[str, Any]], None]
) -> None:
    """Register a performance monitoring hook.

    Args:
        event: Event type - "query_start" or "query_end"
        callback: Callback function that receives (sql, elapsed_time, metadata)

    Example:
        >>> def log_slow_statements(sql: str, elapsed: float, metadata: dict):
        ...     if elapsed > 1.0:
        ...         print(f"Slow statement ({elapsed:.2f}s): {sql[:100]}")
        >>> register_performance_hook("query_end", log_slow_statements)
    """
    if event not in _perf_hooks:
        raise ValueError(f"Unknown event type: {event}. Valid events: {list(_perf_hooks.keys())}")
    _perf_hooks[event].append(callback)


def unregister_performance_hook(
    event: str, callback: Callable[[str, float, dict[str, Any]], None]
) -> None:
    """Unregister a performance monitoring hook.

    Args:
        event: Event type - "query_start" or "query_end"
        callback: Callback function to remove
    """
    if event in _perf_hooks and callback in _perf_hooks[event]:
        _perf_hooks[event].remove(callback)


def _call_hooks(event: str, sql: str, elapsed: float, metadata: dict[str, Any]) -> None:
    """Call all registered hooks for an event."""
    for hook in _perf_hooks.get(event, []):
        try:
            hook(sql, elapsed, metadata)
        except Exception as exc:
            logger.warning("Performance hook failed: %s", exc, exc_info=True)
