"""Async execution helpers for running entity CRUD statements."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..table.metadata import scan_into
from .cache import Operation
from .dialects import DialectSpec
from .execution import Deadline, _call_hooks, _CrudBase, _is_timeout

logger = logging.getLogger(__name__)


class AsyncCrudExecutor(_CrudBase):
    """Async counterpart of :class:`~entsql.engine.execution.CrudExecutor`.

    Works over ``AsyncConnection`` and ``AsyncSession`` handles. A timeout
    bounds the database round trip with :func:`asyncio.wait_for`; cancelling
    the calling task cancels the statement and the cancellation propagates.
    """

    async def load(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> None:
        md, dialect, sql, params = self._prepare(Operation.SELECT, entity, handle)
        row = await self._fetch_row(
            Operation.SELECT, handle, dialect, sql, params, self._deadline(timeout)
        )
        scan_into(entity, md, self._require_row(row, md, Operation.SELECT))

    async def insert(
        self, entity: Any, handle: Any, *, timeout: Optional[float] = None
    ) -> Optional[int]:
        md, dialect, sql, params = self._prepare(Operation.INSERT, entity, handle)
        deadline = self._deadline(timeout)
        if md.has_returning_insert:
            row = await self._fetch_row(Operation.INSERT, handle, dialect, sql, params, deadline)
            scan_into(entity, md, self._require_row(row, md, Operation.INSERT))
            return None

        result = await self._execute(Operation.INSERT, handle, dialect, sql, params, deadline)
        if not dialect.supports_last_insert_id:
            return None
        return result.lastrowid

    async def update(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> None:
        md, dialect, sql, params = self._prepare(Operation.UPDATE, entity, handle)
        deadline = self._deadline(timeout)
        if md.has_returning_update:
            row = await self._fetch_row(Operation.UPDATE, handle, dialect, sql, params, deadline)
            scan_into(entity, md, self._require_row(row, md, Operation.UPDATE))
            return

        result = await self._execute(Operation.UPDATE, handle, dialect, sql, params, deadline)
        if not result.rowcount:
            raise self._not_found(md, Operation.UPDATE)

    async def delete(self, entity: Any, handle: Any, *, timeout: Optional[float] = None) -> None:
        _, dialect, sql, params = self._prepare(Operation.DELETE, entity, handle)
        await self._execute(
            Operation.DELETE, handle, dialect, sql, params, self._deadline(timeout)
        )

    async def _execute(
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
            call = handle.execute(self._text(sql, deadline), params)
            remaining = deadline.remaining()
            if remaining is None:
                result = await call
            else:
                result = await asyncio.wait_for(call, timeout=remaining)
        except asyncio.TimeoutError as exc:
            elapsed = time.perf_counter() - start_time
            raise self._timeout_error(sql, params, deadline, elapsed) from exc
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

    async def _fetch_row(
        self,
        operation: Operation,
        handle: Any,
        dialect: DialectSpec,
        sql: str,
        params: Dict[str, Any],
        deadline: Deadline,
    ) -> Optional[Mapping[str, Any]]:
        result = await self._execute(operation, handle, dialect, sql, params, deadline)
        try:
            return result.mappings().first()
        except SQLAlchemyError as exc:
            raise self._execution_error(exc, sql, params, 0.0, dialect) from exc
