"""Per-entity-type memoisation of generated statement text."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[type, str]


class Operation(str, enum.Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class StatementCache:
    """Maps (entity type, dialect name) to statement text, one map per operation.

    Hits are plain dict reads. A miss takes the lock, checks again and
    builds, so every key is built at most once even when many threads hit
    a new entity type at the same time. Stored text is never replaced.

    One cache is usually created at start-up and handed to the executors
    that share it.
    """

    def __init__(self) -> None:
        self._statements: Dict[Operation, Dict[CacheKey, str]] = {op: {} for op in Operation}
        self._lock = threading.Lock()
        self.builds = 0

    def get(self, operation: Operation, entity_type: type, dialect: str) -> Optional[str]:
        return self._statements[operation].get((entity_type, dialect))

    def get_or_build(
        self,
        operation: Operation,
        entity_type: type,
        dialect: str,
        build: Callable[[], str],
    ) -> str:
        """Return the cached statement, building and storing it on first use.

        Args:
            operation: Statement kind
            entity_type: Entity class the statement addresses
            dialect: Canonical dialect name the statement was quoted for
            build: Zero-argument callable producing the statement text

        Returns:
            The statement text; identical for every caller of the same key
        """
        key = (entity_type, dialect)
        statements = self._statements[operation]
        stmt = statements.get(key)
        if stmt is not None:
            return stmt

        with self._lock:
            stmt = statements.get(key)
            if stmt is None:
                stmt = build()
                statements[key] = stmt
                self.builds += 1
                logger.debug(
                    "Cached %s statement for %s (%s): %s",
                    operation.value,
                    entity_type.__qualname__,
                    dialect,
                    stmt,
                )
        return stmt

    def clear(self) -> None:
        with self._lock:
            for statements in self._statements.values():
                statements.clear()

    def __contains__(self, item: Tuple[Operation, type, str]) -> bool:
        operation, entity_type, dialect = item
        return (entity_type, dialect) in self._statements[operation]

    def __len__(self) -> int:
        return sum(len(statements) for statements in self._statements.values())
