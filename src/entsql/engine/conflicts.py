"""Uniqueness-violation detection for driver errors.

Classification is a substring match on the engine's error text
(``DialectSpec.conflict_marker``). It relies on the English,
version-stable wording of each engine's message; a localized server or a
driver that rewrites messages will not be recognised.
"""

from __future__ import annotations

from typing import Any, Iterator, Union

from .dialects import DialectSpec, driver_name, get_dialect


def is_conflict(dialect: Union[str, DialectSpec, Any], error: BaseException) -> bool:
    """Return True if ``error`` reports a unique constraint violation.

    Args:
        dialect: Raw dialect/driver name, a :class:`DialectSpec`, or a
            SQLAlchemy handle whose dialect is used
        error: The error raised by a CRUD call or by the driver

    Returns:
        True when the dialect's conflict marker occurs in the message of
        ``error`` or of any exception it was raised from
    """
    if isinstance(dialect, DialectSpec):
        spec = dialect
    elif isinstance(dialect, str):
        spec = get_dialect(dialect)
    else:
        spec = get_dialect(driver_name(dialect))

    marker = spec.conflict_marker
    if marker is None:
        return False
    return any(marker in str(exc) for exc in _error_chain(error))


def _error_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__
