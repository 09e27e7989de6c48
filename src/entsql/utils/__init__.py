"""Shared utilities."""

from .exceptions import (
    EntsqlError,
    ExecutionError,
    MetadataError,
    NotFoundError,
    QueryTimeoutError,
    ScanError,
    ValidationError,
)

__all__ = [
    "EntsqlError",
    "ExecutionError",
    "MetadataError",
    "NotFoundError",
    "QueryTimeoutError",
    "ScanError",
    "ValidationError",
]
