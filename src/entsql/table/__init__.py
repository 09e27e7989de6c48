"""Entity declaration and structural metadata."""

from .metadata import Column, Metadata, get_metadata
from .schema import column, transient

__all__ = ["Column", "Metadata", "column", "get_metadata", "transient"]
