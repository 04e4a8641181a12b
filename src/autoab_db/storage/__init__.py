"""Storage backends for the document store."""

from .base import BatchInsertResult, Collection, StorageBackend
from .duckdb import DuckDBStorage

__all__ = [
    "BatchInsertResult",
    "Collection",
    "StorageBackend",
    "DuckDBStorage",
]
