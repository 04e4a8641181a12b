"""
autoab-db - curated autoantibody / autoantigen / disease reference database.

This package provides priority-ranked search over disease-association
records, a moderation workflow for user submissions, a biomarker catalog
and an article module, served over a FastAPI JSON API backed by DuckDB.

Example usage:
    >>> from autoab_db import DuckDBStorage, RecordQuery, RecordQueryEngine
    >>> engine = RecordQueryEngine(DuckDBStorage("autoab.duckdb"))
    >>> page = engine.query(RecordQuery(search="Ro52", field="all"))
"""

from .errors import (
    AutoabError,
    ConflictError,
    InvalidFieldError,
    InvalidTransitionError,
    NotFoundError,
    PartialBatchFailure,
    StoreError,
    ValidationError,
)
from .search.query import RecordPage, RecordQuery, RecordQueryEngine
from .storage import DuckDBStorage, StorageBackend

__all__ = [
    # Retrieval
    "RecordQuery",
    "RecordPage",
    "RecordQueryEngine",
    # Storage
    "DuckDBStorage",
    "StorageBackend",
    # Errors
    "AutoabError",
    "ConflictError",
    "InvalidFieldError",
    "InvalidTransitionError",
    "NotFoundError",
    "PartialBatchFailure",
    "StoreError",
    "ValidationError",
]
