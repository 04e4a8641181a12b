"""
Storage interfaces for document persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Sequence

from ..search.predicates import Predicate


Collection = Literal["records", "submissions", "biomarkers", "articles"]

COLLECTIONS: tuple[str, ...] = ("records", "submissions", "biomarkers", "articles")

StoreSort = Sequence[tuple[str, Literal["asc", "desc"]]]


@dataclass(frozen=True)
class BatchInsertResult:
    """Outcome of a best-effort batch insert."""

    inserted: list[dict[str, Any]]
    errors: list[str] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)

    @property
    def failed_count(self) -> int:
        return len(self.errors)


class StorageBackend(Protocol):
    """Protocol for the document-store primitives the services rely on."""

    def initialize(self) -> None:
        """Create required tables."""

    def close(self) -> None:
        """Release the underlying connection."""

    def find(
        self,
        collection: Collection,
        predicate: Predicate,
        *,
        sort: StoreSort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching *predicate*."""

    def count(self, collection: Collection, predicate: Predicate) -> int:
        """Count documents matching *predicate*."""

    def distinct(
        self, collection: Collection, field: str, predicate: Predicate
    ) -> list[str]:
        """Return the distinct non-null values of *field* among matches."""

    def group_counts(
        self,
        collection: Collection,
        field: str,
        predicate: Predicate,
        *,
        limit: int | None = None,
    ) -> list[tuple[str | None, int]]:
        """Group matches by *field* and return (value, count), largest first."""

    def get(self, collection: Collection, doc_id: str) -> dict[str, Any] | None:
        """Fetch a document by id."""

    def insert_one(self, collection: Collection, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a document and return it with id and timestamps assigned."""

    def insert_many(
        self, collection: Collection, documents: list[dict[str, Any]]
    ) -> BatchInsertResult:
        """Insert documents one by one; failures do not abort the batch."""

    def update(
        self, collection: Collection, doc_id: str, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Apply *changes* (dotted keys allowed) atomically and return the updated document."""

    def increment(
        self, collection: Collection, doc_id: str, field: str, by: int = 1
    ) -> dict[str, Any] | None:
        """Atomically add *by* to a numeric field and return the updated document."""

    def delete(self, collection: Collection, doc_id: str) -> bool:
        """Delete a document by id. Return True if it existed."""

    def delete_many(self, collection: Collection, predicate: Predicate) -> int:
        """Delete all matches and return how many were removed."""
