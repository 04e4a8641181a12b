"""
DuckDB storage backend holding each document as JSON text.
"""

from __future__ import annotations

import json
import random
import re
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import duckdb
import structlog

from ..errors import ConflictError, StoreError
from ..search.predicates import (
    AllOf,
    AnyOf,
    Contains,
    Equals,
    MatchAll,
    Predicate,
)
from .base import COLLECTIONS, BatchInsertResult, Collection, StoreSort


logger = structlog.get_logger(__name__)

T = TypeVar("T")

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[^.]+)*$")

# Fields that must be unique within a collection when present.
# Claimed values live in unique_keys so the primary key settles races.
_UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "articles": ("slug", "doi"),
}

_WRITE_ATTEMPTS = 50
_RETRY_BACKOFF_SECONDS = 0.002


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_pointer(field: str) -> str:
    """Translate a dotted field path into a JSON pointer."""
    parts = [part.replace("~", "~0").replace("/", "~1") for part in field.split(".")]
    return "/" + "/".join(parts)


def _set_path(document: dict[str, Any], field: str, value: Any) -> None:
    parts = field.split(".")
    current = document
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def _get_path(document: dict[str, Any], field: str) -> Any:
    current: Any = document
    for part in field.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _unique_value(document: dict[str, Any] | None, field: str) -> str | None:
    if document is None:
        return None
    value = document.get(field)
    if value is None or value == "":
        return None
    return str(value)


class DuckDBStorage:
    """DuckDB-backed document store for records, submissions, biomarkers and articles."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            logger.error("store_connect_failed", db_path=self.db_path, error=str(exc))
            raise StoreError(f"Could not open database: {self.db_path}") from exc
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        with self._guard("initialize"):
            for name in COLLECTIONS:
                self._conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {name}_seq;")
                # seq preserves insertion order for unsorted reads.
                self._conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {name} (
                        id VARCHAR PRIMARY KEY,
                        seq BIGINT NOT NULL DEFAULT nextval('{name}_seq'),
                        doc VARCHAR NOT NULL
                    );
                    """
                )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS unique_keys (
                    collection VARCHAR NOT NULL,
                    field VARCHAR NOT NULL,
                    value VARCHAR NOT NULL,
                    doc_id VARCHAR NOT NULL,
                    PRIMARY KEY (collection, field, value)
                );
                """
            )

    def find(
        self,
        collection: Collection,
        predicate: Predicate,
        *,
        sort: StoreSort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        table = self._table(collection)
        clause, params = self._predicate_clause(predicate)
        sql = f"SELECT doc FROM {table} WHERE {clause}"
        if sort:
            order_terms = [
                f"json_extract_string(doc, '{self._safe_pointer(field)}') "
                f"{'DESC NULLS LAST' if direction == 'desc' else 'ASC NULLS FIRST'}"
                for field, direction in sort
            ]
            sql += " ORDER BY " + ", ".join(order_terms) + ", seq ASC"
        else:
            sql += " ORDER BY seq ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(int(limit), 0))
        if skip:
            sql += " OFFSET ?"
            params.append(max(int(skip), 0))

        with self._guard("find", collection=collection):
            rows = self._conn.execute(sql, params).fetchall()
        return [json.loads(str(row[0])) for row in rows]

    def count(self, collection: Collection, predicate: Predicate) -> int:
        table = self._table(collection)
        clause, params = self._predicate_clause(predicate)
        with self._guard("count", collection=collection):
            row = self._conn.execute(
                f"SELECT COUNT(*) FROM {table} WHERE {clause}", params
            ).fetchone()
        return int(row[0]) if row else 0

    def distinct(
        self, collection: Collection, field: str, predicate: Predicate
    ) -> list[str]:
        table = self._table(collection)
        clause, params = self._predicate_clause(predicate)
        sql = f"""
            SELECT value FROM (
                SELECT json_extract_string(doc, ?) AS value, seq
                FROM {table}
                WHERE {clause}
            ) extracted
            WHERE value IS NOT NULL
            GROUP BY value
            ORDER BY min(seq) ASC
        """
        with self._guard("distinct", collection=collection, field=field):
            rows = self._conn.execute(sql, [json_pointer(field), *params]).fetchall()
        return [str(row[0]) for row in rows]

    def group_counts(
        self,
        collection: Collection,
        field: str,
        predicate: Predicate,
        *,
        limit: int | None = None,
    ) -> list[tuple[str | None, int]]:
        table = self._table(collection)
        clause, params = self._predicate_clause(predicate)
        sql = f"""
            SELECT value, COUNT(*) AS n FROM (
                SELECT json_extract_string(doc, ?) AS value
                FROM {table}
                WHERE {clause}
            ) grouped
            GROUP BY value
            ORDER BY n DESC, value ASC NULLS FIRST
        """
        query_params: list[Any] = [json_pointer(field), *params]
        if limit is not None:
            sql += " LIMIT ?"
            query_params.append(max(int(limit), 0))
        with self._guard("group_counts", collection=collection, field=field):
            rows = self._conn.execute(sql, query_params).fetchall()
        return [(None if row[0] is None else str(row[0]), int(row[1])) for row in rows]

    def get(self, collection: Collection, doc_id: str) -> dict[str, Any] | None:
        with self._guard("get", collection=collection):
            return self._fetch(collection, doc_id)

    def insert_one(self, collection: Collection, document: dict[str, Any]) -> dict[str, Any]:
        return self._write(
            "insert_one", lambda: self._insert(collection, document), collection=collection
        )

    def insert_many(
        self, collection: Collection, documents: list[dict[str, Any]]
    ) -> BatchInsertResult:
        inserted: list[dict[str, Any]] = []
        errors: list[str] = []
        for index, document in enumerate(documents):
            try:
                inserted.append(self.insert_one(collection, document))
            except (StoreError, ConflictError) as exc:
                errors.append(f"Row {index + 1}: {exc}")
        if errors:
            logger.warning(
                "batch_insert_partial",
                collection=collection,
                inserted=len(inserted),
                failed=len(errors),
            )
        return BatchInsertResult(inserted=inserted, errors=errors)

    def update(
        self, collection: Collection, doc_id: str, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        def apply(current: dict[str, Any]) -> None:
            for key, value in changes.items():
                if key in {"id", "createdAt"}:
                    continue
                _set_path(current, key, value)

        return self._write(
            "update",
            lambda: self._modify(collection, doc_id, apply),
            collection=collection,
        )

    def increment(
        self, collection: Collection, doc_id: str, field: str, by: int = 1
    ) -> dict[str, Any] | None:
        def bump(current: dict[str, Any]) -> None:
            value = _get_path(current, field)
            base = value if isinstance(value, int) and not isinstance(value, bool) else 0
            _set_path(current, field, base + by)

        return self._write(
            "increment",
            lambda: self._modify(collection, doc_id, bump),
            collection=collection,
            field=field,
        )

    def delete(self, collection: Collection, doc_id: str) -> bool:
        table = self._table(collection)

        def remove() -> bool:
            row = self._conn.execute(
                f"DELETE FROM {table} WHERE id = ? RETURNING id", [doc_id]
            ).fetchone()
            self._release_keys(collection, [doc_id])
            return row is not None

        return self._write("delete", remove, collection=collection)

    def delete_many(self, collection: Collection, predicate: Predicate) -> int:
        table = self._table(collection)
        clause, params = self._predicate_clause(predicate)

        def remove() -> int:
            rows = self._conn.execute(
                f"DELETE FROM {table} WHERE {clause} RETURNING id", params
            ).fetchall()
            self._release_keys(collection, [str(row[0]) for row in rows])
            return len(rows)

        return self._write("delete_many", remove, collection=collection)

    def _fetch(self, collection: Collection, doc_id: str) -> dict[str, Any] | None:
        table = self._table(collection)
        row = self._conn.execute(
            f"SELECT doc FROM {table} WHERE id = ? LIMIT 1", [doc_id]
        ).fetchone()
        if row is None:
            return None
        return json.loads(str(row[0]))

    def _insert(self, collection: Collection, document: dict[str, Any]) -> dict[str, Any]:
        table = self._table(collection)
        now = utc_now_iso()
        stored = dict(document)
        stored["id"] = str(stored.get("id") or uuid.uuid4().hex)
        stored.setdefault("createdAt", now)
        stored["updatedAt"] = now
        self._claim_keys(collection, stored["id"], stored)
        try:
            self._conn.execute(
                f"INSERT INTO {table} (id, doc) VALUES (?, ?)",
                [stored["id"], json.dumps(stored)],
            )
        except duckdb.ConstraintException as exc:
            raise ConflictError(f"Duplicate id: {stored['id']!r}") from exc
        return stored

    def _modify(
        self,
        collection: Collection,
        doc_id: str,
        apply: Callable[[dict[str, Any]], None],
    ) -> dict[str, Any] | None:
        """Read, change and write back one document inside the open transaction."""
        table = self._table(collection)
        previous = self._fetch(collection, doc_id)
        if previous is None:
            return None
        current = json.loads(json.dumps(previous))
        apply(current)
        current["updatedAt"] = utc_now_iso()
        self._claim_keys(collection, doc_id, current, previous=previous)
        self._conn.execute(
            f"UPDATE {table} SET doc = ? WHERE id = ?",
            [json.dumps(current), doc_id],
        )
        return current

    def _claim_keys(
        self,
        collection: Collection,
        doc_id: str,
        document: dict[str, Any],
        *,
        previous: dict[str, Any] | None = None,
    ) -> None:
        for field in _UNIQUE_FIELDS.get(collection, ()):
            value = _unique_value(document, field)
            old = _unique_value(previous, field)
            if value == old:
                continue
            if old is not None:
                self._conn.execute(
                    "DELETE FROM unique_keys WHERE collection = ? AND field = ? AND value = ?",
                    [collection, field, old],
                )
            if value is None:
                continue
            try:
                self._conn.execute(
                    "INSERT INTO unique_keys VALUES (?, ?, ?, ?)",
                    [collection, field, value, doc_id],
                )
            except duckdb.ConstraintException as exc:
                raise ConflictError(f"Duplicate {field}: {value!r}") from exc

    def _release_keys(self, collection: Collection, doc_ids: list[str]) -> None:
        if not doc_ids or collection not in _UNIQUE_FIELDS:
            return
        self._conn.execute(
            "DELETE FROM unique_keys WHERE collection = ? AND list_contains(?, doc_id)",
            [collection, doc_ids],
        )

    def _write(self, operation: str, work: Callable[[], T], **context: Any) -> T:
        """Run *work* in one transaction, retrying when a concurrent writer wins."""
        attempt = 0
        with self._guard(operation, **context):
            while True:
                attempt += 1
                self._conn.begin()
                try:
                    result = work()
                    self._conn.commit()
                except (duckdb.TransactionException, duckdb.ConstraintException) as exc:
                    # Lost a race at write or commit time; the retry sees the winner.
                    self._rollback()
                    if attempt >= _WRITE_ATTEMPTS:
                        raise
                    logger.debug(
                        "store_write_retry",
                        operation=operation,
                        attempt=attempt,
                        error=str(exc),
                        **context,
                    )
                    time.sleep(random.uniform(0, _RETRY_BACKOFF_SECONDS * attempt))
                except BaseException:
                    self._rollback()
                    raise
                else:
                    return result

    def _rollback(self) -> None:
        # A failed COMMIT has already ended the transaction.
        with suppress(duckdb.TransactionException):
            self._conn.rollback()

    @contextmanager
    def _guard(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except duckdb.Error as exc:
            logger.error(
                "store_operation_failed",
                operation=operation,
                error=str(exc),
                **context,
            )
            raise StoreError(f"Store operation {operation!r} failed: {exc}") from exc

    @staticmethod
    def _table(collection: str) -> str:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")
        return collection

    @staticmethod
    def _safe_pointer(field: str) -> str:
        if not _FIELD_RE.match(field) or "'" in field:
            raise ValueError(f"Invalid sort field: {field!r}")
        return json_pointer(field)

    @classmethod
    def _predicate_clause(cls, predicate: Predicate) -> tuple[str, list[Any]]:
        if isinstance(predicate, MatchAll):
            return "TRUE", []

        if isinstance(predicate, (Contains, Equals)):
            return (
                "regexp_matches(coalesce(json_extract_string(doc, ?), ''), ?, 'i')",
                [json_pointer(predicate.field), predicate.pattern],
            )

        if isinstance(predicate, (AnyOf, AllOf)):
            if not predicate.predicates:
                return ("FALSE", []) if isinstance(predicate, AnyOf) else ("TRUE", [])
            joiner = " OR " if isinstance(predicate, AnyOf) else " AND "
            clauses: list[str] = []
            params: list[Any] = []
            for child in predicate.predicates:
                clause, child_params = cls._predicate_clause(child)
                clauses.append(f"({clause})")
                params.extend(child_params)
            return joiner.join(clauses), params

        raise ValueError(f"Unsupported predicate: {predicate!r}")
