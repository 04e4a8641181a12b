"""Shared fixtures: a throwaway DuckDB store and record factories."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from autoab_db.search.query import RecordQueryEngine
from autoab_db.storage import DuckDBStorage


def make_record(**overrides: Any) -> dict[str, Any]:
    """A complete record; override any field by keyword."""
    record: dict[str, Any] = {
        "disease": "Systemic Lupus Erythematosus",
        "autoantibody": "Anti-dsDNA",
        "autoantigen": "dsDNA",
        "epitope": "Backbone",
        "uniprotId": "P00000",
    }
    record.update(overrides)
    return record


@pytest.fixture()
def storage(tmp_path: Path):
    store = DuckDBStorage(str(tmp_path / "autoab.duckdb"))
    yield store
    store.close()


@pytest.fixture()
def engine(storage: DuckDBStorage) -> RecordQueryEngine:
    return RecordQueryEngine(storage)
