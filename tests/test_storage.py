"""Tests for the DuckDB document store."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from autoab_db.errors import ConflictError
from autoab_db.search.predicates import AllOf, AnyOf, Contains, Equals, MatchAll
from autoab_db.storage import DuckDBStorage
from autoab_db.storage.duckdb import json_pointer


def test_json_pointer_escapes_path_segments() -> None:
    assert json_pointer("disease") == "/disease"
    assert json_pointer("metadata.verified") == "/metadata/verified"
    assert json_pointer("raw.Prevalence (% a/b)") == "/raw/Prevalence (% a~1b)"


def test_insert_assigns_id_and_timestamps(storage: DuckDBStorage) -> None:
    stored = storage.insert_one("records", {"disease": "SLE"})

    assert stored["id"]
    assert stored["createdAt"]
    assert stored["updatedAt"]
    assert storage.get("records", stored["id"]) == stored
    assert storage.get("records", "missing") is None


def test_find_compiles_predicates_case_insensitively(storage: DuckDBStorage) -> None:
    storage.insert_one("records", {"disease": "Sjögren Syndrome", "autoantibody": "Anti-Ro52"})
    storage.insert_one("records", {"disease": "Lupus", "epitope": "C1q (classical)"})
    storage.insert_one("records", {"disease": "Myositis", "metadata": {"verified": True}})

    assert len(storage.find("records", Contains("disease", "sjögren SYNDROME"))) == 1
    assert len(storage.find("records", Equals("epitope", "c1q (classical)"))) == 1
    assert storage.find("records", Equals("epitope", "C1q")) == []
    assert len(storage.find("records", Equals("metadata.verified", "true"))) == 1
    assert len(storage.find("records", AnyOf((Equals("disease", "lupus"), Contains("autoantibody", "ro"))))) == 2
    assert storage.find("records", AllOf((Equals("disease", "lupus"), Contains("autoantibody", "ro")))) == []
    assert storage.find("records", AnyOf(())) == []
    assert storage.count("records", MatchAll()) == 3


def test_find_sorts_skips_and_limits(storage: DuckDBStorage) -> None:
    for name in ["delta", "alpha", "charlie", "bravo"]:
        storage.insert_one("records", {"disease": name})
    storage.insert_one("records", {"autoantibody": "no disease"})

    ascending = storage.find("records", MatchAll(), sort=[("disease", "asc")])
    assert [doc.get("disease") for doc in ascending] == [None, "alpha", "bravo", "charlie", "delta"]

    descending = storage.find("records", MatchAll(), sort=[("disease", "desc")], skip=1, limit=2)
    assert [doc["disease"] for doc in descending] == ["charlie", "bravo"]

    unsorted = storage.find("records", MatchAll(), limit=2)
    assert [doc["disease"] for doc in unsorted] == ["delta", "alpha"]


def test_distinct_and_group_counts(storage: DuckDBStorage) -> None:
    for disease in ["SLE", "RA", "SLE", "SLE", "RA", "SSc"]:
        storage.insert_one("records", {"disease": disease})
    storage.insert_one("records", {"autoantibody": "x"})

    assert storage.distinct("records", "disease", MatchAll()) == ["SLE", "RA", "SSc"]
    assert storage.group_counts("records", "disease", MatchAll(), limit=2) == [("SLE", 3), ("RA", 2)]
    assert (None, 1) in storage.group_counts("records", "disease", MatchAll())


def test_insert_many_reports_failures_without_aborting(storage: DuckDBStorage) -> None:
    result = storage.insert_many(
        "records",
        [{"id": "a", "disease": "one"}, {"id": "a", "disease": "dup"}, {"id": "b", "disease": "two"}],
    )

    assert result.inserted_count == 2
    assert result.failed_count == 1
    assert result.errors[0].startswith("Row 2:")
    assert storage.count("records", MatchAll()) == 2


def test_unique_article_fields_raise_conflict(storage: DuckDBStorage) -> None:
    first = storage.insert_one("articles", {"title": "A", "slug": "a", "doi": "10.1000/x"})
    storage.insert_one("articles", {"title": "B", "slug": "b"})

    with pytest.raises(ConflictError):
        storage.insert_one("articles", {"title": "A again", "slug": "a"})
    with pytest.raises(ConflictError):
        storage.insert_one("articles", {"title": "C", "slug": "c", "doi": "10.1000/x"})

    # Updating a document to its own slug is not a collision.
    assert storage.update("articles", first["id"], {"slug": "a"})["slug"] == "a"


def test_update_applies_dotted_keys_and_protects_identity(storage: DuckDBStorage) -> None:
    stored = storage.insert_one(
        "records", {"disease": "SLE", "metadata": {"source": "manual_entry", "verified": False}}
    )

    updated = storage.update(
        "records",
        stored["id"],
        {"metadata.verified": True, "id": "hijack", "createdAt": "1970", "type": "IgG"},
    )

    assert updated["id"] == stored["id"]
    assert updated["createdAt"] == stored["createdAt"]
    assert updated["metadata"] == {"source": "manual_entry", "verified": True}
    assert updated["type"] == "IgG"
    assert storage.get("records", stored["id"]) == updated
    assert storage.update("records", "missing", {"type": "x"}) is None


def test_delete_and_delete_many(storage: DuckDBStorage) -> None:
    keep = storage.insert_one("biomarkers", {"name": "keep"})
    drop = storage.insert_one("biomarkers", {"name": "drop"})
    storage.insert_one("biomarkers", {"name": "drop too"})

    assert storage.delete("biomarkers", drop["id"]) is True
    assert storage.delete("biomarkers", drop["id"]) is False
    assert storage.delete_many("biomarkers", Contains("name", "drop")) == 1
    assert [doc["id"] for doc in storage.find("biomarkers", MatchAll())] == [keep["id"]]


def test_reopening_keeps_documents(tmp_path: Path) -> None:
    db_path = str(tmp_path / "persist.duckdb")
    first = DuckDBStorage(db_path)
    stored = first.insert_one("submissions", {"status": "pending"})
    first.close()

    second = DuckDBStorage(db_path, initialize=False)
    try:
        assert second.get("submissions", stored["id"])["status"] == "pending"
    finally:
        second.close()


def test_unique_keys_follow_updates_and_deletes(storage: DuckDBStorage) -> None:
    first = storage.insert_one("articles", {"title": "A", "slug": "a", "doi": "10.1000/x"})

    storage.update("articles", first["id"], {"slug": "renamed", "doi": None})
    second = storage.insert_one("articles", {"title": "A2", "slug": "a", "doi": "10.1000/x"})
    with pytest.raises(ConflictError):
        storage.update("articles", second["id"], {"slug": "renamed"})
    assert storage.get("articles", second["id"])["slug"] == "a"

    storage.delete("articles", first["id"])
    assert storage.insert_one("articles", {"title": "B", "slug": "renamed"})["slug"] == "renamed"
    assert storage.delete_many("articles", MatchAll()) == 2
    storage.insert_one("articles", {"title": "C", "slug": "a", "doi": "10.1000/x"})


def test_increment_adds_to_counters(storage: DuckDBStorage) -> None:
    stored = storage.insert_one("articles", {"title": "A", "views": 2})

    assert storage.increment("articles", stored["id"], "views")["views"] == 3
    assert storage.increment("articles", stored["id"], "likes", by=5)["likes"] == 5
    assert storage.increment("articles", "missing", "views") is None


def _run_threads(count: int, target) -> list[Exception]:
    failures: list[Exception] = []

    def run(index: int) -> None:
        try:
            target(index)
        except Exception as exc:
            failures.append(exc)

    threads = [threading.Thread(target=run, args=(index,)) for index in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return failures


def test_concurrent_increments_are_not_lost(tmp_path: Path) -> None:
    db_path = str(tmp_path / "shared.duckdb")
    setup = DuckDBStorage(db_path)
    article = setup.insert_one("articles", {"title": "Popular", "views": 0})

    def bump(_: int) -> None:
        store = DuckDBStorage(db_path, initialize=False)
        try:
            for _ in range(20):
                store.increment("articles", article["id"], "views")
        finally:
            store.close()

    try:
        assert _run_threads(6, bump) == []
        assert setup.get("articles", article["id"])["views"] == 120
    finally:
        setup.close()


def test_concurrent_updates_to_one_document_all_land(tmp_path: Path) -> None:
    db_path = str(tmp_path / "shared.duckdb")
    setup = DuckDBStorage(db_path)
    record = setup.insert_one("records", {"disease": "SLE"})

    def tag(index: int) -> None:
        store = DuckDBStorage(db_path, initialize=False)
        try:
            store.update("records", record["id"], {f"tags.t{index}": True})
        finally:
            store.close()

    try:
        assert _run_threads(6, tag) == []
        assert setup.get("records", record["id"])["tags"] == {f"t{i}": True for i in range(6)}
    finally:
        setup.close()


def test_concurrent_inserts_keep_slugs_unique(tmp_path: Path) -> None:
    db_path = str(tmp_path / "shared.duckdb")
    setup = DuckDBStorage(db_path)
    winners: list[str] = []

    def create(index: int) -> None:
        store = DuckDBStorage(db_path, initialize=False)
        try:
            winners.append(store.insert_one("articles", {"title": f"T{index}", "slug": "same"})["id"])
        except ConflictError:
            pass
        finally:
            store.close()

    try:
        assert _run_threads(8, create) == []
        assert len(winners) == 1
        assert setup.count("articles", Equals("slug", "same")) == 1
    finally:
        setup.close()
