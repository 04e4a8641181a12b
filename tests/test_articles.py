"""Tests for article publishing."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from autoab_db.errors import ConflictError, NotFoundError, ValidationError
from autoab_db.search.predicates import Equals
from autoab_db.services.articles import ArticleService, slugify
from autoab_db.services.submissions import Actor
from autoab_db.storage import DuckDBStorage

EDITOR = Actor(id="editor-1", role="admin")


def draft(**overrides: Any) -> dict[str, Any]:
    values: dict[str, Any] = {
        "title": "Anti-Ro52 in Myositis",
        "content": "Long form content about TRIM21.",
        "author": "  Dr. Chen ",
        "abstract": "Ro52 overview",
        "keywords": ["ro52"],
        "category": "rheumatology",
    }
    values.update(overrides)
    return values


@pytest.fixture()
def service(storage: DuckDBStorage) -> ArticleService:
    return ArticleService(storage)


def test_slugify() -> None:
    assert slugify("Anti-Ro52 in Myositis!") == "anti-ro52-in-myositis"
    assert slugify("  --Hello,  World--  ") == "hello-world"


def test_create_defaults_and_derived_slug(service: ArticleService) -> None:
    article = service.create(draft(coAuthors=[" Lee ", "", 3]), EDITOR)

    assert article["slug"] == "anti-ro52-in-myositis"
    assert article["author"] == "Dr. Chen"
    assert article["coAuthors"] == ["Lee"]
    assert article["status"] == "draft"
    assert article["isPublished"] is False
    assert (article["views"], article["likes"]) == (0, 0)


def test_create_validation_collects_every_problem(service: ArticleService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.create(
            {"title": " ", "type": "blog", "status": "live", "doi": "doi:123"}, EDITOR
        )

    assert excinfo.value.errors == [
        "Title is required",
        "Content is required",
        "Author name is required",
        "blog is not a valid article type",
        "live is not a valid status",
        "Please enter a valid DOI",
    ]


def test_duplicate_slug_or_doi_conflicts(service: ArticleService) -> None:
    service.create(draft(doi="10.1234/abc.5"), EDITOR)

    with pytest.raises(ConflictError):
        service.create(draft(), EDITOR)
    with pytest.raises(ConflictError):
        service.create(draft(slug="other", doi="10.1234/abc.5"), EDITOR)


def test_publishing_on_create_and_update(service: ArticleService) -> None:
    live = service.create(draft(status="published"), EDITOR)
    assert live["isPublished"] is True
    assert live["publishedBy"] == "editor-1"

    pending = service.create(draft(title="Second"), EDITOR)
    updated = service.update(pending["id"], {"status": "published", "views": 99}, EDITOR)
    assert updated["isPublished"] is True
    assert updated["views"] == 0

    back = service.update(pending["id"], {"status": "under-review"}, EDITOR)
    assert back["isPublished"] is False


def test_get_by_slug_counts_views_only_when_published(service: ArticleService) -> None:
    hidden = service.create(draft(), EDITOR)
    assert service.get(hidden["slug"])["views"] == 0

    service.publish(hidden["id"], EDITOR)
    assert service.get("ANTI-RO52-IN-MYOSITIS")["views"] == 1
    assert service.increment_views(hidden["id"]) == 2

    with pytest.raises(NotFoundError):
        service.get("nope")


def test_listing_filters_and_pagination(service: ArticleService) -> None:
    for index in range(3):
        service.create(draft(title=f"Note {index}", type="review"), EDITOR)
    service.create(draft(title="Case", type="case-study", status="published"), EDITOR)

    reviews = service.list(type="review", sort_by="title", sort_order="asc", limit=2)
    assert [a["title"] for a in reviews.articles] == ["Note 0", "Note 1"]
    assert reviews.pagination() == {
        "currentPage": 1,
        "totalPages": 2,
        "totalArticles": 3,
        "hasNextPage": True,
        "hasPrevPage": False,
    }

    assert service.list(is_published=True).total_articles == 1
    assert service.by_author("chen").total_articles == 4
    with pytest.raises(ValidationError):
        service.by_author(" ")


def test_public_views_hide_drafts_and_content(service: ArticleService) -> None:
    service.create(draft(), EDITOR)
    service.create(draft(title="Published Ro52", status="published", keywords=["ro52", "trim21"]), EDITOR)

    public = service.published()
    assert [a["title"] for a in public.articles] == ["Published Ro52"]
    assert "content" not in public.articles[0]

    found = service.search("ro52")
    assert [a["title"] for a in found] == ["Published Ro52"]
    with pytest.raises(ValidationError):
        service.search("")


def test_archive_toggle_delete_and_stats(service: ArticleService) -> None:
    article = service.create(draft(status="published"), EDITOR)

    assert service.toggle_featured(article["id"])["isFeatured"] is True
    archived = service.delete(article["id"])
    assert archived["status"] == "archived"
    assert archived["isPublished"] is False

    stats = service.stats()
    assert stats["overview"]["totalArticles"] == 1
    assert stats["overview"]["featuredArticles"] == 1
    assert stats["typeStats"][0]["type"] == "article"

    assert service.delete(article["id"], permanent=True) is None
    with pytest.raises(NotFoundError):
        service.delete(article["id"])


def test_parallel_readers_and_creators(tmp_path: Path) -> None:
    db_path = str(tmp_path / "shared.duckdb")
    setup = DuckDBStorage(db_path)
    article = ArticleService(setup).create(draft(status="published"), EDITOR)
    outcomes: list[str] = []

    def read_and_create(index: int) -> None:
        store = DuckDBStorage(db_path, initialize=False)
        service = ArticleService(store)
        try:
            for _ in range(10):
                service.increment_views(article["id"])
            try:
                service.create(draft(title="Same Title"), EDITOR)
                outcomes.append("created")
            except ConflictError:
                outcomes.append("conflict")
        finally:
            store.close()

    threads = [threading.Thread(target=read_and_create, args=(i,)) for i in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        assert sorted(outcomes) == ["conflict"] * 5 + ["created"]
        assert ArticleService(setup).increment_views(article["id"]) == 61
        assert setup.count("articles", Equals("slug", "same-title")) == 1
    finally:
        setup.close()
