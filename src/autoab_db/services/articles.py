"""
Article publishing: drafts, publication, featuring and view counts.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from ..errors import NotFoundError, ValidationError
from ..search.predicates import (
    Contains,
    Equals,
    MatchAll,
    Predicate,
    any_field_contains,
    combine_all,
)
from ..search.query import clamp_int
from ..search.ranker import parse_direction
from ..storage.base import StorageBackend
from ..storage.duckdb import utc_now_iso
from .submissions import Actor


logger = structlog.get_logger(__name__)

ARTICLE_TYPES: frozenset[str] = frozenset({"article", "journal", "research", "review", "case-study"})
ARTICLE_STATUSES: frozenset[str] = frozenset({"draft", "published", "archived", "under-review"})

SORTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "author",
        "type",
        "status",
        "category",
        "createdAt",
        "updatedAt",
        "publicationDate",
        "publishedAt",
    }
)

SEARCH_FIELDS: tuple[str, ...] = ("title", "abstract", "content", "keywords", "tags")
PUBLIC_SEARCH_FIELDS: tuple[str, ...] = ("title", "abstract", "keywords", "tags")

_DOI_RE = re.compile(r"^10\.\d{4,}/[-._;()/:a-zA-Z0-9]+$")
_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")

# Counters only change through increment_views.
_PROTECTED_FIELDS: frozenset[str] = frozenset({"id", "views", "likes", "createdAt"})


def slugify(title: str) -> str:
    return _SLUG_SEPARATOR_RE.sub("-", title.lower()).strip("-")


def _clean_names(names: Any) -> list[str]:
    if not isinstance(names, list):
        return []
    return [name.strip() for name in names if isinstance(name, str) and name.strip()]


@dataclass(frozen=True)
class ArticlePage:
    articles: list[dict[str, Any]]
    current_page: int
    total_pages: int
    total_articles: int

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1

    def pagination(self) -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalArticles": self.total_articles,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


class ArticleService:
    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    def list(
        self,
        *,
        type: str | None = None,
        status: str | None = None,
        category: str | None = None,
        author: str | None = None,
        is_published: bool | None = None,
        is_featured: bool | None = None,
        search: str | None = None,
        sort_by: str | None = "createdAt",
        sort_order: str | None = "desc",
        page: Any = 1,
        limit: Any = 10,
    ) -> ArticlePage:
        conditions: list[Predicate] = []
        for name, value in (("type", type), ("status", status), ("category", category)):
            if value:
                conditions.append(Equals(name, value))
        if author:
            conditions.append(Contains("author", author))
        if is_published is not None:
            conditions.append(Equals("isPublished", "true" if is_published else "false"))
        if is_featured is not None:
            conditions.append(Equals("isFeatured", "true" if is_featured else "false"))
        if search and search.strip():
            conditions.append(any_field_contains(SEARCH_FIELDS, search.strip()))
        return self._page(combine_all(conditions), sort_by, sort_order, page, limit)

    def by_author(
        self,
        author_name: str | None,
        *,
        status: str | None = None,
        type: str | None = None,
        sort_by: str | None = "createdAt",
        sort_order: str | None = "desc",
        page: Any = 1,
        limit: Any = 10,
    ) -> ArticlePage:
        if author_name is None or not author_name.strip():
            raise ValidationError("Author name is required")
        conditions: list[Predicate] = [Contains("author", author_name.strip())]
        if status:
            conditions.append(Equals("status", status))
        if type:
            conditions.append(Equals("type", type))
        return self._page(combine_all(conditions), sort_by, sort_order, page, limit)

    def published(
        self,
        *,
        type: str | None = None,
        category: str | None = None,
        search: str | None = None,
        sort_by: str | None = "publicationDate",
        sort_order: str | None = "desc",
        page: Any = 1,
        limit: Any = 10,
    ) -> ArticlePage:
        """Published articles for the public listing, without their full content."""
        conditions: list[Predicate] = [Equals("status", "published"), Equals("isPublished", "true")]
        if type:
            conditions.append(Equals("type", type))
        if category:
            conditions.append(Equals("category", category))
        if search and search.strip():
            conditions.append(any_field_contains(PUBLIC_SEARCH_FIELDS, search.strip()))
        result = self._page(combine_all(conditions), sort_by, sort_order, page, limit)
        summaries = [
            {key: value for key, value in article.items() if key != "content"}
            for article in result.articles
        ]
        return ArticlePage(
            articles=summaries,
            current_page=result.current_page,
            total_pages=result.total_pages,
            total_articles=result.total_articles,
        )

    def search(
        self,
        query: str | None,
        *,
        type: str | None = None,
        category: str | None = None,
        limit: Any = 20,
    ) -> list[dict[str, Any]]:
        """Search published articles, best field coverage first."""
        term = (query or "").strip()
        if not term:
            raise ValidationError("Search query is required")
        conditions: list[Predicate] = [
            Equals("status", "published"),
            Equals("isPublished", "true"),
            any_field_contains(SEARCH_FIELDS, term),
        ]
        if type:
            conditions.append(Equals("type", type))
        if category:
            conditions.append(Equals("category", category))

        matches = self.storage.find("articles", combine_all(conditions))
        scored = sorted(
            matches,
            key=lambda article: -sum(
                1 for name in SEARCH_FIELDS if Contains(name, term).matches(article)
            ),
        )
        return scored[: clamp_int(limit, default=20)]

    def get(self, id_or_slug: str) -> dict[str, Any]:
        """Fetch by id, falling back to slug. Published articles count a view."""
        article = self.storage.get("articles", id_or_slug)
        if article is None:
            found = self.storage.find(
                "articles", Equals("slug", id_or_slug.strip().lower()), limit=1
            )
            article = found[0] if found else None
        if article is None:
            raise NotFoundError("Article not found")
        if article.get("isPublished"):
            article = self._bump_views(article)
        return article

    def create(self, values: Mapping[str, Any], actor: Actor) -> dict[str, Any]:
        title = str(values.get("title") or "").strip()
        content = values.get("content")
        author = str(values.get("author") or "").strip()
        errors: list[str] = []
        if not title:
            errors.append("Title is required")
        if not content:
            errors.append("Content is required")
        if not author:
            errors.append("Author name is required")
        errors.extend(self._field_errors(values))
        if errors:
            raise ValidationError("Validation error", errors)

        document = dict(values)
        document.update(
            title=title,
            author=author,
            type=values.get("type") or "article",
            status=values.get("status") or "draft",
            coAuthors=_clean_names(values.get("coAuthors")),
            keywords=list(values.get("keywords") or []),
            tags=list(values.get("tags") or []),
            isFeatured=bool(values.get("isFeatured", False)),
            isPublished=False,
            views=0,
            likes=0,
        )
        slug = str(values.get("slug") or "").strip().lower()
        document["slug"] = slug or slugify(title)
        if document["status"] == "published":
            document.update(
                isPublished=True, publishedAt=utc_now_iso(), publishedBy=actor.id
            )

        created = self.storage.insert_one("articles", document)
        logger.info("article_created", article_id=created["id"], slug=created["slug"])
        return created

    def update(self, article_id: str, changes: Mapping[str, Any], actor: Actor) -> dict[str, Any]:
        article = self._load(article_id)
        errors = self._field_errors(changes)
        if errors:
            raise ValidationError("Validation error", errors)

        updates = {key: value for key, value in changes.items() if key not in _PROTECTED_FIELDS}
        if "coAuthors" in updates:
            updates["coAuthors"] = _clean_names(updates["coAuthors"])
        if isinstance(updates.get("author"), str):
            updates["author"] = updates["author"].strip()
        if isinstance(updates.get("slug"), str):
            updates["slug"] = updates["slug"].strip().lower()

        status = updates.get("status")
        if status == "published" and article.get("status") != "published":
            updates.update(isPublished=True, publishedAt=utc_now_iso(), publishedBy=actor.id)
        elif status is not None and status != "published":
            updates["isPublished"] = False

        updated = self.storage.update("articles", article_id, updates)
        if updated is None:
            raise NotFoundError("Article not found")
        return updated

    def delete(self, article_id: str, *, permanent: bool = False) -> dict[str, Any] | None:
        """Archive an article, or remove it outright when *permanent*."""
        self._load(article_id)
        if permanent:
            self.storage.delete("articles", article_id)
            logger.info("article_deleted", article_id=article_id)
            return None
        archived = self.storage.update(
            "articles", article_id, {"status": "archived", "isPublished": False}
        )
        logger.info("article_archived", article_id=article_id)
        return archived

    def toggle_featured(self, article_id: str) -> dict[str, Any]:
        article = self._load(article_id)
        updated = self.storage.update(
            "articles", article_id, {"isFeatured": not article.get("isFeatured", False)}
        )
        if updated is None:
            raise NotFoundError("Article not found")
        return updated

    def publish(self, article_id: str, actor: Actor) -> dict[str, Any]:
        self._load(article_id)
        updated = self.storage.update(
            "articles",
            article_id,
            {
                "status": "published",
                "isPublished": True,
                "publishedAt": utc_now_iso(),
                "publishedBy": actor.id,
            },
        )
        if updated is None:
            raise NotFoundError("Article not found")
        logger.info("article_published", article_id=article_id, published_by=actor.id)
        return updated

    def increment_views(self, article_id: str) -> int:
        return int(self._bump_views(self._load(article_id)).get("views", 0))

    def stats(self) -> dict[str, Any]:
        articles = self.storage.find("articles", MatchAll())
        by_type: dict[str, dict[str, Any]] = {}
        for article in articles:
            entry = by_type.setdefault(
                article.get("type") or "article",
                {
                    "type": article.get("type") or "article",
                    "count": 0,
                    "published": 0,
                    "draft": 0,
                    "featured": 0,
                    "totalViews": 0,
                    "totalLikes": 0,
                },
            )
            entry["count"] += 1
            entry["published"] += 1 if article.get("isPublished") else 0
            entry["draft"] += 1 if article.get("status") == "draft" else 0
            entry["featured"] += 1 if article.get("isFeatured") else 0
            entry["totalViews"] += int(article.get("views") or 0)
            entry["totalLikes"] += int(article.get("likes") or 0)

        return {
            "overview": {
                "totalArticles": len(articles),
                "publishedArticles": sum(1 for a in articles if a.get("isPublished")),
                "draftArticles": sum(1 for a in articles if a.get("status") == "draft"),
                "featuredArticles": sum(1 for a in articles if a.get("isFeatured")),
                "totalViews": sum(int(a.get("views") or 0) for a in articles),
                "totalLikes": sum(int(a.get("likes") or 0) for a in articles),
            },
            "typeStats": list(by_type.values()),
        }

    def _page(
        self,
        predicate: Predicate,
        sort_by: str | None,
        sort_order: str | None,
        page: Any,
        limit: Any,
    ) -> ArticlePage:
        field_name = sort_by if sort_by in SORTABLE_FIELDS else "createdAt"
        page_number = clamp_int(page, default=1)
        page_size = clamp_int(limit, default=10)
        articles = self.storage.find(
            "articles",
            predicate,
            sort=[(field_name, parse_direction(sort_order))],
            skip=(page_number - 1) * page_size,
            limit=page_size,
        )
        total = self.storage.count("articles", predicate)
        return ArticlePage(
            articles=articles,
            current_page=page_number,
            total_pages=math.ceil(total / page_size),
            total_articles=total,
        )

    def _load(self, article_id: str) -> dict[str, Any]:
        article = self.storage.get("articles", article_id)
        if article is None:
            raise NotFoundError("Article not found")
        return article

    def _bump_views(self, article: dict[str, Any]) -> dict[str, Any]:
        updated = self.storage.increment("articles", article["id"], "views")
        if updated is None:
            raise NotFoundError("Article not found")
        return updated

    @staticmethod
    def _field_errors(values: Mapping[str, Any]) -> list[str]:
        errors: list[str] = []
        article_type = values.get("type")
        if article_type is not None and article_type not in ARTICLE_TYPES:
            errors.append(f"{article_type} is not a valid article type")
        status = values.get("status")
        if status is not None and status not in ARTICLE_STATUSES:
            errors.append(f"{status} is not a valid status")
        doi = values.get("doi")
        if doi and not _DOI_RE.match(str(doi).strip()):
            errors.append("Please enter a valid DOI")
        return errors
