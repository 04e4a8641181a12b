"""Article endpoints, public and authenticated."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status

from ..models import ArticleCreate, ArticleUpdate
from ..services.articles import ArticlePage
from .dependencies import ActorDep, ArticlesDep

router = APIRouter(prefix="/articles", tags=["articles"])


def _page_payload(result: ArticlePage, message: str) -> dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": {"articles": result.articles, "pagination": result.pagination()},
    }


@router.get("/public")
def published_articles(
    articles: ArticlesDep,
    type: str | None = None,
    category: str | None = None,
    search: str | None = None,
    sortBy: str = "publicationDate",
    sortOrder: str = "desc",
    page: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    result = articles.published(
        type=type,
        category=category,
        search=search,
        sort_by=sortBy,
        sort_order=sortOrder,
        page=page,
        limit=limit,
    )
    return _page_payload(result, "Published articles retrieved successfully")


@router.get("/public/search")
def public_search(
    articles: ArticlesDep,
    q: str | None = None,
    type: str | None = None,
    category: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    found = articles.search(q, type=type, category=category, limit=limit)
    return {
        "success": True,
        "message": "Search completed successfully",
        "data": {"articles": found, "query": q, "count": len(found)},
    }


@router.get("/public/{id_or_slug}")
def public_article(id_or_slug: str, articles: ArticlesDep) -> dict[str, Any]:
    article = articles.get(id_or_slug)
    return {"success": True, "message": "Article retrieved successfully", "data": {"article": article}}


@router.put("/public/{article_id}/views")
def public_increment_views(article_id: str, articles: ArticlesDep) -> dict[str, Any]:
    views = articles.increment_views(article_id)
    return {"success": True, "message": "Views incremented successfully", "data": {"views": views}}


@router.get("/stats")
def article_stats(actor: ActorDep, articles: ArticlesDep) -> dict[str, Any]:
    return {
        "success": True,
        "message": "Article statistics retrieved successfully",
        "data": articles.stats(),
    }


@router.get("/author/{author_name}")
def articles_by_author(
    author_name: str,
    actor: ActorDep,
    articles: ArticlesDep,
    status: str | None = None,
    type: str | None = None,
    sortBy: str = "createdAt",
    sortOrder: str = "desc",
    page: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    result = articles.by_author(
        author_name,
        status=status,
        type=type,
        sort_by=sortBy,
        sort_order=sortOrder,
        page=page,
        limit=limit,
    )
    return _page_payload(result, "Articles retrieved successfully")


@router.get("/search")
def search_articles(
    actor: ActorDep,
    articles: ArticlesDep,
    q: str | None = None,
    type: str | None = None,
    category: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    return public_search(articles, q=q, type=type, category=category, limit=limit)


@router.get("")
def list_articles(
    actor: ActorDep,
    articles: ArticlesDep,
    type: str | None = None,
    status: str | None = None,
    category: str | None = None,
    author: str | None = None,
    isPublished: bool | None = None,
    isFeatured: bool | None = None,
    search: str | None = None,
    sortBy: str = "createdAt",
    sortOrder: str = "desc",
    page: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    result = articles.list(
        type=type,
        status=status,
        category=category,
        author=author,
        is_published=isPublished,
        is_featured=isFeatured,
        search=search,
        sort_by=sortBy,
        sort_order=sortOrder,
        page=page,
        limit=limit,
    )
    return _page_payload(result, "Articles retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_article(body: ArticleCreate, actor: ActorDep, articles: ArticlesDep) -> dict[str, Any]:
    article = articles.create(body.to_document(), actor)
    return {"success": True, "message": "Article created successfully", "data": {"article": article}}


@router.get("/{id_or_slug}")
def get_article(id_or_slug: str, actor: ActorDep, articles: ArticlesDep) -> dict[str, Any]:
    return public_article(id_or_slug, articles)


@router.put("/{article_id}/publish")
def publish_article(article_id: str, actor: ActorDep, articles: ArticlesDep) -> dict[str, Any]:
    article = articles.publish(article_id, actor)
    return {"success": True, "message": "Article published successfully", "data": {"article": article}}


@router.put("/{article_id}/featured")
def toggle_featured(article_id: str, actor: ActorDep, articles: ArticlesDep) -> dict[str, Any]:
    article = articles.toggle_featured(article_id)
    state = "featured" if article.get("isFeatured") else "unfeatured"
    return {"success": True, "message": f"Article {state} successfully", "data": {"article": article}}


@router.put("/{article_id}/views")
def increment_views(article_id: str, actor: ActorDep, articles: ArticlesDep) -> dict[str, Any]:
    return public_increment_views(article_id, articles)


@router.put("/{article_id}")
def update_article(
    article_id: str, body: ArticleUpdate, actor: ActorDep, articles: ArticlesDep
) -> dict[str, Any]:
    article = articles.update(article_id, body.to_changes(), actor)
    return {"success": True, "message": "Article updated successfully", "data": {"article": article}}


@router.delete("/{article_id}")
def delete_article(
    article_id: str, actor: ActorDep, articles: ArticlesDep, permanent: bool = False
) -> dict[str, Any]:
    archived = articles.delete(article_id, permanent=permanent)
    if permanent:
        return {"success": True, "message": "Article permanently deleted successfully"}
    return {"success": True, "message": "Article archived successfully", "data": {"article": archived}}
