"""FastAPI dependencies for API endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated

from fastapi import Depends, Header, Request

from ..config import Settings, resolve_db_path
from ..errors import AuthenticationRequiredError
from ..search.query import RecordQueryEngine
from ..services import (
    Actor,
    ArticleService,
    BiomarkerService,
    RecordCatalog,
    SubmissionService,
)
from ..storage import DuckDBStorage, StorageBackend


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Iterator[StorageBackend]:
    """Open the document store for the duration of one request."""
    storage = DuckDBStorage(resolve_db_path(settings.db_path), initialize=False)
    try:
        yield storage
    finally:
        storage.close()


StorageDep = Annotated[StorageBackend, Depends(get_storage)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]


def get_query_engine(storage: StorageDep, settings: SettingsDep) -> RecordQueryEngine:
    return RecordQueryEngine(
        storage,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
        max_quick_search=settings.max_quick_search,
        max_advanced_results=settings.max_advanced_results,
    )


EngineDep = Annotated[RecordQueryEngine, Depends(get_query_engine)]


def get_record_catalog(
    storage: StorageDep, engine: EngineDep, settings: SettingsDep
) -> RecordCatalog:
    return RecordCatalog(storage, engine, max_bulk_entries=settings.max_bulk_entries)


def get_submission_service(storage: StorageDep) -> SubmissionService:
    return SubmissionService(storage)


def get_biomarker_service(storage: StorageDep, settings: SettingsDep) -> BiomarkerService:
    return BiomarkerService(
        storage,
        max_page_size=settings.max_biomarker_page_size,
        max_search_results=settings.max_biomarker_search,
    )


def get_article_service(storage: StorageDep) -> ArticleService:
    return ArticleService(storage)


def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Caller identity forwarded by the authenticating gateway.

    Raises:
        AuthenticationRequiredError: when the gateway did not forward a user id.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationRequiredError("Authentication required")
    return Actor(id=x_user_id.strip(), role=(x_user_role or "user").strip())


CatalogDep = Annotated[RecordCatalog, Depends(get_record_catalog)]
SubmissionsDep = Annotated[SubmissionService, Depends(get_submission_service)]
BiomarkersDep = Annotated[BiomarkerService, Depends(get_biomarker_service)]
ArticlesDep = Annotated[ArticleService, Depends(get_article_service)]
ActorDep = Annotated[Actor, Depends(get_actor)]
