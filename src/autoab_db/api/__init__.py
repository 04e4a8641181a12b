"""HTTP routers mounted under ``/api``."""

from fastapi import APIRouter

from . import articles, biomarkers, health, records, submissions

api_router = APIRouter(prefix="/api")
api_router.include_router(health.router)
api_router.include_router(records.router)
api_router.include_router(submissions.router)
api_router.include_router(biomarkers.router)
api_router.include_router(articles.router)

__all__ = ["api_router"]
