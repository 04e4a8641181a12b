"""Health check endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..search.predicates import MatchAll
from .dependencies import StorageDep

router = APIRouter(tags=["health"])


@router.get("/health")
def health(storage: StorageDep) -> dict[str, Any]:
    """Liveness plus a record count to prove the store answers."""
    return {"status": "ok", "records": storage.count("records", MatchAll())}
