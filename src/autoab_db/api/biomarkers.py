"""Biomarker catalog endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response

from ..models import BulkNamesRequest, ExportFormat, RowImportRequest
from ..services.biomarkers import EXPORT_HEADERS, biomarkers_to_csv, export_row
from .dependencies import ActorDep, BiomarkersDep

router = APIRouter(prefix="/biomarkers", tags=["biomarkers"])


@router.get("")
def search_biomarkers(biomarkers: BiomarkersDep, search: str | None = None) -> list[dict[str, Any]]:
    return biomarkers.search(search)


@router.post("/bulk")
def bulk_biomarkers(body: BulkNamesRequest, biomarkers: BiomarkersDep) -> list[dict[str, Any]]:
    return biomarkers.bulk_by_names(body.names)


@router.get("/list")
def list_biomarkers(
    actor: ActorDep,
    biomarkers: BiomarkersDep,
    search: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    result = biomarkers.list(search=search, page=page, limit=limit)
    return {
        "success": True,
        "data": result.items,
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "totalPages": result.total_pages,
        },
    }


@router.get("/export", response_model=None)
def export_biomarkers(
    actor: ActorDep,
    biomarkers: BiomarkersDep,
    format: ExportFormat = "json",
    search: str | None = None,
) -> dict[str, Any] | Response:
    docs = biomarkers.export(search)
    if format == "csv":
        return Response(
            content=biomarkers_to_csv(docs),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="biomarkers_export.csv"'},
        )
    rows = [dict(zip(EXPORT_HEADERS, export_row(doc))) for doc in docs]
    return {"success": True, "data": rows, "count": len(rows)}


@router.post("/import")
def import_biomarkers(
    body: RowImportRequest,
    actor: ActorDep,
    biomarkers: BiomarkersDep,
    replace: bool = False,
) -> dict[str, Any]:
    summary = biomarkers.import_rows(body.rows, replace=replace)
    return {
        "success": True,
        "message": f"Successfully imported {summary['inserted']} biomarker entries",
        "data": summary,
    }


@router.delete("/all")
def delete_all_biomarkers(actor: ActorDep, biomarkers: BiomarkersDep) -> dict[str, Any]:
    deleted = biomarkers.delete_all()
    return {
        "success": True,
        "message": f"Successfully removed {deleted} biomarker entries",
        "data": {"deleted": deleted},
    }
