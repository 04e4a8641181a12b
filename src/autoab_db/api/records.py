"""Disease record endpoints: listing, search, CRUD, import and export."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Request, Response, status

from ..models import BulkImportRequest, ExportFormat, RecordCreate, RecordUpdate, RowImportRequest
from ..search.fields import SEARCHABLE_FIELDS
from ..search.query import RecordQuery
from ..services.records import records_to_csv
from .dependencies import CatalogDep, EngineDep

router = APIRouter(prefix="/disease", tags=["disease"])


def _field_filters(request: Request) -> dict[str, str]:
    """Pick recognized field filters out of the query string."""
    return {
        name: value
        for name, value in request.query_params.items()
        if name in SEARCHABLE_FIELDS
    }


@router.get("")
def list_records(
    request: Request,
    engine: EngineDep,
    search: str | None = None,
    field: str | None = None,
    sortBy: str | None = None,
    sortOrder: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> dict[str, Any]:
    filters = _field_filters(request)
    result = engine.query(
        RecordQuery(
            search=search,
            field=field,
            filters=filters,
            sort_by=sortBy,
            sort_order=sortOrder,
            page=page,
            limit=limit,
        )
    )
    applied: dict[str, Any] = {"search": search or None, "field": field or None}
    applied.update({name: filters.get(name) or None for name in SEARCHABLE_FIELDS})
    applied.update(sortBy=result.sort_by, sortOrder=result.sort_order)
    return {
        "success": True,
        "data": result.records,
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total_count,
            "pages": result.total_pages,
        },
        "appliedFilters": applied,
    }


@router.get("/search")
def quick_search(
    engine: EngineDep,
    q: str | None = None,
    field: str = "all",
    limit: str | None = None,
) -> dict[str, Any]:
    records = engine.quick_search(q, field=field, limit=limit)
    return {
        "success": True,
        "data": records,
        "count": len(records),
        "searchTerm": (q or "").strip(),
    }


@router.get("/advanced-search")
def advanced_search(
    engine: EngineDep,
    q: str | None = None,
    limit: str | None = None,
    includeStats: bool = False,
) -> dict[str, Any]:
    result = engine.advanced_search(q, limit=limit, include_stats=includeStats)
    stats = None
    if result.stats is not None:
        stats = {
            "totalMatches": result.stats.total_matches,
            "uniqueDiseasesCount": result.stats.unique_diseases,
            "uniqueAntibodiesCount": result.stats.unique_antibodies,
            "uniqueAntigensCount": result.stats.unique_antigens,
        }
    return {
        "success": True,
        "data": [
            {**item.record, "relevanceScore": item.score, "matchedFields": list(item.matched_fields)}
            for item in result.records
        ],
        "count": result.count,
        "searchTerm": (q or "").strip(),
        "stats": stats,
    }


@router.get("/statistics")
def statistics(catalog: CatalogDep) -> dict[str, Any]:
    return {"success": True, "data": catalog.statistics()}


@router.get("/summary")
def diseases_summary(catalog: CatalogDep) -> dict[str, Any]:
    summary = catalog.diseases_summary()
    return {"success": True, "data": summary, "count": len(summary)}


@router.get("/additional-keys")
def additional_keys(catalog: CatalogDep) -> dict[str, Any]:
    keys = catalog.additional_keys()
    return {"success": True, "data": keys, "count": len(keys)}


@router.get("/unique/{field_name}")
def unique_values(field_name: str, engine: EngineDep) -> dict[str, Any]:
    values = engine.unique_values(field_name)
    return {"success": True, "data": values, "count": len(values)}


@router.get("/filtered-unique/{field_name}")
def filtered_unique_values(
    field_name: str,
    engine: EngineDep,
    disease: str | None = None,
    autoantibody: str | None = None,
    autoantigen: str | None = None,
    epitope: str | None = None,
) -> dict[str, Any]:
    values = engine.filtered_unique_values(
        field_name,
        {
            "disease": disease,
            "autoantibody": autoantibody,
            "autoantigen": autoantigen,
            "epitope": epitope,
        },
    )
    return {"success": True, "data": values, "count": len(values)}


@router.get("/export", response_model=None)
def export_records(
    request: Request,
    engine: EngineDep,
    format: ExportFormat = "json",
    limit: str | None = None,
) -> dict[str, Any] | Response:
    filters = _field_filters(request)
    records = engine.export_entries(filters, limit=limit)
    if format == "csv":
        return Response(
            content=records_to_csv(records),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=disease_database.csv"},
        )
    return {
        "success": True,
        "data": records,
        "count": len(records),
        "exportFormat": format,
        "appliedFilters": filters,
    }


@router.get("/by-disease/{disease}")
def entries_by_disease(disease: str, engine: EngineDep) -> dict[str, Any]:
    records = engine.entries_by_disease(disease)
    return {"success": True, "data": records, "count": len(records), "disease": disease}


@router.get("/by-uniprot/{uniprot_id}")
def entries_by_uniprot(uniprot_id: str, engine: EngineDep) -> dict[str, Any]:
    records = engine.entries_by_uniprot(uniprot_id)
    return {"success": True, "data": records, "count": len(records), "uniprotId": uniprot_id}


@router.get("/find/disease-autoantibody")
def find_by_disease_and_autoantibody(
    engine: EngineDep, disease: str | None = None, autoantibody: str | None = None
) -> dict[str, Any]:
    records = engine.find_by_disease_and_autoantibody(disease, autoantibody)
    return {"success": True, "data": records, "count": len(records)}


@router.get("/find/autoantibody-synonym")
def find_by_autoantibody_or_synonym(
    engine: EngineDep, searchTerm: str | None = None
) -> dict[str, Any]:
    records = engine.find_by_autoantibody_or_synonym(searchTerm)
    return {"success": True, "data": records, "count": len(records)}


@router.get("/find/diagnostic-method")
def find_by_diagnostic_method(engine: EngineDep, method: str | None = None) -> dict[str, Any]:
    records = engine.find_by_diagnostic_method(method)
    return {"success": True, "data": records, "count": len(records)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_record(body: RecordCreate, catalog: CatalogDep) -> dict[str, Any]:
    created = catalog.create(body.to_document())
    return {"success": True, "message": "Entry created successfully", "data": created}


@router.post("/bulk-import")
def bulk_import(body: BulkImportRequest, catalog: CatalogDep) -> dict[str, Any]:
    summary = catalog.bulk_import(body.entries)
    return {
        "success": True,
        "message": f"Successfully imported {summary.inserted} entries",
        "data": asdict(summary),
    }


@router.post("/import")
def import_rows(body: RowImportRequest, catalog: CatalogDep) -> dict[str, Any]:
    summary = catalog.import_rows(body.rows)
    return {
        "success": True,
        "message": f"Imported {summary.inserted} entries",
        "data": asdict(summary),
    }


@router.get("/{record_id}")
def get_record(record_id: str, catalog: CatalogDep) -> dict[str, Any]:
    record, related = catalog.get(record_id)
    return {"success": True, "data": record, "relatedEntries": related}


@router.put("/{record_id}")
def update_record(record_id: str, body: RecordUpdate, catalog: CatalogDep) -> dict[str, Any]:
    updated = catalog.update(record_id, body.to_changes())
    return {"success": True, "message": "Entry updated successfully", "data": updated}


@router.delete("/{record_id}")
def delete_record(record_id: str, catalog: CatalogDep) -> dict[str, Any]:
    catalog.delete(record_id)
    return {"success": True, "message": "Entry deleted successfully"}
