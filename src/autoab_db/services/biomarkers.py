"""
Biomarker catalog: search, lookup, spreadsheet import and export.
"""

from __future__ import annotations

import csv
import io
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

from ..errors import ValidationError
from ..search.predicates import AnyOf, Equals, MatchAll, Predicate, any_field_contains
from ..search.query import clamp_int
from ..storage.base import StorageBackend
from .records import normalize_header


logger = structlog.get_logger(__name__)

# Normalized fields plus the raw spreadsheet columns seen in catalog imports.
LIST_SEARCH_FIELDS: tuple[str, ...] = (
    "name",
    "manifestation",
    "prevalence",
    "raw.Disease",
    "raw.Autoantibody",
    "raw.Name",
    "raw.Manifestation",
    "raw.Clinical Manifestation",
    "raw.Disease Association",
    "raw.Disease Association (% percentage)",
    "raw.Prevalence",
    "raw.Prevalence (% percentage)",
    "raw.Prevelanse (% percentage)",
)

PUBLIC_SEARCH_FIELDS: tuple[str, ...] = (
    "name",
    "manifestation",
    "raw.Disease",
    "raw.disease",
    "raw.Autoantibody",
    "raw.Biomarker",
    "raw.Name",
    "raw.Antibody",
    "raw.Antibodies",
)

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": (
        "name",
        "autoantibody",
        "antibody",
        "auto_antibody",
        "antibody_name",
        "auto_ab",
        "biomarker",
        "biomarkers",
        "ab",
        "antibodies",
        "autoantibodies",
        "clinicalantibody",
        "targetantibody",
    ),
    "manifestation": (
        "manifestation",
        "clinicalmanifestation",
        "clinical_manifestation",
        "manifestations",
        "clinicalmanifestations",
        "manifestation_name",
        "symptoms",
        "clinical_features",
    ),
    "prevalence": (
        "prevalence",
        "prevalence_rate",
        "frequency",
        "prevalence_percentage",
        "prevalence(%percentage)",
        "prevelanse(%percentage)",
        "prevelanse",
        "prevalencepercent",
    ),
}

# Original-case raw column names tried when no alias matched.
RAW_FALLBACKS: dict[str, tuple[str, ...]] = {
    "name": (
        "Autoantibody",
        "Autoantibodies",
        "Antibody",
        "Antibodies",
        "Name",
        "Biomarker",
        "Biomarkers",
        "AB",
        "Clinical Antibody",
        "Target Antibody",
    ),
    "manifestation": (
        "Clinical Manifestation",
        "Clinical Manifestations",
        "Manifestation",
        "Manifestations",
        "Disease related clinical manifestation",
    ),
    "prevalence": (
        "Prevalence",
        "Prevalence (% percentage)",
        "Prevelanse (% percentage)",
        "Prevalence (%)",
        "Prevalence rate",
    ),
}

_NAME_KEY_RE = re.compile(r"antibody|biomarker|^name$", re.IGNORECASE)
_MANIFESTATION_KEY_RE = re.compile(r"manifestation|clinical.?feature|symptom", re.IGNORECASE)

EXPORT_HEADERS: tuple[str, ...] = (
    "Autoantibody",
    "Disease",
    "Disease Association (% percentage)",
    "Clinical Manifestation",
    "Prevalence (% percentage)",
)


def _first_present(raw: Mapping[str, Any], keys: Iterable[str]) -> str:
    for key in keys:
        value = str(raw.get(key) or "").strip()
        if value:
            return value
    return ""


def map_biomarker_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Map a spreadsheet row onto a biomarker, keeping every non-blank cell in ``raw``."""
    lowered: dict[str, str] = {}
    raw: dict[str, str] = {}
    for key, value in row.items():
        text = "" if value is None else str(value).strip()
        lowered[normalize_header(key)] = text
        if text:
            raw[str(key)] = text

    mapped: dict[str, Any] = {}
    for field_name in ("name", "manifestation", "prevalence"):
        value = _first_present(lowered, FIELD_ALIASES[field_name])
        if not value:
            value = _first_present(raw, RAW_FALLBACKS[field_name])
        mapped[field_name] = value

    if not mapped["name"]:
        key = next((k for k in raw if _NAME_KEY_RE.search(k)), None)
        if key is not None:
            mapped["name"] = raw[key]
    if not mapped["manifestation"]:
        key = next((k for k in raw if _MANIFESTATION_KEY_RE.search(k)), None)
        if key is not None:
            mapped["manifestation"] = raw[key]

    if raw:
        mapped["raw"] = raw
    return mapped


def export_row(doc: Mapping[str, Any]) -> list[str]:
    raw = doc.get("raw") or {}
    return [
        str(doc.get("name") or _first_present(raw, ("Autoantibody", "Name"))),
        _first_present(raw, ("Disease", "disease")),
        _first_present(
            raw,
            ("Disease Association (% percentage)", "Disease Association", "DiseaseAssociation"),
        ),
        str(doc.get("manifestation") or _first_present(raw, ("Clinical Manifestation", "Manifestation"))),
        str(
            doc.get("prevalence")
            or _first_present(
                raw, ("Prevalence (% percentage)", "Prevelanse (% percentage)", "Prevalence")
            )
        ),
    ]


def biomarkers_to_csv(docs: Iterable[Mapping[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for doc in docs:
        writer.writerow(export_row(doc))
    return buffer.getvalue()


@dataclass(frozen=True)
class BiomarkerPage:
    items: list[dict[str, Any]]
    page: int
    limit: int
    total: int
    total_pages: int


class BiomarkerService:
    def __init__(
        self,
        storage: StorageBackend,
        *,
        max_page_size: int = 500,
        max_search_results: int = 5_000,
    ) -> None:
        self.storage = storage
        self.max_page_size = max_page_size
        self.max_search_results = max_search_results

    def list(self, *, search: str | None = None, page: Any = 1, limit: Any = 50) -> BiomarkerPage:
        predicate = self._search_predicate(search, LIST_SEARCH_FIELDS)
        page_number = clamp_int(page, default=1)
        page_size = clamp_int(limit, default=50, maximum=self.max_page_size)
        items = self.storage.find(
            "biomarkers",
            predicate,
            sort=[("createdAt", "desc")],
            skip=(page_number - 1) * page_size,
            limit=page_size,
        )
        total = self.storage.count("biomarkers", predicate)
        return BiomarkerPage(
            items=items,
            page=page_number,
            limit=page_size,
            total=total,
            total_pages=math.ceil(total / page_size),
        )

    def search(self, search: str | None = None) -> list[dict[str, Any]]:
        predicate = self._search_predicate(search, PUBLIC_SEARCH_FIELDS)
        return self.storage.find("biomarkers", predicate, limit=self.max_search_results)

    def bulk_by_names(self, names: list[str] | None) -> list[dict[str, Any]]:
        if names is None or not isinstance(names, list):
            raise ValidationError("Names must be an array")
        if not names:
            return []
        predicate = AnyOf(tuple(Equals("name", str(name)) for name in names))
        return self.storage.find("biomarkers", predicate)

    def import_rows(self, rows: list[Mapping[str, Any]], *, replace: bool = False) -> dict[str, int]:
        """Import rows that carry at least one non-blank cell.

        With ``replace`` the existing catalog is cleared first.
        """
        if not rows:
            raise ValidationError("Uploaded file contains no rows")
        entries = [entry for entry in map(map_biomarker_row, rows) if entry.get("raw")]
        if not entries:
            raise ValidationError("No rows with data found in file")

        if replace:
            removed = self.storage.delete_many("biomarkers", MatchAll())
            logger.info("biomarkers_cleared", deleted=removed)
        result = self.storage.insert_many("biomarkers", entries)
        logger.info(
            "biomarkers_imported",
            rows=len(rows),
            inserted=result.inserted_count,
            failed=result.failed_count,
        )
        return {
            "inserted": result.inserted_count,
            "total": len(rows),
            "failed": len(rows) - result.inserted_count,
        }

    def export(self, search: str | None = None) -> list[dict[str, Any]]:
        predicate = self._search_predicate(search, LIST_SEARCH_FIELDS)
        return self.storage.find("biomarkers", predicate, sort=[("createdAt", "desc")])

    def delete_all(self) -> int:
        deleted = self.storage.delete_many("biomarkers", MatchAll())
        logger.info("biomarkers_deleted", deleted=deleted)
        return deleted

    @staticmethod
    def _search_predicate(search: str | None, fields: tuple[str, ...]) -> Predicate:
        term = (search or "").strip()
        if not term:
            return MatchAll()
        return any_field_contains(fields, term)
