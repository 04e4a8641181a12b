"""
Record catalog: CRUD, imports, exports and statistics over disease records.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

from ..errors import NotFoundError, PartialBatchFailure, ValidationError
from ..search.fields import REQUIRED_FIELDS, missing_required_fields
from ..search.predicates import Equals, MatchAll
from ..search.query import RecordQueryEngine
from ..storage.base import StorageBackend
from ..storage.duckdb import utc_now_iso


logger = structlog.get_logger(__name__)

_REQUIRED_LABELS: dict[str, str] = {
    "disease": "Disease",
    "autoantibody": "Autoantibody",
    "autoantigen": "Autoantigen",
    "epitope": "Epitope",
    "uniprotId": "UniProt ID",
}

# Accepted spreadsheet headers per field, after normalize_header().
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "disease": ("disease", "diseasename", "disease_name", "condition", "disorder", "syndrome"),
    "databaseAccessionNumbers": (
        "databaseaccessionnumbers",
        "database_accession_numbers",
        "accession_numbers",
        "db_accession",
        "accession_nums",
        "db_accession_numbers",
    ),
    "autoantibody": ("autoantibody", "antibody", "auto_antibody", "antibody_name", "auto_ab", "ab"),
    "synonym": ("synonym", "synonyms", "alternative_name", "alt_name", "other_name", "alias"),
    "diseaseAssociation": (
        "diseaseassociation",
        "disease_association",
        "association",
        "disease_assoc",
        "disease_relation",
        "disease_relationship",
    ),
    "autoantigen": (
        "autoantigen",
        "antigen",
        "auto_antigen",
        "antigen_name",
        "target_antigen",
        "target",
        "auto_ag",
    ),
    "epitope": (
        "epitope",
        "epitope_sequence",
        "peptide",
        "epitope_seq",
        "binding_site",
        "epitope_region",
    ),
    "epitopePrevalence": (
        "epitopeprevalence",
        "epitope_prevalence",
        "prevalence",
        "epitope_frequency",
        "frequency",
        "epitope_rate",
    ),
    "uniprotId": (
        "uniprotid",
        "uniprot",
        "uniprot_id",
        "uniprot_accession",
        "accession",
        "protein_id",
        "uniprot_entry",
        "protein_accession",
    ),
    "screening": (
        "screening",
        "screening_method",
        "screening_test",
        "initial_test",
        "screening_assay",
    ),
    "confirmation": (
        "confirmation",
        "confirmation_method",
        "confirmatory_test",
        "confirmatory_assay",
        "confirmatory_method",
    ),
    "monitoring": (
        "monitoring",
        "monitoring_method",
        "monitoring_test",
        "follow_up_test",
        "monitoring_assay",
    ),
    "affinity": ("affinity", "binding_affinity", "affinity_strength", "binding_strength", "kd"),
    "avidity": ("avidity", "binding_avidity", "avidity_strength", "overall_binding"),
    "mechanism": (
        "mechanism",
        "action_mechanism",
        "mechanism_of_action",
        "mode_of_action",
        "action",
        "moa",
    ),
    "isotypeSubclasses": (
        "isotypesubclasses",
        "isotype_subclasses",
        "isotype",
        "antibody_isotype",
        "isotype_class",
        "antibody_class",
    ),
    "sensitivity": (
        "sensitivity",
        "assay_sensitivity",
        "test_sensitivity",
        "diagnostic_sensitivity",
        "analytical_sensitivity",
    ),
    "diagnosticMarker": (
        "diagnosticmarker",
        "diagnostic_marker",
        "marker",
        "diagnostic_indicator",
        "biomarker",
        "diagnostic_flag",
    ),
    "associationWithDiseaseActivity": (
        "associationwithdiseaseactivity",
        "association_with_disease_activity",
        "disease_activity",
        "activity_association",
        "disease_correlation",
        "activity_correlation",
    ),
    "positivePredictiveValues": (
        "positivepredictivevalues",
        "positive_predictive_values",
        "ppv",
        "positive_predictive_value",
        "positive_predictive",
    ),
    "negativePredictiveValues": (
        "negativepredictivevalues",
        "negative_predictive_values",
        "npv",
        "negative_predictive_value",
        "negative_predictive",
    ),
    "crossReactivityPatterns": (
        "crossreactivitypatterns",
        "cross_reactivity_patterns",
        "cross_reactivity",
        "reactivity_patterns",
        "cross_reaction",
    ),
    "pathogenesisInvolvement": (
        "pathogenesisinvolvement",
        "pathogenesis_involvement",
        "pathogenesis",
        "pathogenic_role",
        "disease_mechanism",
        "pathogenic_mechanism",
    ),
    "referenceRangesAndCutoffValues": (
        "referencerangesandcutoffvalues",
        "reference_ranges_and_cutoff_values",
        "reference_ranges",
        "cutoff_values",
        "normal_ranges",
        "reference_values",
    ),
    "reference": (
        "reference",
        "ref",
        "citation",
        "source",
        "publication",
        "doi",
        "pmid",
        "pubmed_id",
        "literature",
    ),
    "type": (
        "type",
        "classification",
        "category",
        "class",
        "antibody_type",
        "immunoglobulin_type",
    ),
    "priority": (
        "priority",
        "priority_level",
        "priority_levels",
        "importance",
        "rank",
        "priority_rank",
    ),
}

_KNOWN_HEADERS: frozenset[str] = frozenset(
    alias for aliases in HEADER_ALIASES.values() for alias in aliases
)

CSV_COLUMNS: tuple[tuple[str, str], ...] = (
    ("Disease", "disease"),
    ("Database Accession Numbers", "databaseAccessionNumbers"),
    ("Autoantibody", "autoantibody"),
    ("Synonym", "synonym"),
    ("Disease Association", "diseaseAssociation"),
    ("Autoantigen", "autoantigen"),
    ("Epitope", "epitope"),
    ("Epitope Prevalence", "epitopePrevalence"),
    ("UniProt ID", "uniprotId"),
    ("Screening", "screening"),
    ("Confirmation", "confirmation"),
    ("Monitoring", "monitoring"),
    ("Affinity", "affinity"),
    ("Avidity", "avidity"),
    ("Mechanism", "mechanism"),
    ("Isotype Subclasses", "isotypeSubclasses"),
    ("Sensitivity", "sensitivity"),
    ("Diagnostic Marker", "diagnosticMarker"),
    ("Association with Disease Activity", "associationWithDiseaseActivity"),
    ("Positive Predictive Values", "positivePredictiveValues"),
    ("Negative Predictive Values", "negativePredictiveValues"),
    ("Cross Reactivity Patterns", "crossReactivityPatterns"),
    ("Pathogenesis Involvement", "pathogenesisInvolvement"),
    ("Reference Ranges and Cutoff Values", "referenceRangesAndCutoffValues"),
    ("Reference", "reference"),
    ("Type", "type"),
    ("Priority", "priority"),
)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_header(header: Any) -> str:
    return _WHITESPACE_RE.sub("", str(header).strip().lower())


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def map_import_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Map one spreadsheet row onto record fields.

    The first non-blank alias wins for each field. Non-blank columns that
    match no alias are kept under ``additional`` with their original header.
    """
    lowered: dict[str, Any] = {}
    original_headers: dict[str, str] = {}
    for key, value in row.items():
        normalized = normalize_header(key)
        lowered[normalized] = value
        original_headers[normalized] = str(key)

    mapped: dict[str, Any] = {}
    for field_name, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            value = _text(lowered.get(alias))
            if value:
                mapped[field_name] = value
                break

    additional = {
        original_headers[key]: str(value)
        for key, value in lowered.items()
        if key not in _KNOWN_HEADERS and _text(value)
    }
    if additional:
        mapped["additional"] = additional
    return mapped


def validate_entries(entries: Iterable[Mapping[str, Any]]) -> list[str]:
    """Return one message per missing required field, per entry."""
    errors: list[str] = []
    for index, entry in enumerate(entries):
        for name in missing_required_fields(dict(entry)):
            errors.append(f"Entry {index + 1}: {_REQUIRED_LABELS[name]} is required")
    return errors


def _date_only(value: Any) -> str:
    text = _text(value)
    return text.split("T", 1)[0] if text else ""


def records_to_csv(records: Iterable[Mapping[str, Any]]) -> str:
    """Render records as CSV with the catalog's fixed column order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([header for header, _ in CSV_COLUMNS] + ["Date Added", "Last Updated", "Verified"])
    for record in records:
        metadata = record.get("metadata") or {}
        row = [_text(record.get(name)) for _, name in CSV_COLUMNS]
        row.append(_date_only(record.get("createdAt")))
        row.append(_date_only(metadata.get("lastUpdated")))
        row.append("Yes" if metadata.get("verified") else "No")
        writer.writerow(row)
    return buffer.getvalue()


def with_derived_views(record: Mapping[str, Any]) -> dict[str, Any]:
    """Attach the read-only summary strings shown on a record's detail page."""
    enriched = dict(record)

    prevalence = record.get("epitopePrevalence")
    if isinstance(prevalence, (int, float)) and not isinstance(prevalence, bool):
        enriched["formattedEpitopePrevalence"] = f"{prevalence * 100:.1f}%"
    else:
        enriched["formattedEpitopePrevalence"] = prevalence

    methods = [
        f"{label}: {record[name]}"
        for label, name in (
            ("Screening", "screening"),
            ("Confirmation", "confirmation"),
            ("Monitoring", "monitoring"),
        )
        if record.get(name)
    ]
    enriched["diagnosticMethods"] = "; ".join(methods)

    predictive = [
        f"{label}: {record[name]}"
        for label, name in (
            ("PPV", "positivePredictiveValues"),
            ("NPV", "negativePredictiveValues"),
        )
        if record.get(name)
    ]
    enriched["predictiveValuesSummary"] = "; ".join(predictive)
    return enriched


@dataclass(frozen=True)
class ImportSummary:
    inserted: int
    total: int
    failed: int


@dataclass(frozen=True)
class RowImportError:
    """Details for a row import where no row carried every required field."""

    total_rows: int
    found_columns: list[str]
    found_required_fields: list[str]
    missing_required_fields: list[str]


class RecordCatalog:
    """Record CRUD and bulk operations layered on the query engine."""

    def __init__(
        self,
        storage: StorageBackend,
        engine: RecordQueryEngine,
        *,
        max_bulk_entries: int = 1_000,
    ) -> None:
        self.storage = storage
        self.engine = engine
        self.max_bulk_entries = max_bulk_entries

    def get(self, record_id: str) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Return a record with its derived views and up to five related records."""
        record = self.storage.get("records", record_id)
        if record is None:
            raise NotFoundError("Entry not found")
        return with_derived_views(record), self.engine.related_entries(record)

    def create(self, values: Mapping[str, Any]) -> dict[str, Any]:
        missing = missing_required_fields(dict(values))
        if missing:
            raise ValidationError(
                "Disease, autoantibody, autoantigen, epitope, and UniProt ID are required",
                [f"{_REQUIRED_LABELS[name]} is required" for name in missing],
            )
        now = utc_now_iso()
        document = dict(values)
        document["metadata"] = {
            "source": "manual_entry",
            "verified": False,
            "dataVersion": "1.0",
            **dict(values.get("metadata") or {}),
            "dateAdded": now,
            "lastUpdated": now,
        }
        created = self.storage.insert_one("records", document)
        logger.info("record_created", record_id=created["id"], disease=created.get("disease"))
        return created

    def update(self, record_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        payload = {key: value for key, value in changes.items() if key != "metadata"}
        payload["metadata.lastUpdated"] = utc_now_iso()
        updated = self.storage.update("records", record_id, payload)
        if updated is None:
            raise NotFoundError("Entry not found")
        return updated

    def delete(self, record_id: str) -> None:
        if not self.storage.delete("records", record_id):
            raise NotFoundError("Entry not found")
        logger.info("record_deleted", record_id=record_id)

    def bulk_import(
        self, entries: list[dict[str, Any]], *, source: str = "bulk_import"
    ) -> ImportSummary:
        """Validate every entry, then insert them as a best-effort batch.

        Raises ValidationError before anything is written if any entry lacks a
        required field, and PartialBatchFailure if some inserts failed.
        """
        if not entries:
            raise ValidationError("Entries array is required and cannot be empty")
        if len(entries) > self.max_bulk_entries:
            raise ValidationError(
                f"Cannot import more than {self.max_bulk_entries} entries at once"
            )
        errors = validate_entries(entries)
        if errors:
            raise ValidationError("Validation errors in bulk data", errors)

        now = utc_now_iso()
        documents = []
        for entry in entries:
            metadata = entry.get("metadata") or {}
            documents.append(
                {
                    **entry,
                    "metadata": {
                        "dateAdded": now,
                        "lastUpdated": now,
                        "verified": bool(metadata.get("verified", False)),
                        "source": metadata.get("source") or source,
                        "dataVersion": "1.0",
                    },
                }
            )

        result = self.storage.insert_many("records", documents)
        logger.info(
            "records_imported",
            source=source,
            inserted=result.inserted_count,
            failed=result.failed_count,
        )
        if result.errors:
            raise PartialBatchFailure(result.inserted_count, result.failed_count, result.errors)
        return ImportSummary(inserted=result.inserted_count, total=len(entries), failed=0)

    def import_rows(self, rows: list[Mapping[str, Any]]) -> ImportSummary:
        """Map spreadsheet rows onto records and import those that are complete."""
        if not rows:
            raise ValidationError("Uploaded file contains no rows")

        mapped = [map_import_row(row) for row in rows]
        entries = [entry for entry in mapped if not missing_required_fields(entry)]
        dropped = len(mapped) - len(entries)
        if dropped:
            logger.info("import_rows_dropped", dropped=dropped, total=len(rows))

        if not entries:
            details = self.describe_columns(rows)
            raise ValidationError(
                "No valid rows found after mapping required fields. "
                "Please check your file format and column names.",
                [f"Missing required column: {name}" for name in details.missing_required_fields]
                or ["Required columns are present but every row has blank required values"],
            )
        return self.bulk_import(entries, source="file_import")

    @staticmethod
    def describe_columns(rows: list[Mapping[str, Any]]) -> RowImportError:
        headers = [str(key) for key in rows[0]] if rows else []
        normalized = {normalize_header(header) for header in headers}
        found: list[str] = []
        missing: list[str] = []
        for name in REQUIRED_FIELDS:
            if normalized.intersection(HEADER_ALIASES[name]):
                found.append(name)
            else:
                missing.append(name)
        return RowImportError(
            total_rows=len(rows),
            found_columns=headers,
            found_required_fields=found,
            missing_required_fields=missing,
        )

    def statistics(self) -> dict[str, Any]:
        everything = MatchAll()
        total = self.storage.count("records", everything)
        verified = self.storage.count("records", Equals("metadata.verified", "true"))

        def breakdown(field_name: str, limit: int | None = None) -> list[dict[str, Any]]:
            return [
                {"value": value, "count": count}
                for value, count in self.storage.group_counts(
                    "records", field_name, everything, limit=limit
                )
            ]

        def non_empty_breakdown(field_name: str) -> list[dict[str, Any]]:
            return [item for item in breakdown(field_name) if item["value"]]

        return {
            "overview": {
                "totalEntries": total,
                "verifiedEntries": verified,
                "uniqueDiseasesCount": len(self.storage.distinct("records", "disease", everything)),
                "uniqueAntibodiesCount": len(
                    self.storage.distinct("records", "autoantibody", everything)
                ),
                "uniqueAntigensCount": len(
                    self.storage.distinct("records", "autoantigen", everything)
                ),
                "uniqueUniprotIdsCount": len(
                    self.storage.distinct("records", "uniprotId", everything)
                ),
            },
            "diseaseBreakdown": breakdown("disease", 20),
            "topAntibodies": breakdown("autoantibody", 10),
            "topAntigens": breakdown("autoantigen", 10),
            "diagnosticMarkerBreakdown": non_empty_breakdown("diagnosticMarker"),
            "affinityBreakdown": non_empty_breakdown("affinity"),
            "sensitivityBreakdown": non_empty_breakdown("sensitivity"),
        }

    def diseases_summary(self) -> list[dict[str, Any]]:
        """Per-disease counts, antibody and type sets, largest disease first."""
        summary: dict[Any, dict[str, Any]] = {}
        for record in self.storage.find("records", MatchAll()):
            disease = record.get("disease")
            entry = summary.setdefault(
                disease,
                {
                    "disease": disease,
                    "count": 0,
                    "autoantibodies": [],
                    "diagnosticMarkers": 0,
                    "types": [],
                },
            )
            entry["count"] += 1
            antibody = record.get("autoantibody")
            if antibody not in entry["autoantibodies"]:
                entry["autoantibodies"].append(antibody)
            record_type = record.get("type")
            if record_type not in entry["types"]:
                entry["types"].append(record_type)
            if record.get("diagnosticMarker") == "Yes":
                entry["diagnosticMarkers"] += 1
        return sorted(summary.values(), key=lambda item: -item["count"])

    def additional_keys(self) -> list[str]:
        keys: dict[str, str] = {}
        for record in self.storage.find("records", MatchAll()):
            additional = record.get("additional")
            if not isinstance(additional, dict):
                continue
            for key in additional:
                if key and key.lower() not in keys:
                    keys[key.lower()] = key
        return sorted(keys.values())
