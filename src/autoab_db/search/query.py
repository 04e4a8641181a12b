"""
Priority-ranked retrieval over disease-association records.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field as dataclass_field
from typing import TYPE_CHECKING, Any, Mapping

import structlog

from ..errors import ValidationError
from .fields import SEARCHABLE_FIELDS, require_field, resolve_sort_field
from .filters import ALL_FIELDS, build_record_predicate, field_filter
from .predicates import (
    AnyOf,
    Contains,
    Equals,
    MatchAll,
    Predicate,
    any_field_contains,
    combine_all,
)
from .priority import normalize_priority
from .ranker import (
    ScoredRecord,
    SortDirection,
    SortSpec,
    parse_direction,
    rank_by_relevance,
    rank_records,
)

if TYPE_CHECKING:
    from ..storage.base import StorageBackend


logger = structlog.get_logger(__name__)

# Parent filters that narrow each dropdown field's unique values.
_DEPENDENT_FILTERS: dict[str, tuple[str, ...]] = {
    "disease": ("autoantibody", "autoantigen", "epitope"),
    "autoantibody": ("disease", "autoantigen"),
    "autoantigen": ("disease", "autoantibody"),
    "epitope": ("autoantigen", "disease", "autoantibody"),
    "uniprotId": ("autoantibody", "autoantigen", "disease", "epitope"),
    "type": ("disease", "autoantibody", "autoantigen", "epitope"),
}


def clamp_int(value: Any, *, default: int, minimum: int = 1, maximum: int | None = None) -> int:
    """Parse *value* as an int, falling back to *default*, then clamp."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    number = max(number, minimum)
    if maximum is not None:
        number = min(number, maximum)
    return number


@dataclass(frozen=True)
class RecordQuery:
    """Structured parameters for a record listing."""

    search: str | None = None
    field: str | None = None
    filters: Mapping[str, str | None] = dataclass_field(default_factory=dict)
    sort_by: str | None = None
    sort_order: str | None = None
    page: int | str | None = 1
    limit: int | str | None = None


@dataclass(frozen=True)
class RecordPage:
    """One page of ranked records plus pagination totals."""

    records: list[dict[str, Any]]
    total_count: int
    total_pages: int
    page: int
    limit: int
    sort_by: str
    sort_order: SortDirection


@dataclass(frozen=True)
class AdvancedSearchStats:
    total_matches: int
    unique_diseases: int
    unique_antibodies: int
    unique_antigens: int


@dataclass(frozen=True)
class AdvancedSearchResult:
    records: list[ScoredRecord]
    count: int
    stats: AdvancedSearchStats | None = None


class RecordQueryEngine:
    """Build predicates, fetch matches and rank them priority first."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        default_page_size: int = 10,
        max_page_size: int = 10_000,
        max_quick_search: int = 1_000,
        max_advanced_results: int = 100,
    ) -> None:
        self.storage = storage
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.max_quick_search = max_quick_search
        self.max_advanced_results = max_advanced_results

    def query(self, params: RecordQuery) -> RecordPage:
        page = clamp_int(params.page, default=1)
        limit = clamp_int(
            params.limit, default=self.default_page_size, maximum=self.max_page_size
        )
        sort_by = resolve_sort_field(params.sort_by)
        sort_order = parse_direction(params.sort_order)

        predicate = build_record_predicate(
            search=params.search, field=params.field, filters=params.filters
        )
        records = self.retrieve(
            predicate,
            [(sort_by, sort_order)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = self.storage.count("records", predicate)
        return RecordPage(
            records=records,
            total_count=total,
            total_pages=math.ceil(total / limit),
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    def retrieve(
        self,
        predicate: Predicate,
        sort: SortSpec,
        *,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every match, rank priority first, then cut the requested window."""
        matches = self.storage.find("records", predicate)
        ranked = rank_records(matches, sort)
        if limit is None:
            return ranked[skip:]
        return ranked[skip : skip + limit]

    def quick_search(
        self, term: str | None, *, field: str = ALL_FIELDS, limit: Any = 20
    ) -> list[dict[str, Any]]:
        if term is None or not term.strip():
            raise ValidationError("Search term is required")
        predicate = build_record_predicate(search=term, field=field)
        capped = clamp_int(limit, default=20, maximum=self.max_quick_search)
        return self.retrieve(
            predicate, [("disease", "asc"), ("autoantibody", "asc")], limit=capped
        )

    def advanced_search(
        self, term: str | None, *, limit: Any = 50, include_stats: bool = False
    ) -> AdvancedSearchResult:
        text = (term or "").strip()
        if len(text) < 2:
            raise ValidationError("Search term must be at least 2 characters long")

        predicate = any_field_contains(SEARCHABLE_FIELDS, text)
        capped = clamp_int(limit, default=50, maximum=self.max_advanced_results)
        matches = self.storage.find("records", predicate)
        scored = rank_by_relevance(matches, text, limit=capped)

        stats: AdvancedSearchStats | None = None
        if include_stats:
            stats = AdvancedSearchStats(
                total_matches=len(matches),
                unique_diseases=self._distinct_count("disease", predicate),
                unique_antibodies=self._distinct_count("autoantibody", predicate),
                unique_antigens=self._distinct_count("autoantigen", predicate),
            )
        logger.debug("advanced_search", term=text, matches=len(matches), returned=len(scored))
        return AdvancedSearchResult(records=scored, count=len(scored), stats=stats)

    def entries_by_disease(self, disease: str | None) -> list[dict[str, Any]]:
        if disease is None or not disease.strip():
            raise ValidationError("Disease name is required")
        return self.retrieve(
            Contains("disease", disease.strip()),
            [("autoantibody", "asc"), ("autoantigen", "asc")],
        )

    def entries_by_uniprot(self, uniprot_id: str | None) -> list[dict[str, Any]]:
        if uniprot_id is None or not uniprot_id.strip():
            raise ValidationError("UniProt ID is required")
        return self.retrieve(
            Equals("uniprotId", uniprot_id.strip().upper()),
            [("disease", "asc"), ("autoantibody", "asc")],
        )

    def export_entries(
        self, filters: Mapping[str, str | None], *, limit: Any = None
    ) -> list[dict[str, Any]]:
        # Exports select exact values for every field, autoantibody included.
        predicate = combine_all(
            [
                Equals(name, str(value).strip())
                for name, value in filters.items()
                if name in SEARCHABLE_FIELDS and value is not None and str(value).strip()
            ]
        )
        capped: int | None = None
        if limit not in (None, ""):
            capped = clamp_int(limit, default=self.max_page_size, maximum=self.max_page_size)
        return self.retrieve(
            predicate, [("disease", "asc"), ("autoantibody", "asc")], limit=capped
        )

    def find_by_disease_and_autoantibody(
        self, disease: str | None, autoantibody: str | None
    ) -> list[dict[str, Any]]:
        if not (disease or "").strip() or not (autoantibody or "").strip():
            raise ValidationError("Both disease and autoantibody parameters are required")
        predicate = combine_all(
            [Contains("disease", disease.strip()), Contains("autoantibody", autoantibody.strip())]
        )
        return self.retrieve(predicate, [("disease", "asc"), ("autoantibody", "asc")])

    def find_by_autoantibody_or_synonym(self, term: str | None) -> list[dict[str, Any]]:
        if term is None or not term.strip():
            raise ValidationError("Search term is required")
        predicate = any_field_contains(("autoantibody", "synonym"), term.strip())
        return self.retrieve(predicate, [("disease", "asc"), ("autoantibody", "asc")])

    def find_by_diagnostic_method(self, method: str | None) -> list[dict[str, Any]]:
        if method is None or not method.strip():
            raise ValidationError("Diagnostic method is required")
        predicate = any_field_contains(("screening", "confirmation", "monitoring"), method.strip())
        return self.retrieve(predicate, [("disease", "asc"), ("autoantibody", "asc")])

    def unique_values(self, field_name: str | None) -> list[str]:
        """Distinct values of a record field; diseases are ordered priority first."""
        name = require_field(field_name)
        return self._ordered_unique_values(name, MatchAll())

    def filtered_unique_values(
        self, field_name: str | None, parents: Mapping[str, str | None]
    ) -> list[str]:
        """Unique values of *field_name* narrowed by the parent dropdown selections."""
        name = require_field(field_name)
        conditions: list[Predicate] = []
        for parent in _DEPENDENT_FILTERS.get(name, ()):
            value = (parents.get(parent) or "").strip()
            if value:
                conditions.append(field_filter(parent, value))
        if name == "epitope" and not conditions:
            return []
        return self._ordered_unique_values(name, combine_all(conditions))

    def related_entries(self, record: Mapping[str, Any], *, limit: int = 5) -> list[dict[str, Any]]:
        """Other records sharing the disease, autoantigen or UniProt ID."""
        conditions: list[Predicate] = []
        for name in ("disease", "autoantigen", "uniprotId"):
            value = str(record.get(name) or "").strip()
            if not value or (name == "uniprotId" and value == "Multiple"):
                continue
            conditions.append(Equals(name, value))
        if not conditions:
            return []
        candidates = self.storage.find("records", AnyOf(tuple(conditions)), limit=limit + 1)
        return [doc for doc in candidates if doc.get("id") != record.get("id")][:limit]

    def _distinct_count(self, name: str, predicate: Predicate) -> int:
        # Records without the field count as one more distinct value.
        return len(self.storage.group_counts("records", name, predicate))

    def _ordered_unique_values(self, name: str, predicate: Predicate) -> list[str]:
        seen: dict[str, str] = {}
        for value in self.storage.distinct("records", name, predicate):
            original = value.strip()
            if original and original.lower() not in seen:
                seen[original.lower()] = original
        values = list(seen.values())

        if name != "disease":
            return sorted(values, key=str.casefold)

        priorities: dict[str, float] = {}
        for doc in self.storage.find("records", predicate):
            disease = str(doc.get("disease") or "").strip().lower()
            if not disease:
                continue
            priority = normalize_priority(doc.get("priority"))
            if disease not in priorities or priorities[disease] < priority:
                priorities[disease] = priority
        return sorted(
            values,
            key=lambda value: (-priorities.get(value.lower(), 0.0), value.casefold()),
        )
