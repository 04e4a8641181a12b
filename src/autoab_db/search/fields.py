"""
Registry of searchable and filterable record fields.
"""

from __future__ import annotations

from typing import Literal

from ..errors import InvalidFieldError


MatchMode = Literal["exact", "contains"]

RECORD_FIELDS: tuple[str, ...] = (
    "disease",
    "autoantibody",
    "autoantigen",
    "epitope",
    "uniprotId",
    "diseaseAssociation",
    "affinity",
    "avidity",
    "mechanism",
    "isotypeSubclasses",
    "sensitivity",
    "diagnosticMarker",
    "associationWithDiseaseActivity",
    "pathogenesisInvolvement",
    "reference",
    "databaseAccessionNumbers",
    "synonym",
    "screening",
    "confirmation",
    "monitoring",
    "positivePredictiveValues",
    "negativePredictiveValues",
    "crossReactivityPatterns",
    "referenceRangesAndCutoffValues",
    "type",
)

# ``priority`` is searchable and filterable but never offered for unique values.
SEARCHABLE_FIELDS: tuple[str, ...] = RECORD_FIELDS + ("priority",)

SORTABLE_FIELDS: frozenset[str] = frozenset(SEARCHABLE_FIELDS + ("createdAt", "updatedAt"))

REQUIRED_FIELDS: tuple[str, ...] = (
    "disease",
    "autoantibody",
    "autoantigen",
    "epitope",
    "uniprotId",
)

DEFAULT_SORT_FIELD = "disease"

# Short antibody fragments should surface every antibody that contains them.
_PARTIAL_FILTER_FIELDS: frozenset[str] = frozenset({"autoantibody"})

_SEARCHABLE_SET = frozenset(SEARCHABLE_FIELDS)


def is_searchable(field: str | None) -> bool:
    """Return True if *field* is a recognized search/filter target."""
    return field in _SEARCHABLE_SET


def filter_match_mode(field: str) -> MatchMode:
    """Match mode used when *field* is the target of a direct filter."""
    return "contains" if field in _PARTIAL_FILTER_FIELDS else "exact"


def search_match_mode(field: str) -> MatchMode:  # noqa: ARG001
    """Match mode used when *field* is hit by a free-text search."""
    return "contains"


def resolve_sort_field(field: str | None) -> str:
    """Return *field* if it is sortable, otherwise the default sort field."""
    if field and field in SORTABLE_FIELDS:
        return field
    return DEFAULT_SORT_FIELD


def require_field(field: str | None, *, allowed: tuple[str, ...] = RECORD_FIELDS) -> str:
    """Validate *field* for strict endpoints, raising InvalidFieldError if unknown."""
    if not field or field not in allowed:
        raise InvalidFieldError(str(field), list(allowed))
    return field


def missing_required_fields(values: dict[str, object]) -> list[str]:
    """Return the required fields that are absent or blank in *values*."""
    missing: list[str] = []
    for name in REQUIRED_FIELDS:
        value = values.get(name)
        if value is None or not str(value).strip():
            missing.append(name)
    return missing
