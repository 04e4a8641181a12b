"""Predicate construction and ranking for record search."""

from .filters import ALL_FIELDS, RO52_SYNONYMS, build_record_predicate, field_filter
from .predicates import AllOf, AnyOf, Contains, Equals, MatchAll, Predicate
from .priority import normalize_priority
from .ranker import ScoredRecord, rank_by_relevance, rank_records

__all__ = [
    "ALL_FIELDS",
    "RO52_SYNONYMS",
    "build_record_predicate",
    "field_filter",
    "AllOf",
    "AnyOf",
    "Contains",
    "Equals",
    "MatchAll",
    "Predicate",
    "normalize_priority",
    "ScoredRecord",
    "rank_by_relevance",
    "rank_records",
]
