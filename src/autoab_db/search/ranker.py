"""
Ranking helpers for record result sets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Sequence

from .predicates import Contains
from .priority import normalize_priority


SortDirection = Literal["asc", "desc"]
SortSpec = Sequence[tuple[str, SortDirection]]

RELEVANCE_WEIGHTS: dict[str, int] = {
    "disease": 10,
    "autoantibody": 8,
    "autoantigen": 6,
    "diagnosticMarker": 5,
    "epitope": 4,
    "diseaseAssociation": 3,
    "pathogenesisInvolvement": 3,
    "uniprotId": 2,
    "reference": 1,
}


def parse_direction(value: str | None) -> SortDirection:
    return "desc" if (value or "").strip().lower() == "desc" else "asc"


def _sort_value(record: Mapping[str, Any], field: str) -> tuple[int, str]:
    # Absent values sort before present ones in ascending order.
    value = record.get(field)
    if value is None or value == "":
        return (0, "")
    return (1, str(value))


def rank_records(
    records: Sequence[dict[str, Any]], sort: SortSpec
) -> list[dict[str, Any]]:
    """Order records by priority (highest first), then by *sort*.

    The caller's sort only breaks ties between records of equal priority.
    """
    ordered = list(records)
    for field, direction in reversed(list(sort)):
        ordered.sort(
            key=lambda record, name=field: _sort_value(record, name),
            reverse=direction == "desc",
        )
    ordered.sort(key=lambda record: -normalize_priority(record.get("priority")))
    return ordered


@dataclass(frozen=True)
class ScoredRecord:
    """A record matched by advanced search together with its relevance."""

    record: dict[str, Any]
    score: int
    matched_fields: tuple[str, ...]


def score_record(record: Mapping[str, Any], term: str) -> tuple[int, tuple[str, ...]]:
    """Return the relevance score of *record* for *term* and the weighted fields hit."""
    matched = tuple(
        field for field in RELEVANCE_WEIGHTS if Contains(field, term).matches(record)
    )
    return sum(RELEVANCE_WEIGHTS[field] for field in matched), matched


def rank_by_relevance(
    records: Sequence[dict[str, Any]], term: str, *, limit: int
) -> list[ScoredRecord]:
    """Score, sort by score descending then disease ascending, and apply limit."""
    scored: list[ScoredRecord] = []
    for record in records:
        score, matched = score_record(record, term)
        scored.append(ScoredRecord(record=record, score=score, matched_fields=matched))
    ordered = sorted(
        scored,
        key=lambda item: (-item.score, _sort_value(item.record, "disease")),
    )
    return ordered[: max(limit, 1)]
