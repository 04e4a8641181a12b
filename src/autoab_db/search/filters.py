"""
Query construction for record search and field filters.
"""

from __future__ import annotations

import re
from typing import Mapping

from .fields import SEARCHABLE_FIELDS, filter_match_mode, is_searchable, search_match_mode
from .predicates import (
    AnyOf,
    Contains,
    Equals,
    Predicate,
    combine_all,
    escape_regex,
)


ALL_FIELDS = "all"

# The source dataset records the SSA/Ro52 antibody family under inconsistent
# names, so a Ro search also pulls in every known spelling.
RO52_SYNONYMS: tuple[str, ...] = (
    "ro52",
    "anti-ro52",
    "ssa",
    "ro/ssa",
    "ro (ssa)",
    "ro/ss-a",
    "ro ss-a",
)
_RO52_TRIGGERS: tuple[str, ...] = ("ro52", "anti-ro52", "ro/ssa", "ro (ssa)")
_RO_WORD_RE = re.compile(r"(?<![a-z0-9])ro(?![a-z0-9])")


def triggers_ro52_synonyms(search: str) -> bool:
    """Return True if *search* names the Ro52/SSA antibody family."""
    lowered = search.strip().lower()
    if any(trigger in lowered for trigger in _RO52_TRIGGERS):
        return True
    return _RO_WORD_RE.search(lowered) is not None


def build_record_predicate(
    *,
    search: str | None = None,
    field: str | None = None,
    filters: Mapping[str, object] | None = None,
) -> Predicate:
    """Combine a free-text search and per-field filters into one predicate.

    ``field`` selects where *search* applies: ``"all"`` for every recognized
    field, or a single recognized field name. Filters on unknown fields and
    blank filter values are ignored.
    """
    conditions: list[Predicate] = []

    search_condition = _search_condition(search, field)
    if search_condition is not None:
        conditions.append(search_condition)

    for name, raw_value in (filters or {}).items():
        if not is_searchable(name) or raw_value is None:
            continue
        value = str(raw_value).strip()
        if not value:
            continue
        conditions.append(field_filter(name, value))

    return combine_all(conditions)


def field_filter(field: str, value: str) -> Predicate:
    """Predicate for a direct filter, honouring the field's match mode."""
    if filter_match_mode(field) == "contains":
        return Contains(field, value)
    return Equals(field, value)


def _search_leaf(field: str, term: str) -> Predicate:
    if search_match_mode(field) == "contains":
        return Contains(field, term)
    return Equals(field, term)


def _search_condition(search: str | None, field: str | None) -> Predicate | None:
    if search is None:
        return None
    term = search.strip()
    if not term:
        return None

    if field == ALL_FIELDS:
        terms: list[Predicate] = [_search_leaf(name, term) for name in SEARCHABLE_FIELDS]
        if triggers_ro52_synonyms(term):
            terms.extend(Contains("autoantibody", synonym) for synonym in RO52_SYNONYMS)
        return AnyOf(tuple(terms))

    if field is not None and is_searchable(field):
        return _search_leaf(field, term)

    return None


__all__ = [
    "ALL_FIELDS",
    "RO52_SYNONYMS",
    "build_record_predicate",
    "escape_regex",
    "field_filter",
    "triggers_ro52_synonyms",
]
