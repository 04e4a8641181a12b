"""
Predicate tree evaluated against stored documents.

Leaves are case-insensitive regex matches on a single field. Storage
backends compile the tree into their own query language; ``matches`` is the
reference evaluator used for in-process scoring.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Mapping, Union


_REGEX_META_RE = re.compile(r"[.*+?^${}()|\[\]\\]")


def escape_regex(text: str) -> str:
    """Escape regex metacharacters, leaving letters (including non-ASCII) untouched."""
    return _REGEX_META_RE.sub(lambda match: "\\" + match.group(0), text)


def field_value(document: Mapping[str, Any], field: str) -> str:
    """Return the string form of a dotted *field* path, or "" when absent."""
    current: Any = document
    for part in field.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return ""
        current = current[part]
    if current is None:
        return ""
    if isinstance(current, bool):
        return "true" if current else "false"
    if isinstance(current, (dict, list)):
        return json.dumps(current)
    return str(current)


@dataclass(frozen=True)
class MatchAll:
    """Predicate that matches every document."""

    def matches(self, document: Mapping[str, Any]) -> bool:  # noqa: ARG002
        return True


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match on one field."""

    field: str
    value: str

    @property
    def pattern(self) -> str:
        return escape_regex(self.value)

    def matches(self, document: Mapping[str, Any]) -> bool:
        return re.search(self.pattern, field_value(document, self.field), re.IGNORECASE) is not None


@dataclass(frozen=True)
class Equals:
    """Case-insensitive full-string match on one field."""

    field: str
    value: str

    @property
    def pattern(self) -> str:
        return f"^{escape_regex(self.value)}$"

    def matches(self, document: Mapping[str, Any]) -> bool:
        return re.search(self.pattern, field_value(document, self.field), re.IGNORECASE) is not None


@dataclass(frozen=True)
class AnyOf:
    """Logical OR of child predicates."""

    predicates: tuple[Predicate, ...]

    def matches(self, document: Mapping[str, Any]) -> bool:
        return any(predicate.matches(document) for predicate in self.predicates)


@dataclass(frozen=True)
class AllOf:
    """Logical AND of child predicates."""

    predicates: tuple[Predicate, ...]

    def matches(self, document: Mapping[str, Any]) -> bool:
        return all(predicate.matches(document) for predicate in self.predicates)


Predicate = Union[MatchAll, Contains, Equals, AnyOf, AllOf]


def combine_all(predicates: list[Predicate]) -> Predicate:
    """AND *predicates* together, collapsing the empty and single cases."""
    if not predicates:
        return MatchAll()
    if len(predicates) == 1:
        return predicates[0]
    return AllOf(tuple(predicates))


def any_field_contains(fields: tuple[str, ...] | list[str], value: str) -> AnyOf:
    """OR a contains-match for *value* across *fields*."""
    return AnyOf(tuple(Contains(field, value) for field in fields))
