"""Tests for priority normalization and result ranking."""

from __future__ import annotations

import math

import pytest

from autoab_db.search.priority import normalize_priority
from autoab_db.search.ranker import (
    parse_direction,
    rank_by_relevance,
    rank_records,
    score_record,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (5, 5.0),
        (2.5, 2.5),
        ("7", 7.0),
        (" 3.25 ", 3.25),
        ("-1", -1.0),
        ("+4", 4.0),
        ("high", 0.0),
        ("", 0.0),
        (None, 0.0),
        (True, 0.0),
        (math.nan, 0.0),
        (math.inf, 0.0),
        ([1], 0.0),
    ],
)
def test_normalize_priority(value, expected) -> None:
    assert normalize_priority(value) == expected


def test_parse_direction_defaults_to_ascending() -> None:
    assert parse_direction("DESC") == "desc"
    assert parse_direction("asc") == "asc"
    assert parse_direction("sideways") == "asc"
    assert parse_direction(None) == "asc"


def test_priority_outranks_the_requested_sort() -> None:
    records = [
        {"disease": "A", "priority": None},
        {"disease": "B", "priority": "10"},
        {"disease": "C", "priority": 3},
        {"disease": "D"},
        {"disease": "E", "priority": "not a number"},
    ]

    ranked = rank_records(records, [("disease", "desc")])

    assert [r["disease"] for r in ranked] == ["B", "C", "E", "D", "A"]


def test_sort_breaks_priority_ties_with_secondary_keys() -> None:
    records = [
        {"disease": "Lupus", "autoantibody": "Sm"},
        {"disease": "Lupus", "autoantibody": "dsDNA"},
        {"disease": "Arthritis", "autoantibody": "RF"},
        {"autoantibody": "orphan"},
    ]

    ranked = rank_records(records, [("disease", "asc"), ("autoantibody", "asc")])

    assert [r["autoantibody"] for r in ranked] == ["orphan", "RF", "Sm", "dsDNA"]


def test_equal_records_keep_input_order() -> None:
    records = [{"disease": "X", "n": i} for i in range(5)]
    ranked = rank_records(records, [("disease", "asc")])
    assert [r["n"] for r in ranked] == [0, 1, 2, 3, 4]


def test_score_record_sums_weighted_field_hits() -> None:
    record = {
        "disease": "Anti-Ro disease",
        "autoantibody": "Anti-Ro52",
        "autoantigen": "TRIM21",
        "reference": "ro study",
    }

    score, matched = score_record(record, "ro")

    assert matched == ("disease", "autoantibody", "reference")
    assert score == 10 + 8 + 1


def test_rank_by_relevance_orders_by_score_then_disease() -> None:
    records = [
        {"disease": "Zeta", "autoantibody": "Anti-CCP"},
        {"disease": "Beta", "autoantibody": "Anti-CCP"},
        {"disease": "CCP syndrome", "autoantibody": "Anti-CCP"},
        {"disease": "Alpha", "reference": "CCP"},
    ]

    ranked = rank_by_relevance(records, "ccp", limit=3)

    assert [item.record["disease"] for item in ranked] == ["CCP syndrome", "Beta", "Zeta"]
    assert ranked[0].score == 18
    assert ranked[0].matched_fields == ("disease", "autoantibody")
