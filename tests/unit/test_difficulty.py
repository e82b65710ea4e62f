"""
Unit tests for the difficulty tier table.
"""

import pytest

from searchprobe.probe.difficulty import (
    DIFFICULTY_TIERS,
    GENERIC_CATEGORY,
    MAX_ATTEMPTS,
    normalize_category,
    tier_for_attempt,
)


def test_five_tiers_in_escalating_order():
    assert MAX_ATTEMPTS == 5
    assert [t.level for t in DIFFICULTY_TIERS] == [1, 2, 3, 4, 5]
    assert [t.name for t in DIFFICULTY_TIERS] == [
        "single_concept",
        "one_qualifier",
        "problem_framed",
        "scenario_framed",
        "multi_constraint",
    ]


def test_every_tier_covers_the_same_categories():
    categories = set(DIFFICULTY_TIERS[0].fallbacks)
    assert GENERIC_CATEGORY in categories
    for tier in DIFFICULTY_TIERS:
        assert set(tier.fallbacks) == categories
        assert all(q.strip() for q in tier.fallbacks.values())


def test_fallbacks_are_distinct_across_tiers():
    for category in DIFFICULTY_TIERS[0].fallbacks:
        queries = [tier.fallback_query(category) for tier in DIFFICULTY_TIERS]
        assert len(set(queries)) == len(queries)


def test_unknown_category_uses_generic_fallback():
    tier = tier_for_attempt(1)
    assert tier.fallback_query("industrial lasers") == tier.fallbacks[GENERIC_CATEGORY]
    assert tier.fallback_query("") == tier.fallbacks[GENERIC_CATEGORY]


@pytest.mark.parametrize("raw,expected", [
    ("Fashion", "fashion"),
    ("Apparel", "fashion"),
    ("Pet Supplies", "pet"),
    ("home & kitchen", "home"),
    ("Consumer Electronics", "electronics"),
    ("automotive_parts", "automotive"),
    (None, GENERIC_CATEGORY),
    ("   ", GENERIC_CATEGORY),
])
def test_normalize_category(raw, expected):
    assert normalize_category(raw) == expected


def test_tier_for_attempt_bounds():
    assert tier_for_attempt(5).name == "multi_constraint"
    with pytest.raises(ValueError):
        tier_for_attempt(0)
    with pytest.raises(ValueError):
        tier_for_attempt(6)
