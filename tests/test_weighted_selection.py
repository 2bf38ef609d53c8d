"""Tests for the weight function and the weighted random draw."""

import copy
import random

import pytest

import vocab_core as core
from vocab_core import (
    EmptyPoolError,
    StudyItem,
    build_weighted_pool,
    calculate_weight,
    draw_weighted,
    selection_probabilities,
    weighted_random_item,
)


def _fixed(u):
    return lambda: u


@pytest.fixture
def pool():
    return [
        StudyItem("Easy", success_count=10, fail_count=0),
        StudyItem("New", success_count=0, fail_count=0),
        StudyItem("Hard", success_count=1, fail_count=6),
    ]


@pytest.fixture(autouse=True)
def default_offset(monkeypatch):
    monkeypatch.setattr(core, "DEFAULT_OFFSET", 3)


class TestCalculateWeight:
    """Weight = max(1, (fail - success) + offset)"""

    def test_reference_values(self):
        assert calculate_weight({"success_count": 10, "fail_count": 0}, offset=3) == 1
        assert calculate_weight({"success_count": 0, "fail_count": 0}, offset=3) == 3
        assert calculate_weight({"success_count": 1, "fail_count": 6}, offset=3) == 8

    def test_floor_for_mastered_items(self):
        for offset in range(1, 11):
            for succ in range(0, 30):
                for fail in range(0, max(0, succ - offset) + 1):
                    if fail <= succ - offset:
                        assert calculate_weight(StudyItem("x", succ, fail), offset) == 1

    def test_non_decreasing_in_failures(self):
        for succ in range(0, 15):
            weights = [calculate_weight(StudyItem("x", succ, fail), 3) for fail in range(0, 30)]
            assert weights == sorted(weights)

    def test_non_increasing_in_successes(self):
        for fail in range(0, 15):
            weights = [calculate_weight(StudyItem("x", succ, fail), 3) for succ in range(0, 30)]
            assert weights == sorted(weights, reverse=True)

    def test_missing_counts_read_as_zero(self):
        assert calculate_weight({}, offset=3) == 3
        assert calculate_weight({"success_count": None, "fail_count": None}, offset=3) == 3
        assert calculate_weight(object(), offset=4) == 4

    def test_malformed_counts_are_coerced(self):
        assert calculate_weight({"success_count": "1", "fail_count": "4"}, offset=3) == 6
        assert calculate_weight({"success_count": "lots", "fail_count": -5}, offset=3) == 3

    def test_infinite_counts_read_as_zero(self):
        assert calculate_weight({"success_count": float("inf")}, offset=3) == 3
        assert calculate_weight({"fail_count": float("-inf"), "success_count": 2}, offset=3) == 1
        assert calculate_weight({"fail_count": float("nan")}, offset=4) == 4
        e = core.migrate_counts_entry({"success_count": float("inf"), "fail_count": 2})
        assert (e["success_count"], e["fail_count"]) == (0, 2)

    def test_default_offset_is_configurable(self):
        item = StudyItem("x")
        assert calculate_weight(item) == 3
        assert core.set_default_offset(5) == 5
        assert calculate_weight(item) == 5
        assert calculate_weight(item, offset=2) == 2

    def test_set_default_offset_clamps_and_falls_back(self):
        assert core.set_default_offset(99) == core.OFFSET_MAX
        assert core.set_default_offset(0) == core.OFFSET_MIN
        assert core.set_default_offset(7) == 7
        assert core.set_default_offset("abc") == core.FALLBACK_OFFSET
        assert core.set_default_offset(7) == 7
        assert core.set_default_offset(float("inf")) == core.FALLBACK_OFFSET
        assert core.set_default_offset(None) == core.FALLBACK_OFFSET

    def test_fallback_offset_follows_its_constant(self, monkeypatch):
        monkeypatch.setattr(core, "FALLBACK_OFFSET", 6)
        assert core.set_default_offset("abc") == 6
        assert calculate_weight(StudyItem("x")) == 6

    def test_pool_pairs_items_with_weights(self, pool):
        pairs = build_weighted_pool(pool, offset=3)
        assert [w for _, w in pairs] == [1, 3, 8]
        assert [it for it, _ in pairs] == pool


class TestDrawWeighted:

    def test_monte_carlo_matches_analytic_shares(self, pool):
        rng = random.Random(20240611)
        counts = {"Easy": 0, "New": 0, "Hard": 0}
        iterations = 20000

        for _ in range(iterations):
            counts[weighted_random_item(pool, offset=3, rng=rng).identity] += 1

        assert abs(counts["Easy"] / iterations - 1 / 12) < 0.01
        assert abs(counts["New"] / iterations - 3 / 12) < 0.01
        assert abs(counts["Hard"] / iterations - 8 / 12) < 0.01

    def test_single_item_pool_always_returns_it(self):
        only = StudyItem("only", success_count=50, fail_count=0)
        for u in (0.0, 0.3, 0.999999):
            assert weighted_random_item([only], offset=3, rng=_fixed(u)) is only

    def test_empty_pool_raises(self):
        with pytest.raises(EmptyPoolError):
            draw_weighted([])
        with pytest.raises(EmptyPoolError):
            weighted_random_item(iter([]))
        with pytest.raises(ValueError):
            selection_probabilities([])

    def test_zero_draw_selects_first_item(self, pool):
        item, weight = draw_weighted(pool, offset=3, rng=_fixed(0.0))
        assert item.identity == "Easy"
        assert weight == 1

    def test_draw_just_below_total_selects_last_item(self, pool):
        assert weighted_random_item(pool, offset=3, rng=_fixed(0.9999)).identity == "Hard"

    def test_draw_lands_in_cumulative_bucket(self, pool):
        # buckets: Easy [0, 1), New [1, 4), Hard [4, 12)
        assert weighted_random_item(pool, offset=3, rng=_fixed(0.5 / 12)).identity == "Easy"
        assert weighted_random_item(pool, offset=3, rng=_fixed(2.0 / 12)).identity == "New"
        assert weighted_random_item(pool, offset=3, rng=_fixed(10.0 / 12)).identity == "Hard"

    def test_draw_at_total_falls_back_to_last_item(self, pool):
        item, weight = draw_weighted(pool, offset=3, rng=_fixed(1.0))
        assert item.identity == "Hard"
        assert weight == 8

    def test_seeded_generator_is_reproducible(self, pool):
        def picks(seed):
            rng = random.Random(seed)
            return [weighted_random_item(pool, rng=rng).identity for _ in range(50)]

        assert picks(7) == picks(7)

    def test_returns_input_object_and_its_weight(self, pool):
        item, weight = draw_weighted(pool, offset=3, rng=random.Random(3))
        assert any(item is p for p in pool)
        assert weight == calculate_weight(item, 3)

    def test_draw_does_not_mutate_mapping_items(self):
        items = [
            {"identity": "a", "success_count": 2, "fail_count": 5, "word": "Hund"},
            {"identity": "b", "word": "Katze"},
        ]
        before = copy.deepcopy(items)
        for seed in range(20):
            weighted_random_item(items, offset=3, rng=random.Random(seed))
        assert items == before

    def test_opaque_payload_is_passed_through(self):
        item = StudyItem("x", payload={"word": "Haus", "level": "A1"})
        picked = weighted_random_item([item], rng=_fixed(0.5))
        assert picked.payload == {"word": "Haus", "level": "A1"}


class TestSelectionProbabilities:

    def test_shares_match_weights(self, pool):
        probs = selection_probabilities(pool, offset=3)
        assert probs == pytest.approx([1 / 12, 3 / 12, 8 / 12])
        assert sum(probs) == pytest.approx(1.0)

    def test_higher_offset_flattens_distribution(self, pool):
        sharp = selection_probabilities(pool, offset=1)
        flat = selection_probabilities(pool, offset=10)
        assert max(flat) - min(flat) < max(sharp) - min(sharp)
