"""
test_strategies.py — Tests for change strategies, cache and selector

Tests cover:
- MinimalCountStrategy greedy output and determinism
- RandomizedValidStrategy validity, seeding, caching and fallback
- BoundedCache insertion-order eviction
- StrategySelector routing and priority
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
import random
from hypothesis import given, settings
from hypothesis import strategies as st

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cashregister import (
    BoundedCache,
    ChangeResult,
    ChangeStrategy,
    Currency,
    Denomination,
    EUR_CURRENCY,
    MinimalCountStrategy,
    RandomizedValidStrategy,
    SpecialRuleConfig,
    StrategySelector,
    Transaction,
    US_CURRENCY,
)
from cashregister.core import count_value


# ==============================================================================
# FIXTURES
# ==============================================================================

RULE = SpecialRuleConfig(divisor=3, description="Use random denominations when change is divisible by 3")

TOKEN_ONLY = Currency("TST", "Token", "T", [Denomination("token", 5)])


def change_of(cents: int) -> Transaction:
    return Transaction(0, cents)


@pytest.fixture
def minimal():
    return MinimalCountStrategy()


@pytest.fixture
def randomized():
    return RandomizedValidStrategy(seed=42)


def assert_valid(result: ChangeResult, currency: Currency, expected_total: int):
    assert result.total_change_in_minor_units == expected_total
    assert result.remainder_in_minor_units == 0
    assert count_value(result.denominations, currency.denominations) == expected_total
    assert all(count > 0 for count in result.denominations.values())


# ==============================================================================
# MinimalCountStrategy
# ==============================================================================

class TestMinimalCountStrategy:
    """Tests for the greedy strategy."""

    def test_applies_without_rule(self, minimal):
        assert minimal.should_apply(change_of(168)) is True

    def test_applies_when_not_divisible(self, minimal):
        assert minimal.should_apply(change_of(100), RULE) is True

    def test_does_not_apply_when_divisible(self, minimal):
        assert minimal.should_apply(change_of(168), RULE) is False

    @pytest.mark.parametrize("cents, expected", [
        (88, "3 quarters,1 dime,3 pennies"),
        (3, "3 pennies"),
        (167, "1 dollar,2 quarters,1 dime,1 nickel,2 pennies"),
        (100, "1 dollar"),
        (1, "1 penny"),
        (41, "1 quarter,1 dime,1 nickel,1 penny"),
    ])
    def test_us_outputs(self, minimal, cents, expected):
        result = minimal.calculate_change(change_of(cents), US_CURRENCY)
        assert result.formatted_output == expected
        assert_valid(result, US_CURRENCY, cents)

    def test_mapping_follows_descending_value(self, minimal):
        result = minimal.calculate_change(change_of(88), US_CURRENCY)
        assert list(result.denominations.items()) == [("quarter", 3), ("dime", 1), ("penny", 3)]

    def test_euro(self, minimal):
        result = minimal.calculate_change(change_of(188), EUR_CURRENCY)
        assert result.formatted_output == "1 euro,1 50-cent,1 20-cent,1 10-cent,1 5-cent,1 2-cent,1 1-cent"

    def test_zero_change(self, minimal):
        result = minimal.calculate_change(change_of(0), US_CURRENCY)
        assert result == ChangeResult.empty()

    def test_deterministic(self, minimal):
        first = minimal.calculate_change(change_of(987), US_CURRENCY)
        second = minimal.calculate_change(change_of(987), US_CURRENCY)
        assert first == second
        assert first.formatted_output == second.formatted_output

    def test_missing_unit_denomination_reports_remainder(self, minimal):
        result = minimal.calculate_change(change_of(7), TOKEN_ONLY)
        assert result.denominations == {"token": 1}
        assert result.formatted_output == "1 token"
        assert result.total_change_in_minor_units == 7
        assert result.remainder_in_minor_units == 2

    @given(cents=st.integers(min_value=0, max_value=1_000_000))
    @settings(max_examples=500)
    def test_value_equals_change(self, cents: int):
        """
        PROPERTY: sum(count * value) == change for every amount.
        """
        result = MinimalCountStrategy().calculate_change(change_of(cents), US_CURRENCY)
        assert_valid(result, US_CURRENCY, cents)

    @given(cents=st.integers(min_value=0, max_value=100_000))
    @settings(max_examples=200)
    def test_lower_coins_stay_below_next_value(self, cents: int):
        """
        PROPERTY: greedy never uses 5+ pennies, 2+ nickels or 4+ quarters.
        """
        counts = MinimalCountStrategy().calculate_change(change_of(cents), US_CURRENCY).denominations
        assert counts.get("penny", 0) < 5
        assert counts.get("nickel", 0) < 2
        assert counts.get("quarter", 0) < 4


# ==============================================================================
# RandomizedValidStrategy
# ==============================================================================

class TestRandomizedValidStrategy:
    """Tests for the randomized strategy."""

    def test_does_not_apply_without_rule(self, randomized):
        assert randomized.should_apply(change_of(168)) is False

    def test_applies_when_divisible(self, randomized):
        assert randomized.should_apply(change_of(168), RULE) is True

    def test_does_not_apply_when_not_divisible(self, randomized):
        assert randomized.should_apply(change_of(167), RULE) is False

    def test_result_is_valid(self, randomized):
        result = randomized.calculate_change(Transaction(100, 268), US_CURRENCY)
        assert_valid(result, US_CURRENCY, 168)
        assert result.formatted_output

    def test_three_cents_is_always_three_pennies(self, randomized):
        result = randomized.calculate_change(change_of(3), US_CURRENCY)
        assert result.formatted_output == "3 pennies"

    def test_same_seed_same_sequence(self):
        first = RandomizedValidStrategy(seed=7)
        second = RandomizedValidStrategy(seed=7)
        amounts = [99, 168, 150, 999, 12, 3003]

        for cents in amounts:
            a = first.calculate_change(change_of(cents), US_CURRENCY)
            b = second.calculate_change(change_of(cents), US_CURRENCY)
            assert a == b

    def test_injected_rng_is_used(self):
        rng = random.Random(5)
        strategy = RandomizedValidStrategy(rng=rng)
        twin = RandomizedValidStrategy(rng=random.Random(5))
        assert (
            strategy.calculate_change(change_of(99), US_CURRENCY)
            == twin.calculate_change(change_of(99), US_CURRENCY)
        )

    def test_global_random_untouched(self):
        random.seed(1234)
        expected = random.random()

        random.seed(1234)
        RandomizedValidStrategy(seed=1).calculate_change(change_of(999), US_CURRENCY)
        assert random.random() == expected

    def test_distribution_can_differ_from_minimal(self):
        minimal = MinimalCountStrategy().calculate_change(change_of(99), US_CURRENCY)
        outputs = set()
        for seed in range(30):
            result = RandomizedValidStrategy(seed=seed).calculate_change(change_of(99), US_CURRENCY)
            assert_valid(result, US_CURRENCY, 99)
            outputs.add(result.formatted_output)
        assert outputs - {minimal.formatted_output}

    @given(
        multiple=st.integers(min_value=1, max_value=3_000),
        seed=st.integers(min_value=0, max_value=2**32),
    )
    @settings(max_examples=200, deadline=None)
    def test_always_valid(self, multiple: int, seed: int):
        """
        PROPERTY: whatever the seed, the breakdown adds up to the change.
        """
        cents = multiple * 3
        result = RandomizedValidStrategy(seed=seed).calculate_change(change_of(cents), US_CURRENCY)
        assert_valid(result, US_CURRENCY, cents)


class TestRandomizedCache:
    """Tests for caching inside the randomized strategy."""

    def test_second_call_hits_cache(self, randomized):
        first = randomized.calculate_change(change_of(168), US_CURRENCY)
        second = randomized.calculate_change(change_of(168), US_CURRENCY)
        assert first == second
        assert randomized.cache_stats() == {"size": 1, "max_size": 1000}

    def test_cache_key_includes_currency(self, randomized):
        randomized.calculate_change(change_of(300), US_CURRENCY)
        randomized.calculate_change(change_of(300), EUR_CURRENCY)
        assert randomized.cache_stats()["size"] == 2

    def test_cached_snapshot_is_copied(self, randomized):
        first = randomized.calculate_change(change_of(168), US_CURRENCY)
        first.denominations.clear()

        second = randomized.calculate_change(change_of(168), US_CURRENCY)
        assert second.denominations
        assert_valid(second, US_CURRENCY, 168)

    def test_clear_cache(self, randomized):
        randomized.calculate_change(change_of(168), US_CURRENCY)
        randomized.clear_cache()
        assert randomized.cache_stats()["size"] == 0

    def test_cache_is_bounded(self):
        strategy = RandomizedValidStrategy(seed=3, cache_size=2)
        for cents in (3, 6, 9, 12):
            strategy.calculate_change(change_of(cents), US_CURRENCY)
        assert strategy.cache_stats() == {"size": 2, "max_size": 2}

    def test_no_budget_falls_back_to_minimal(self):
        strategy = RandomizedValidStrategy(seed=1, max_attempts=0)
        result = strategy.calculate_change(change_of(168), US_CURRENCY)
        expected = MinimalCountStrategy().calculate_change(change_of(168), US_CURRENCY)
        assert result == expected

    def test_fallback_is_not_cached(self):
        strategy = RandomizedValidStrategy(seed=1, max_attempts=0)
        strategy.calculate_change(change_of(168), US_CURRENCY)
        strategy.calculate_change(change_of(168), US_CURRENCY)
        assert strategy.cache_stats()["size"] == 0

    def test_unreachable_amount_falls_back_with_remainder(self):
        strategy = RandomizedValidStrategy(seed=1)
        result = strategy.calculate_change(change_of(3), TOKEN_ONLY)
        assert result.denominations == {}
        assert result.remainder_in_minor_units == 3
        assert strategy.cache_stats()["size"] == 0

    def test_custom_fallback(self):
        class Fixed:
            def should_apply(self, transaction, config=None):
                return True

            def calculate_change(self, transaction, currency):
                return ChangeResult.build(transaction.change_in_minor_units, {"penny": transaction.change_in_minor_units})

        strategy = RandomizedValidStrategy(seed=1, max_attempts=0, fallback=Fixed())
        assert strategy.calculate_change(change_of(6), US_CURRENCY).formatted_output == "6 pennies"

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            RandomizedValidStrategy(max_attempts=-1)

    def test_concurrent_callers_share_one_instance(self):
        strategy = RandomizedValidStrategy(seed=11, cache_size=50)
        amounts = [3 * n for n in range(1, 201)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(
                lambda cents: strategy.calculate_change(change_of(cents), US_CURRENCY),
                amounts,
            ))

        for cents, result in zip(amounts, results):
            assert_valid(result, US_CURRENCY, cents)
        assert strategy.cache_stats()["size"] == 50


# ==============================================================================
# BoundedCache
# ==============================================================================

class TestBoundedCache:
    """Tests for insertion-order eviction."""

    def test_evicts_oldest_inserted(self):
        cache = BoundedCache(2)
        cache.put((1, "USD"), {"penny": 1})
        cache.put((2, "USD"), {"penny": 2})
        cache.put((3, "USD"), {"penny": 3})

        assert (1, "USD") not in cache
        assert cache.keys() == [(2, "USD"), (3, "USD")]

    def test_reads_do_not_reorder(self):
        """A read of the oldest key does not save it (not LRU)."""
        cache = BoundedCache(2)
        cache.put((1, "USD"), {"penny": 1})
        cache.put((2, "USD"), {"penny": 2})
        assert cache.get((1, "USD")) == {"penny": 1}

        cache.put((3, "USD"), {"penny": 3})
        assert (1, "USD") not in cache
        assert (2, "USD") in cache

    def test_replacing_existing_key_keeps_position(self):
        cache = BoundedCache(2)
        cache.put((1, "USD"), {"penny": 1})
        cache.put((2, "USD"), {"penny": 2})
        cache.put((1, "USD"), {"nickel": 1})

        assert len(cache) == 2
        assert cache.keys() == [(1, "USD"), (2, "USD")]
        assert cache.get((1, "USD")) == {"nickel": 1}

    def test_values_are_copied(self):
        cache = BoundedCache(2)
        value = {"penny": 1}
        cache.put((1, "USD"), value)
        value["penny"] = 99
        cache.get((1, "USD"))["penny"] = 42

        assert cache.get((1, "USD")) == {"penny": 1}

    def test_miss_returns_none(self):
        assert BoundedCache().get((5, "USD")) is None

    def test_clear(self):
        cache = BoundedCache(3)
        cache.put((1, "USD"), {"penny": 1})
        cache.clear()
        assert len(cache) == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            BoundedCache(0)


# ==============================================================================
# StrategySelector
# ==============================================================================

class TestStrategySelector:
    """Tests for strategy routing."""

    def test_default_order(self):
        selector = StrategySelector()
        kinds = [type(s) for s in selector.strategies]
        assert kinds == [RandomizedValidStrategy, MinimalCountStrategy]

    def test_routes_divisible_to_randomized(self):
        selector = StrategySelector()
        assert isinstance(selector.get_strategy(change_of(168), RULE), RandomizedValidStrategy)

    def test_routes_other_to_minimal(self):
        selector = StrategySelector()
        assert isinstance(selector.get_strategy(change_of(167), RULE), MinimalCountStrategy)
        assert isinstance(selector.get_strategy(change_of(168)), MinimalCountStrategy)

    def test_fallback_when_nothing_applies(self):
        class Never:
            def should_apply(self, transaction, config=None):
                return False

            def calculate_change(self, transaction, currency):
                raise AssertionError("never selected")

        selector = StrategySelector([Never()])
        assert isinstance(selector.get_strategy(change_of(5)), MinimalCountStrategy)

    def test_added_strategy_has_priority(self):
        class Always:
            def should_apply(self, transaction, config=None):
                return True

            def calculate_change(self, transaction, currency):
                return ChangeResult.empty()

        custom = Always()
        selector = StrategySelector().add_strategy(custom)
        assert selector.strategies[0] is custom
        assert selector.get_strategy(change_of(168), RULE) is custom

    def test_add_strategy_rejects_non_strategy(self):
        with pytest.raises(TypeError):
            StrategySelector().add_strategy(object())


    def test_protocol(self):
        assert isinstance(MinimalCountStrategy(), ChangeStrategy)
        assert isinstance(RandomizedValidStrategy(seed=1), ChangeStrategy)

    @given(
        cents=st.integers(min_value=1, max_value=100_000),
        divisor=st.integers(min_value=1, max_value=50),
        with_rule=st.booleans(),
    )
    @settings(max_examples=500)
    def test_routing_property(self, cents: int, divisor: int, with_rule: bool):
        """
        PROPERTY: randomized iff a rule is present and change % divisor == 0.
        """
        selector = StrategySelector()
        config = SpecialRuleConfig(divisor, "test") if with_rule else None
        picked = selector.get_strategy(change_of(cents), config)

        expect_random = with_rule and cents % divisor == 0
        assert isinstance(picked, RandomizedValidStrategy) == expect_random


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
