"""
strategies.py — Pluggable change calculation strategies

================================================================================
ARCHITECTURE
================================================================================

┌─────────────────────────────────────────────────────────────────────────────┐
│                          StrategySelector                                    │
│  - Ordered list, highest priority first                                      │
│  - First strategy whose should_apply() is true wins                          │
│  - MinimalCountStrategy as absolute fallback                                 │
└─────────────────────────────────────────────────────────────────────────────┘
                                    │
                    ┌───────────────┴───────────────┐
                    ▼                               ▼
      ┌──────────────────────────┐    ┌──────────────────────────┐
      │ RandomizedValidStrategy  │    │   MinimalCountStrategy   │
      │ change % divisor == 0    │    │ no rule, or not divisible│
      │ biased random search     │───▶│ largest-first greedy     │
      │ + BoundedCache           │    │ (fallback, not cached)   │
      └──────────────────────────┘    └──────────────────────────┘

Both default strategies are complementary: for any transaction and rule
configuration exactly one of them applies.

================================================================================
"""

from __future__ import annotations
from collections import OrderedDict
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable
import logging
import math
import random
import threading

from .core import (
    ChangeResult,
    Currency,
    Denomination,
    SpecialRuleConfig,
    Transaction,
    count_value,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# STRATEGY INTERFACE
# ==============================================================================

@runtime_checkable
class ChangeStrategy(Protocol):
    """
    Capability interface for change algorithms.

    Any object with these two methods is a strategy; no base class needed.
    """

    def calculate_change(self, transaction: Transaction, currency: Currency) -> ChangeResult:
        ...

    def should_apply(
        self,
        transaction: Transaction,
        config: Optional[SpecialRuleConfig] = None,
    ) -> bool:
        ...


# ==============================================================================
# MINIMAL COUNT (GREEDY)
# ==============================================================================

class MinimalCountStrategy:
    """
    Largest-first greedy fill.

    PROPERTIES:
    - Deterministic: same input -> identical ChangeResult
    - Stateless: one instance can be shared across threads
    - O(number of denominations)

    Converges whenever the currency has a unit denomination. Without one the
    leftover is reported in remainder_in_minor_units.
    """

    def should_apply(
        self,
        transaction: Transaction,
        config: Optional[SpecialRuleConfig] = None,
    ) -> bool:
        if config is None:
            return True
        return not config.matches(transaction.change_in_minor_units)

    def calculate_change(self, transaction: Transaction, currency: Currency) -> ChangeResult:
        change = transaction.change_in_minor_units
        counts: Dict[str, int] = {}
        remaining = change

        for denomination in currency.sorted_denominations():
            value = denomination.value_in_minor_units
            if remaining >= value:
                count = remaining // value
                counts[denomination.name] = count
                remaining -= count * value

        if remaining:
            logger.warning(
                "Currency %s has no unit denomination: %d minor units left unpaid out of %d",
                currency.code, remaining, change,
            )
        return ChangeResult.build(change, counts, remainder=remaining)

    def __repr__(self) -> str:
        return "MinimalCountStrategy()"


# ==============================================================================
# BOUNDED CACHE (INSERTION-ORDER EVICTION)
# ==============================================================================

CacheKey = Tuple[int, str]


class BoundedCache:
    """
    Fixed-capacity mapping with first-in-first-out eviction.

    Reads never reorder entries: the oldest *inserted* key is evicted, not
    the least recently used one. Values are copied in and out so callers can
    never mutate a cached snapshot.

    All operations hold the instance lock.
    """

    DEFAULT_CAPACITY: int = 1000

    def __init__(self, capacity: Optional[int] = None):
        capacity = self.DEFAULT_CAPACITY if capacity is None else capacity
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self._capacity = capacity
        self._entries: "OrderedDict[CacheKey, Dict[str, int]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: CacheKey) -> Optional[Dict[str, int]]:
        with self._lock:
            entry = self._entries.get(key)
            return dict(entry) if entry is not None else None

    def put(self, key: CacheKey, value: Mapping[str, int]) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache full, evicted %s", evicted)
            self._entries[key] = dict(value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[CacheKey]:
        """Keys in insertion order (oldest first)."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"BoundedCache(size={len(self)}, capacity={self._capacity})"


# ==============================================================================
# RANDOMIZED VALID
# ==============================================================================

Candidate = Dict[str, int]
Heuristic = Callable[[int, List[Denomination]], Candidate]


def make_rng(seed: Optional[int]) -> random.Random:
    """Seeded generator for replay, OS entropy otherwise."""
    if seed is None:
        return random.SystemRandom()
    return random.Random(seed)


class RandomizedValidStrategy:
    """
    Random but mathematically correct breakdown.

    Applies only when a special rule is configured and the change is evenly
    divisible by its divisor.

    ALGORITHM:
    1. Cache lookup on (change, currency code); a hit returns a copy.
    2. Up to max_attempts candidates, split evenly across three heuristics
       tried in a fixed order: larger-biased, uniform, smaller-biased.
    3. A candidate is accepted only if its value is exactly the change.
    4. First valid candidate is cached and returned.
    5. Nothing valid: delegate to the fallback (greedy) for this call only.
       The fallback result is NOT cached, so the next call searches again.

    RANDOMNESS:
    Owned by the instance (never the global random module). Two instances
    built with the same seed and fed the same calls return the same results.

    CONCURRENCY:
    One instance lock serializes lookup, search and insert, so concurrent
    callers sharing an instance see no lost updates or partial entries.
    """

    MAX_ATTEMPTS: int = 500
    MAX_CACHE_SIZE: int = BoundedCache.DEFAULT_CAPACITY

    def __init__(
        self,
        seed: Optional[int] = None,
        *,
        rng: Optional[random.Random] = None,
        max_attempts: Optional[int] = None,
        cache_size: Optional[int] = None,
        fallback: Optional[ChangeStrategy] = None,
    ):
        self._rng = rng if rng is not None else make_rng(seed)
        self._max_attempts = self.MAX_ATTEMPTS if max_attempts is None else max_attempts
        if self._max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self._max_attempts}")
        self._cache = BoundedCache(self.MAX_CACHE_SIZE if cache_size is None else cache_size)
        self._fallback = fallback if fallback is not None else MinimalCountStrategy()
        self._heuristics: List[Heuristic] = [
            self._bias_towards_larger,
            self._uniform,
            self._bias_towards_smaller,
        ]
        self._lock = threading.RLock()

    def should_apply(
        self,
        transaction: Transaction,
        config: Optional[SpecialRuleConfig] = None,
    ) -> bool:
        if config is None:
            return False
        return config.matches(transaction.change_in_minor_units)

    def calculate_change(self, transaction: Transaction, currency: Currency) -> ChangeResult:
        change = transaction.change_in_minor_units
        key: CacheKey = (change, currency.code)

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return ChangeResult.build(change, cached)

            candidate = self._search(change, currency)
            if candidate is None:
                logger.warning(
                    "No random combination for %d %s within %d attempts, using %r",
                    change, currency.code, self._max_attempts, self._fallback,
                )
                return self._fallback.calculate_change(transaction, currency)

            self._cache.put(key, candidate)
            return ChangeResult.build(change, candidate)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _search(self, change: int, currency: Currency) -> Optional[Candidate]:
        table = currency.sorted_denominations()
        per_heuristic = self._max_attempts // len(self._heuristics)

        for heuristic in self._heuristics:
            for _ in range(per_heuristic):
                candidate = heuristic(change, table)
                if count_value(candidate, currency.denominations) == change:
                    return candidate
        return None

    def _bias_towards_larger(self, change: int, table: List[Denomination]) -> Candidate:
        """Take 60-90% of what fits, largest denomination first."""
        counts: Candidate = {}
        remaining = change

        for denomination in table:
            if remaining <= 0:
                break
            value = denomination.value_in_minor_units
            max_count = remaining // value
            if max_count > 0:
                low = math.ceil(max_count * 0.6)
                high = math.ceil(max_count * 0.9)
                count = min(self._rng.randint(low, high), max_count)
                if count > 0:
                    counts[denomination.name] = count
                    remaining -= count * value

        return counts

    def _uniform(self, change: int, table: List[Denomination]) -> Candidate:
        """Anything between 0 and what fits, largest denomination first."""
        counts: Candidate = {}
        remaining = change

        for denomination in table:
            if remaining <= 0:
                break
            value = denomination.value_in_minor_units
            max_count = remaining // value
            if max_count > 0:
                count = self._rng.randint(0, max_count)
                if count > 0:
                    counts[denomination.name] = count
                    remaining -= count * value

        return counts

    def _bias_towards_smaller(self, change: int, table: List[Denomination]) -> Candidate:
        """Smallest denomination first, 70% chance of using at least half of what fits."""
        counts: Candidate = {}
        remaining = change

        for denomination in reversed(table):
            if remaining <= 0:
                break
            value = denomination.value_in_minor_units
            max_count = remaining // value
            if max_count > 0:
                if self._rng.random() < 0.7:
                    count = self._rng.randrange(max_count) + math.floor(max_count * 0.5)
                else:
                    count = self._rng.randint(0, max_count)
                count = min(count, max_count)
                if count > 0:
                    counts[denomination.name] = count
                    remaining -= count * value

        return counts

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> Dict[str, int]:
        return {"size": len(self._cache), "max_size": self._cache.capacity}

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def __repr__(self) -> str:
        return (
            f"RandomizedValidStrategy(max_attempts={self._max_attempts}, "
            f"cache={self._cache!r})"
        )


# ==============================================================================
# SELECTOR
# ==============================================================================

class StrategySelector:
    """
    Picks the strategy for a transaction.

    Default evaluation order: RandomizedValidStrategy, then
    MinimalCountStrategy. add_strategy() puts new strategies in front.
    """

    def __init__(self, strategies: Optional[List[ChangeStrategy]] = None):
        if strategies is None:
            strategies = [RandomizedValidStrategy(), MinimalCountStrategy()]
        self._strategies: List[ChangeStrategy] = list(strategies)
        self._fallback = MinimalCountStrategy()

    @property
    def strategies(self) -> Tuple[ChangeStrategy, ...]:
        return tuple(self._strategies)

    def add_strategy(self, strategy: ChangeStrategy) -> StrategySelector:
        """Register a strategy with the highest priority."""
        if not isinstance(strategy, ChangeStrategy):
            raise TypeError(
                f"{type(strategy).__name__} does not implement calculate_change/should_apply"
            )
        self._strategies.insert(0, strategy)
        return self

    def get_strategy(
        self,
        transaction: Transaction,
        config: Optional[SpecialRuleConfig] = None,
    ) -> ChangeStrategy:
        for strategy in self._strategies:
            if strategy.should_apply(transaction, config):
                return strategy
        return self._fallback

    def __repr__(self) -> str:
        return f"StrategySelector(strategies={self._strategies!r})"
