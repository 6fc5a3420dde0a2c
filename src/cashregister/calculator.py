"""
calculator.py — Change calculation orchestration

Validation first, then change derivation, then strategy dispatch. The
calculator never mutates the currency or the special rule it was given.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Tuple
import logging

from .core import (
    ChangeResult,
    Currency,
    RoundingMode,
    SpecialRuleConfig,
    Transaction,
    to_minor_units,
    validate_amounts,
)
from .strategies import StrategySelector

logger = logging.getLogger(__name__)

AmountPair = Tuple[object, object]


class ChangeCalculator:
    """
    Computes the change owed for single and batch requests.

    USAGE:
        calculator = ChangeCalculator(US_CURRENCY, SpecialRuleConfig(3, "..."))
        calculator.calculate_change(212, 300).formatted_output
        # '3 quarters,1 dime,3 pennies'

    ERRORS:
        InvalidAmountError: negative amount
        InsufficientPaymentError: amount paid < amount owed
    Both are raised before any strategy runs.
    """

    def __init__(
        self,
        currency: Currency,
        special_rule: Optional[SpecialRuleConfig] = None,
        selector: Optional[StrategySelector] = None,
        rounding: RoundingMode = RoundingMode.HALF_UP,
    ):
        self._currency = currency
        self._special_rule = special_rule
        self._selector = selector if selector is not None else StrategySelector()
        self._rounding = rounding
        if not currency.has_unit_denomination:
            logger.warning(
                "Currency %s has no unit denomination: some change amounts will leave a remainder",
                currency.code,
            )

    @property
    def currency(self) -> Currency:
        return self._currency

    @property
    def special_rule(self) -> Optional[SpecialRuleConfig]:
        return self._special_rule

    @property
    def selector(self) -> StrategySelector:
        return self._selector

    def calculate_change(self, amount_owed: int, amount_paid: int) -> ChangeResult:
        """
        Change for amounts expressed in minor units.

        Exact payment short-circuits to an empty result without touching the
        selector or any strategy.
        """
        validate_amounts(amount_owed, amount_paid)
        if amount_paid == amount_owed:
            return ChangeResult.empty()

        transaction = Transaction(amount_owed, amount_paid)
        strategy = self._selector.get_strategy(transaction, self._special_rule)
        logger.debug(
            "Change %d %s via %s",
            transaction.change_in_minor_units, self._currency.code, type(strategy).__name__,
        )
        return strategy.calculate_change(transaction, self._currency)

    def calculate_major(self, amount_owed: object, amount_paid: object) -> ChangeResult:
        """Change for decimal major-unit amounts (e.g. 2.12, 3.00)."""
        return self.calculate_change(
            to_minor_units(amount_owed, self._currency, self._rounding),
            to_minor_units(amount_paid, self._currency, self._rounding),
        )

    def calculate_batch(self, transactions: Iterable[AmountPair]) -> List[ChangeResult]:
        """
        Results for (owed, paid) pairs in major units, in input order.

        One invalid pair aborts the whole batch: the error propagates and no
        partial list is returned.
        """
        return [self.calculate_major(owed, paid) for owed, paid in transactions]

    def process_transactions(self, transactions: Iterable[AmountPair]) -> List[str]:
        """Formatted output line per (owed, paid) pair."""
        return [result.formatted_output for result in self.calculate_batch(transactions)]

    def __repr__(self) -> str:
        return (
            f"ChangeCalculator(currency={self._currency.code}, "
            f"special_rule={self._special_rule!r}, rounding={self._rounding.name})"
        )
