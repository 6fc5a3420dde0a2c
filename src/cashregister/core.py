"""
core.py — Domain primitives for change calculation

================================================================================
DESIGN PRINCIPLES
================================================================================

1. INTERNAL REPRESENTATION
   Integers in minor units (cents for USD/EUR). Never floating point inside
   the engine. Decimal major-unit input is converted exactly once, at the
   boundary, through to_minor_units().

2. IMMUTABILITY
   Frozen dataclasses. Currency tables are built once at configuration time
   and shared read-only by every calculation.

3. EXPLICIT ROUNDING
   No implicit rounding. The caller picks the RoundingMode; the default is
   HALF_UP (ties away from zero).

4. VERIFIABLE INVARIANTS
   Transaction: change >= 0, checked before construction.
   ChangeResult: sum(count * value) + remainder == total.

================================================================================
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import (
    Decimal,
    InvalidOperation,
    ROUND_DOWN,
    ROUND_HALF_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
)
from enum import Enum
from typing import Any, Mapping, Optional, Sequence


# ==============================================================================
# ERRORS
# ==============================================================================

class CashRegisterError(Exception):
    """
    Base class for every error raised by the cash register.

    All of them are caller input or configuration errors: none is retryable
    without changing the input.
    """

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code

    def details(self) -> dict[str, Any]:
        """Structured context for API error bodies. Empty by default."""
        return {}


class InvalidAmountError(CashRegisterError):
    def __init__(self, amount: object):
        super().__init__(
            f"Invalid amount: {amount}. Amount must be a non-negative number.",
            "INVALID_AMOUNT",
        )
        self.amount = amount


class InsufficientPaymentError(CashRegisterError):
    def __init__(self, amount_owed: int, amount_paid: int):
        super().__init__(
            f"Insufficient payment: owed {amount_owed} cents, paid {amount_paid} cents",
            "INSUFFICIENT_PAYMENT",
        )
        self.amount_owed = amount_owed
        self.amount_paid = amount_paid

    def details(self) -> dict[str, Any]:
        return {"amountOwed": self.amount_owed, "amountPaid": self.amount_paid}


class InvalidCurrencyError(CashRegisterError):
    """Malformed denomination table (empty, duplicate names, bad values)."""

    def __init__(self, message: str):
        super().__init__(message, "INVALID_CURRENCY")


class UnsupportedCurrencyError(CashRegisterError):
    def __init__(self, code: str):
        super().__init__(f"Unsupported currency code: {code}", "CURRENCY_NOT_FOUND")
        self.currency_code = code


# ==============================================================================
# CURRENCY DEFINITIONS
# ==============================================================================

@dataclass(frozen=True, slots=True)
class Denomination:
    """A single coin or bill. Value is expressed in minor units."""
    name: str
    value_in_minor_units: int
    symbol: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidCurrencyError("Denomination name must not be empty")
        value = self.value_in_minor_units
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidCurrencyError(
                f"Denomination '{self.name}' must have a positive integer value, got {value!r}"
            )


@dataclass(frozen=True)
class Currency:
    """
    A currency with its denomination table.

    INVARIANTS:
    1. At least one denomination
    2. Denomination names are unique
    3. decimals >= 0 (EUR/USD = 2, JPY = 0)

    The stored order is the source order and need not be sorted: strategies
    sort locally through sorted_denominations().

    A table without a unit (value 1) denomination is accepted. Greedy fills
    may then leave a remainder, which is reported, never rounded away.
    """
    code: str
    name: str
    symbol: str
    denominations: tuple[Denomination, ...]
    decimals: int = 2

    def __post_init__(self) -> None:
        # Accept any sequence at construction, store a tuple
        object.__setattr__(self, "denominations", tuple(self.denominations))
        if not self.denominations:
            raise InvalidCurrencyError(f"Currency {self.code} has no denominations")
        names = [d.name for d in self.denominations]
        if len(set(names)) != len(names):
            raise InvalidCurrencyError(f"Currency {self.code} has duplicate denomination names")
        if self.decimals < 0:
            raise InvalidCurrencyError(f"Currency {self.code} has negative decimals")

    @property
    def multiplier(self) -> int:
        """Conversion factor major -> minor unit."""
        return 10 ** self.decimals

    @property
    def has_unit_denomination(self) -> bool:
        return any(d.value_in_minor_units == 1 for d in self.denominations)

    def sorted_denominations(self) -> list[Denomination]:
        """Denominations by value, highest first."""
        return sorted(self.denominations, key=lambda d: d.value_in_minor_units, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "denominations": [
                {
                    "name": d.name,
                    "value_in_minor_units": d.value_in_minor_units,
                    "symbol": d.symbol,
                }
                for d in self.denominations
            ],
        }


# ==============================================================================
# ROUNDING STRATEGIES
# ==============================================================================

class RoundingMode(Enum):
    """
    Rounding applied when converting decimal major units to minor units.

    - HALF_UP: commercial rounding, ties away from zero (1.005 -> 101 cents)
    - HALF_EVEN: banker's rounding (1.005 -> 100 cents)
    - DOWN: towards zero (truncation)
    - UP: away from zero
    - HALF_DOWN: ties towards zero
    """
    HALF_UP = ROUND_HALF_UP
    HALF_EVEN = ROUND_HALF_EVEN
    DOWN = ROUND_DOWN
    UP = ROUND_UP
    HALF_DOWN = ROUND_HALF_DOWN


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmountError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        # str() so that 1.005 means the decimal 1.005, not its binary neighbour
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(value) from None
    else:
        raise InvalidAmountError(value)
    if not result.is_finite():
        raise InvalidAmountError(value)
    return result


def to_minor_units(
    value: object,
    currency: Currency | int = 2,
    rounding: RoundingMode = RoundingMode.HALF_UP,
) -> int:
    """
    Convert a decimal major-unit amount into integer minor units.

    Rounding happens HERE, once. From this point on everything is an int.

    Args:
        value: int, float, Decimal or numeric string in major units
        currency: a Currency, or the number of decimals directly
        rounding: tie-breaking rule (default: ties away from zero)

    Raises:
        InvalidAmountError: non-numeric or non-finite input
    """
    decimals = currency.decimals if isinstance(currency, Currency) else currency
    scaled = _to_decimal(value).scaleb(decimals)
    return int(scaled.quantize(Decimal(1), rounding=rounding.value))


# ==============================================================================
# TRANSACTION
# ==============================================================================

def _check_minor_units(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(
            f"Amounts must be int minor units, not {type(amount).__name__}. "
            f"Use to_minor_units() to convert."
        )
    return amount


def validate_amounts(amount_owed: int, amount_paid: int) -> None:
    """
    Raises:
        TypeError: if either amount is not an int
        InvalidAmountError: if either amount is negative (owed checked first)
        InsufficientPaymentError: if amount_paid < amount_owed
    """
    _check_minor_units(amount_owed)
    _check_minor_units(amount_paid)
    if amount_owed < 0:
        raise InvalidAmountError(amount_owed)
    if amount_paid < 0:
        raise InvalidAmountError(amount_paid)
    if amount_paid < amount_owed:
        raise InsufficientPaymentError(amount_owed, amount_paid)


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Amount owed and amount paid, in minor units.

    INVARIANT: change_in_minor_units >= 0, enforced on construction.
    Transaction.create() also checks types and negative amounts.

    Raises:
        InsufficientPaymentError: if amount paid < amount owed
    """
    amount_owed_in_minor_units: int
    amount_paid_in_minor_units: int
    change_in_minor_units: int = field(init=False)

    def __post_init__(self) -> None:
        change = self.amount_paid_in_minor_units - self.amount_owed_in_minor_units
        if change < 0:
            raise InsufficientPaymentError(
                self.amount_owed_in_minor_units, self.amount_paid_in_minor_units
            )
        object.__setattr__(self, "change_in_minor_units", change)

    @classmethod
    def create(cls, amount_owed: int, amount_paid: int) -> Transaction:
        validate_amounts(amount_owed, amount_paid)
        return cls(amount_owed, amount_paid)


# ==============================================================================
# SPECIAL RULE
# ==============================================================================

@dataclass(frozen=True, slots=True)
class SpecialRuleConfig:
    """Selects when the randomized strategy becomes eligible."""
    divisor: int
    description: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.divisor, bool) or not isinstance(self.divisor, int) or self.divisor <= 0:
            raise ValueError(f"divisor must be a positive integer, got {self.divisor!r}")

    def matches(self, change_in_minor_units: int) -> bool:
        return change_in_minor_units % self.divisor == 0

    def to_dict(self) -> dict[str, Any]:
        return {"divisor": self.divisor, "description": self.description}


# ==============================================================================
# RESULT
# ==============================================================================

def _pluralize(name: str) -> str:
    if name == "penny":
        return "pennies"
    return name + "s"


def format_denominations(denominations: Mapping[str, int]) -> str:
    """
    Render a denomination mapping as "3 quarters,1 dime,3 pennies".

    Insertion order is kept. Zero counts are skipped. A count of 1 keeps the
    singular name.
    """
    parts = []
    for name, count in denominations.items():
        if count > 0:
            label = name if count == 1 else _pluralize(name)
            parts.append(f"{count} {label}")
    return ",".join(parts)


@dataclass(frozen=True)
class ChangeResult:
    """
    Denomination breakdown of the change owed.

    INVARIANTS:
    1. denominations never holds zero counts
    2. sum(count * value) + remainder_in_minor_units == total_change_in_minor_units
    3. remainder_in_minor_units == 0 whenever the currency has a unit denomination
    """
    total_change_in_minor_units: int
    denominations: dict[str, int]
    formatted_output: str
    remainder_in_minor_units: int = 0

    @classmethod
    def build(
        cls,
        total: int,
        denominations: Mapping[str, int],
        remainder: int = 0,
    ) -> ChangeResult:
        """Build a result from a mapping, dropping zero counts and formatting it."""
        counts = {name: count for name, count in denominations.items() if count > 0}
        return cls(
            total_change_in_minor_units=total,
            denominations=counts,
            formatted_output=format_denominations(counts),
            remainder_in_minor_units=remainder,
        )

    @classmethod
    def empty(cls) -> ChangeResult:
        """Zero change: no denominations, empty text."""
        return cls(total_change_in_minor_units=0, denominations={}, formatted_output="")

    def is_zero(self) -> bool:
        return self.total_change_in_minor_units == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_change_in_minor_units": self.total_change_in_minor_units,
            "denominations": dict(self.denominations),
            "formatted_output": self.formatted_output,
            "remainder_in_minor_units": self.remainder_in_minor_units,
        }


def count_value(
    denominations: Mapping[str, int],
    table: Sequence[Denomination],
) -> Optional[int]:
    """
    Sum count * value for a candidate mapping.

    Returns None when the mapping names a denomination missing from the table.
    """
    values = {d.name: d.value_in_minor_units for d in table}
    total = 0
    for name, count in denominations.items():
        if name not in values:
            return None
        total += count * values[name]
    return total
