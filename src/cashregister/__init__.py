"""
cashregister — Change Calculation Engine

Computes the denomination breakdown of the change owed for a transaction,
in integer minor units, with pluggable strategies: a deterministic
minimal-count fill and a randomized (but always exact) alternative that kicks
in when the change is divisible by a configured divisor.

================================================================================
QUICK START
================================================================================

Basic usage:

    from cashregister import ChangeCalculator, SpecialRuleConfig, US_CURRENCY

    calculator = ChangeCalculator(US_CURRENCY)
    result = calculator.calculate_change(212, 300)   # cents
    result.formatted_output                          # '3 quarters,1 dime,3 pennies'

Special rule (random denominations when change % 3 == 0):

    rule = SpecialRuleConfig(divisor=3, description="Divisible by 3")
    calculator = ChangeCalculator(US_CURRENCY, rule)
    calculator.calculate_change(100, 268)            # 168 cents, random mix

Reproducible randomness:

    from cashregister import (
        MinimalCountStrategy, RandomizedValidStrategy, StrategySelector,
    )

    selector = StrategySelector([RandomizedValidStrategy(seed=42), MinimalCountStrategy()])
    calculator = ChangeCalculator(US_CURRENCY, rule, selector)

Batch (decimal major units, one output line per pair):

    calculator.process_transactions([(2.12, 3.00), (1.97, 2.00)])
    # ['3 quarters,1 dime,3 pennies', '3 pennies']

Command line and HTTP:

    cash-register input.csv output.txt --divisor 3 --seed 42
    cash-register-api        # FastAPI app on $CASH_REGISTER_HOST:$PORT

================================================================================
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Core domain
from .core import (
    CashRegisterError,
    ChangeResult,
    Currency,
    Denomination,
    InsufficientPaymentError,
    InvalidAmountError,
    InvalidCurrencyError,
    RoundingMode,
    SpecialRuleConfig,
    Transaction,
    UnsupportedCurrencyError,
    format_denominations,
    to_minor_units,
)

# Currency tables
from .currencies import (
    CURRENCY_REGISTRY,
    EUR_CURRENCY,
    US_CURRENCY,
    available_currency_codes,
    get_currency_by_code,
)

# Strategies
from .strategies import (
    BoundedCache,
    ChangeStrategy,
    MinimalCountStrategy,
    RandomizedValidStrategy,
    StrategySelector,
)

from .calculator import ChangeCalculator

__all__ = [
    # Core
    "CashRegisterError",
    "ChangeResult",
    "Currency",
    "Denomination",
    "InsufficientPaymentError",
    "InvalidAmountError",
    "InvalidCurrencyError",
    "RoundingMode",
    "SpecialRuleConfig",
    "Transaction",
    "UnsupportedCurrencyError",
    "format_denominations",
    "to_minor_units",
    # Currencies
    "CURRENCY_REGISTRY",
    "EUR_CURRENCY",
    "US_CURRENCY",
    "available_currency_codes",
    "get_currency_by_code",
    # Strategies
    "BoundedCache",
    "ChangeStrategy",
    "MinimalCountStrategy",
    "RandomizedValidStrategy",
    "StrategySelector",
    # Orchestration
    "ChangeCalculator",
]
