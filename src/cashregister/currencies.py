"""
currencies.py — Denomination tables and registry

Tables are pure data, listed highest value first for readability. Nothing
relies on that order: strategies sort locally.
"""

from __future__ import annotations

from .core import Currency, Denomination, UnsupportedCurrencyError


US_CURRENCY = Currency(
    code="USD",
    name="US Dollar",
    symbol="$",
    denominations=(
        Denomination("dollar", 100, "$"),
        Denomination("quarter", 25, "¢"),
        Denomination("dime", 10, "¢"),
        Denomination("nickel", 5, "¢"),
        Denomination("penny", 1, "¢"),
    ),
)

EUR_CURRENCY = Currency(
    code="EUR",
    name="Euro",
    symbol="€",
    denominations=(
        Denomination("euro", 100, "€"),
        Denomination("50-cent", 50, "c"),
        Denomination("20-cent", 20, "c"),
        Denomination("10-cent", 10, "c"),
        Denomination("5-cent", 5, "c"),
        Denomination("2-cent", 2, "c"),
        Denomination("1-cent", 1, "c"),
    ),
)

CURRENCY_REGISTRY: dict[str, Currency] = {
    "USD": US_CURRENCY,
    "EUR": EUR_CURRENCY,
}


def get_currency_by_code(code: str) -> Currency:
    """
    Look up a currency by ISO code (case-insensitive).

    Raises:
        UnsupportedCurrencyError: if the code is not registered
    """
    currency = CURRENCY_REGISTRY.get(str(code).strip().upper())
    if currency is None:
        raise UnsupportedCurrencyError(code)
    return currency


def available_currency_codes() -> list[str]:
    return list(CURRENCY_REGISTRY)
