"""
config.py — Runtime settings and logging setup

Settings come from environment variables and are read once into a frozen
dataclass. Entry points (CLI, API server) call configure_logging().
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional
import logging
import os

from .core import Currency, SpecialRuleConfig
from .currencies import get_currency_by_code

DEFAULT_CURRENCY = "USD"
DEFAULT_DIVISOR = 3
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_DISABLED = {"", "0", "off", "none", "false", "no"}


def default_rule_description(divisor: int) -> str:
    return f"Use random denominations when change is divisible by {divisor}"


def _env_int(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be a whole number, got {raw!r}") from None


def _env_divisor(environ: Mapping[str, str]) -> Optional[int]:
    raw = environ.get("CASH_REGISTER_DIVISOR")
    if raw is None:
        return DEFAULT_DIVISOR
    if raw.strip().lower() in _DISABLED:
        return None
    divisor = _env_int(environ, "CASH_REGISTER_DIVISOR", DEFAULT_DIVISOR)
    if divisor is not None and divisor <= 0:
        raise ValueError(f"CASH_REGISTER_DIVISOR must be positive, got {divisor}")
    return divisor


@dataclass(frozen=True)
class Settings:
    currency_code: str = DEFAULT_CURRENCY
    divisor: Optional[int] = DEFAULT_DIVISOR
    rule_description: Optional[str] = None
    seed: Optional[int] = None
    log_level: str = "INFO"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def currency(self) -> Currency:
        return get_currency_by_code(self.currency_code)

    def special_rule(self) -> Optional[SpecialRuleConfig]:
        """None when the special rule is disabled."""
        if self.divisor is None:
            return None
        description = self.rule_description or default_rule_description(self.divisor)
        return SpecialRuleConfig(divisor=self.divisor, description=description)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings from the environment.

    Raises:
        ValueError: malformed value, the message names the variable
    """
    env = os.environ if environ is None else environ
    log_level = env.get("CASH_REGISTER_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"CASH_REGISTER_LOG_LEVEL is not a logging level: {log_level!r}")

    return Settings(
        currency_code=env.get("CASH_REGISTER_CURRENCY", DEFAULT_CURRENCY).strip().upper()
        or DEFAULT_CURRENCY,
        divisor=_env_divisor(env),
        rule_description=env.get("CASH_REGISTER_RULE_DESCRIPTION") or None,
        seed=_env_int(env, "CASH_REGISTER_SEED", None),
        log_level=log_level,
        host=env.get("CASH_REGISTER_HOST", DEFAULT_HOST),
        port=_env_int(env, "PORT", DEFAULT_PORT),
    )


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure root logging if no handlers are present."""
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
