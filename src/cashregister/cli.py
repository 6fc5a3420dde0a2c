"""CLI for batch change calculation: one input file of pairs, one output file of lines."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .batch import file_exists, read_transactions, write_results
from .calculator import ChangeCalculator
from .config import Settings, configure_logging, default_rule_description, load_settings
from .core import CashRegisterError, SpecialRuleConfig
from .currencies import available_currency_codes, get_currency_by_code
from .strategies import MinimalCountStrategy, RandomizedValidStrategy, StrategySelector

logger = logging.getLogger(__name__)


class InvalidArgumentsError(CashRegisterError):
    def __init__(self, message: str):
        super().__init__(message, "INVALID_ARGUMENTS")


def run(input_path: str, output_path: str, calculator: ChangeCalculator) -> int:
    """
    Read pairs from input_path, write one change line per pair to output_path.

    Returns the number of transactions processed.

    Raises:
        InvalidArgumentsError: input and output name the same file
        CashRegisterError: missing input (FILE_NOT_FOUND), unreadable or
            malformed file, invalid amounts. Nothing is written on failure.
    """
    if Path(input_path).resolve() == Path(output_path).resolve():
        raise InvalidArgumentsError("Input and output files must be different")

    logger.info("Reading transactions from: %s", input_path)
    if not file_exists(input_path):
        raise CashRegisterError(f"Input file does not exist: {input_path}", "FILE_NOT_FOUND")

    transactions = read_transactions(input_path)
    logger.info("Found %d transactions to process", len(transactions))

    results = calculator.process_transactions(transactions)
    write_results(output_path, results)
    logger.info("Results written to: %s", output_path)
    return len(results)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cash-register",
        description="Compute change denominations for each 'owed,paid' line of a file",
    )
    parser.add_argument("input_file", help="file with one 'owed,paid' pair per line")
    parser.add_argument("output_file", help="file receiving one change line per pair")
    parser.add_argument(
        "--currency",
        default=settings.currency_code,
        choices=available_currency_codes(),
        type=str.upper,
    )
    rule = parser.add_mutually_exclusive_group()
    rule.add_argument(
        "--divisor",
        type=int,
        default=None,
        help=(
            "use random denominations when the change is divisible by this "
            f"(default: {settings.divisor})"
        ),
    )
    rule.add_argument(
        "--no-special-rule",
        action="store_true",
        help="always use the minimal number of denominations",
    )
    parser.add_argument("--seed", type=int, default=settings.seed, help="seed for reproducible output")
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def resolve_divisor(args: argparse.Namespace, settings: Settings) -> Optional[int]:
    """Divisor from the flags, falling back to settings. None disables the rule."""
    if args.no_special_rule:
        return None
    if args.divisor is not None:
        return args.divisor
    return settings.divisor


def build_calculator(
    currency_code: str,
    divisor: Optional[int],
    seed: Optional[int] = None,
) -> ChangeCalculator:
    special_rule = None
    if divisor is not None:
        special_rule = SpecialRuleConfig(divisor=divisor, description=default_rule_description(divisor))
    selector = StrategySelector([RandomizedValidStrategy(seed), MinimalCountStrategy()])
    return ChangeCalculator(get_currency_by_code(currency_code), special_rule, selector)


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = load_settings()
    except ValueError as exc:
        configure_logging()
        logger.error("Invalid configuration: %s", exc)
        return 1

    args = build_parser(settings).parse_args(argv)

    try:
        configure_logging(args.log_level.upper())
        divisor = resolve_divisor(args, settings)
        calculator = build_calculator(args.currency, divisor, args.seed)
        run(args.input_file, args.output_file, calculator)
    except CashRegisterError as exc:
        logger.error("Cash Register Error [%s]: %s", exc.code, exc.message)
        return 1
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    logger.info("Cash register processing completed successfully")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
