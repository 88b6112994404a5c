import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from exceptions import ConfigurationError, InputSourceError
from log_config import setup_logging
from payments_engine import PaymentsEngine
from settings import LOG_FORMATS, ChargebackPolicy, LedgerSettings, parse_chargeback_policy
from snapshot_writer import write_snapshot

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-ledger",
        description="Apply a CSV stream of client transactions and print final account balances as CSV.",
    )
    parser.add_argument("input", help="Path to the input transactions CSV")
    parser.add_argument("--shards", type=int, help="Number of client shards processed in parallel (default: 1)")
    parser.add_argument(
        "--chargeback-policy",
        choices=[policy.value for policy in ChargebackPolicy],
        help="Whether a chargeback re-checks held funds (default: trust)",
    )
    parser.add_argument("--precision", type=int, help="Fractional digits for amounts (default: 4)")
    parser.add_argument("--log-level", help="Diagnostic log level (default: WARNING)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Diagnostic log format (default: standard)")
    return parser


def load_settings(args: argparse.Namespace) -> LedgerSettings:
    """Environment settings, overridden by any flags given on the command line."""
    settings = LedgerSettings.from_env()

    overrides = {}
    if args.shards is not None:
        overrides["shards"] = args.shards
    if args.chargeback_policy is not None:
        overrides["chargeback_policy"] = parse_chargeback_policy(args.chargeback_policy)
    if args.precision is not None:
        overrides["precision"] = args.precision
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.log_format is not None:
        overrides["log_format"] = args.log_format

    return replace(settings, **overrides) if overrides else settings


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level, settings.log_format)

    engine = PaymentsEngine(settings)
    try:
        engine.process_file(args.input)
    except InputSourceError as e:
        logger.error(str(e))
        return EXIT_INPUT_ERROR

    write_snapshot(engine.snapshot(), sys.stdout, settings.precision)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
