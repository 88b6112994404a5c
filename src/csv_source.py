import csv
import logging
import re
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Dict, Iterator, List, Optional, TextIO

from exceptions import InputSourceError, MalformedRecordError
from models import RunStats, Transaction, TransactionType
from settings import DEFAULT_PRECISION, quantum_for

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1
REQUIRED_COLUMNS = ("type", "client", "tx")

_UNSIGNED_INTEGER = re.compile(r"[0-9]+")


def read_transactions(
    stream: TextIO,
    precision: int = DEFAULT_PRECISION,
    stats: Optional[RunStats] = None,
) -> Iterator[Transaction]:
    """
    Lazily parse CSV lines into transactions, in input order.
    Malformed lines are reported and skipped; they never reach the ledger.
    """
    reader = csv.DictReader(stream, skipinitialspace=True)
    try:
        header = reader.fieldnames
    except UnicodeDecodeError as e:
        raise InputSourceError(f"input is not valid UTF-8: {e}") from e
    if header is None:
        return

    reader.fieldnames = _normalize_header(header)
    rows = iter(reader)
    while True:
        try:
            row = next(rows)
        except StopIteration:
            return
        except UnicodeDecodeError as e:
            raise InputSourceError(f"input is not valid UTF-8 near line {reader.line_num}: {e}") from e
        except csv.Error as e:
            _report_malformed(reader.line_num, str(e), stats)
            continue

        try:
            transaction = parse_row(row, precision)
        except MalformedRecordError as e:
            _report_malformed(reader.line_num, str(e), stats)
            continue

        yield transaction


def parse_row(row: Dict[Optional[str], Optional[str]], precision: int = DEFAULT_PRECISION) -> Transaction:
    """Parse one CSV row (header-normalized) into a Transaction."""
    if None in row:
        raise MalformedRecordError(f"unexpected extra fields {row[None]}")

    missing = [key for key, value in row.items() if value is None]
    if missing:
        raise MalformedRecordError(f"missing field(s): {', '.join(missing)}")

    values = {key: (value or "").strip() for key, value in row.items()}

    type_str = values.get("type", "").lower()
    try:
        transaction_type = TransactionType(type_str)
    except ValueError:
        raise MalformedRecordError(f"unknown transaction type {type_str!r}") from None

    client_id = _parse_unsigned(values.get("client", ""), "client", MAX_CLIENT_ID)
    transaction_id = _parse_unsigned(values.get("tx", ""), "tx", MAX_TRANSACTION_ID)

    amount = None
    amount_str = values.get("amount", "")
    if transaction_type.carries_amount and amount_str:
        amount = _parse_amount(amount_str, precision)

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _normalize_header(header: List[str]) -> List[str]:
    columns = [name.strip().lower() for name in header]
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise InputSourceError(f"header {header} is missing column(s): {', '.join(missing)}")
    return columns


def _parse_unsigned(text: str, field: str, maximum: int) -> int:
    if not _UNSIGNED_INTEGER.fullmatch(text):
        raise MalformedRecordError(f"{field} must be an unsigned integer, got {text!r}")
    value = int(text)
    if value > maximum:
        raise MalformedRecordError(f"{field} {value} is out of range (max {maximum})")
    return value


def _parse_amount(text: str, precision: int) -> Decimal:
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise MalformedRecordError(f"amount {text!r} is not a decimal number") from None

    if not amount.is_finite():
        raise MalformedRecordError(f"amount {text!r} is not a finite number")

    try:
        return amount.quantize(quantum_for(precision), rounding=ROUND_HALF_EVEN)
    except InvalidOperation:
        raise MalformedRecordError(f"amount {text!r} is out of range") from None


def _report_malformed(line_num: int, message: str, stats: Optional[RunStats]) -> None:
    logger.warning(f"Line {line_num} rejected (malformed_record): {message}")
    if stats is not None:
        stats.record_rejection(MalformedRecordError.reason)
