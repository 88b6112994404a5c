import csv
from decimal import Decimal
from typing import Iterable, List, TextIO

from models import AccountSnapshot
from settings import DEFAULT_PRECISION, quantum_for

OUTPUT_COLUMNS = ("client", "available", "held", "total", "locked")


def format_amount(value: Decimal, precision: int = DEFAULT_PRECISION) -> str:
    """Format decimal with exactly `precision` fractional digits."""
    return f"{value.quantize(quantum_for(precision)):f}"


def format_row(snapshot: AccountSnapshot, precision: int = DEFAULT_PRECISION) -> List[str]:
    return [
        str(snapshot.client_id),
        format_amount(snapshot.available, precision),
        format_amount(snapshot.held, precision),
        format_amount(snapshot.total, precision),
        str(snapshot.locked).lower(),
    ]


def write_snapshot(
    snapshots: Iterable[AccountSnapshot],
    stream: TextIO,
    precision: int = DEFAULT_PRECISION,
) -> int:
    """Write the header and one CSV row per account. Returns the number of rows."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_COLUMNS)
    count = 0
    for snapshot in snapshots:
        writer.writerow(format_row(snapshot, precision))
        count += 1
    return count
