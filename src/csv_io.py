import csv
from decimal import Context, Decimal, Inexact, InvalidOperation, ROUND_HALF_EVEN
from typing import Dict, Iterable, Iterator, Optional, TextIO

from errors import ParseError
from models import AMOUNT_QUANTUM, LEDGER_CONTEXT, AccountSnapshot, Transaction, TransactionType

INPUT_FIELDS = ("type", "client", "tx", "amount")
OUTPUT_FIELDS = ("client", "available", "held", "total", "locked")

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

_RENDER_CONTEXT = Context(prec=40, rounding=ROUND_HALF_EVEN)


def read_transactions(filepath: str) -> Iterator[Transaction]:
    """Lazily read transactions from a CSV file, raising ParseError on the first bad row."""
    with open(filepath, "r", newline="", encoding="utf-8") as f:
        yield from parse_transactions(f)


def parse_transactions(lines: Iterable[str]) -> Iterator[Transaction]:
    reader = csv.DictReader(lines, skipinitialspace=True)
    try:
        yield from _parse_reader(reader)
    except UnicodeDecodeError as e:
        # The text layer decodes ahead of the csv reader, so no reliable line number
        raise ParseError(f"input is not valid UTF-8: {e}")
    except csv.Error as e:
        raise ParseError(f"malformed CSV: {e}", line_number=reader.line_num)


def _parse_reader(reader: csv.DictReader) -> Iterator[Transaction]:
    if reader.fieldnames is None:
        return

    header = [name.strip().lower() for name in reader.fieldnames]
    missing = [name for name in INPUT_FIELDS[:3] if name not in header]
    if missing:
        raise ParseError(f"header is missing column(s) {', '.join(missing)}", line_number=1)

    for row in reader:
        if None in row:
            raise ParseError(f"too many fields: {row[None]}", line_number=reader.line_num)
        normalized = {k.strip().lower(): (v or "").strip() for k, v in row.items()}
        if not any(normalized.values()):
            continue
        yield parse_row(normalized, line_number=reader.line_num)


def parse_row(row: Dict[str, str], line_number: Optional[int] = None) -> Transaction:
    """Parse a whitespace-trimmed CSV row into a Transaction."""
    try:
        transaction_type = TransactionType(row["type"].lower())
    except ValueError:
        raise ParseError(f"unknown transaction type {row['type']!r}", line_number)

    client_id = _parse_id(row["client"], "client", MAX_CLIENT_ID, line_number)
    transaction_id = _parse_id(row["tx"], "tx", MAX_TRANSACTION_ID, line_number)

    amount = None
    amount_str = row.get("amount", "")
    if amount_str:
        amount = _parse_amount(amount_str, line_number)
    elif transaction_type.carries_amount:
        raise ParseError(f"{transaction_type.value} requires an amount", line_number)

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _parse_id(value: str, field: str, maximum: int, line_number: Optional[int]) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ParseError(f"{field} must be an integer, got {value!r}", line_number)
    if not 0 <= parsed <= maximum:
        raise ParseError(f"{field} {parsed} out of range 0..{maximum}", line_number)
    return parsed


def _parse_amount(value: str, line_number: Optional[int]) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ParseError(f"amount {value!r} is not a decimal number", line_number)
    if not amount.is_finite():
        raise ParseError(f"amount {value!r} is not finite", line_number)
    try:
        return LEDGER_CONTEXT.quantize(amount, AMOUNT_QUANTUM)
    except Inexact:
        raise ParseError(f"amount {value!r} has more than four decimal places", line_number)
    except InvalidOperation:
        raise ParseError(f"amount {value!r} is out of range", line_number)


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly four decimal places."""
    return f"{value.quantize(AMOUNT_QUANTUM, context=_RENDER_CONTEXT):f}"


def write_accounts(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_FIELDS)
    for snapshot in snapshots:
        writer.writerow([
            snapshot.client_id,
            format_decimal(snapshot.available),
            format_decimal(snapshot.held),
            format_decimal(snapshot.total),
            str(snapshot.locked).lower(),
        ])
