from dataclasses import dataclass
from decimal import Context, Decimal, Inexact, InvalidOperation, Overflow, ROUND_HALF_EVEN
from enum import Enum
from typing import Optional

from errors import ArithmeticOverflow

AMOUNT_PLACES = 4
AMOUNT_QUANTUM = Decimal("0.0001")

# 96-bit mantissa at four decimal places, built from a string so it is exact
MAX_AMOUNT = Decimal(f"{2**96 - 1}E-{AMOUNT_PLACES}")

# Wide enough for MAX_AMOUNT at full scale; any rounding is trapped.
LEDGER_CONTEXT = Context(
    prec=34,
    rounding=ROUND_HALF_EVEN,
    traps=[Inexact, InvalidOperation, Overflow],
)


def checked_add(left: Decimal, right: Decimal) -> Decimal:
    return _checked(LEDGER_CONTEXT.add, left, right)


def checked_sub(left: Decimal, right: Decimal) -> Decimal:
    return _checked(LEDGER_CONTEXT.subtract, left, right)


def _checked(operation, left: Decimal, right: Decimal) -> Decimal:
    try:
        result = operation(left, right)
    except (Inexact, InvalidOperation, Overflow) as e:
        raise ArithmeticOverflow(f"cannot represent {left} and {right} exactly: {e!r}") from e
    if result.copy_abs() > MAX_AMOUNT:
        raise ArithmeticOverflow(f"{result} exceeds maximum magnitude {MAX_AMOUNT}")
    return result


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DisputeState(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"


class ProcessingPolicy(Enum):
    """What the event processor does when the ledger rejects an event."""

    ABORT_ON_FIRST_ERROR = "abort"
    CONTINUE_ON_REJECTION = "continue"


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class TransactionRecord:
    """A deposit or withdrawal kept around so it can be disputed later."""

    transaction_id: int
    client_id: int
    kind: TransactionType
    amount: Decimal
    dispute_state: DisputeState = DisputeState.NORMAL


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return LEDGER_CONTEXT.add(self.available, self.held)

    # Each mutator computes every new value before assigning any of them,
    # so an ArithmeticOverflow leaves the account untouched.

    def credit(self, amount: Decimal) -> None:
        available = checked_add(self.available, amount)
        # held funds count towards total, which must stay representable too
        checked_add(self.total, amount)
        self.available = available

    def debit(self, amount: Decimal) -> None:
        self.available = checked_sub(self.available, amount)

    def hold(self, amount: Decimal) -> None:
        available = checked_sub(self.available, amount)
        held = checked_add(self.held, amount)
        self.available, self.held = available, held

    def release_hold(self, amount: Decimal) -> None:
        held = checked_sub(self.held, amount)
        available = checked_add(self.available, amount)
        self.available, self.held = available, held

    def remove_held(self, amount: Decimal) -> None:
        self.held = checked_sub(self.held, amount)

    def snapshot(self) -> "AccountSnapshot":
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


class ProcessingStats:
    """Counters for a single processing run."""

    def __init__(self):
        self.processed = 0
        self.rejected = 0

    def record_success(self):
        self.processed += 1

    def record_rejection(self):
        self.rejected += 1

    def __repr__(self) -> str:
        return f"ProcessingStats(processed={self.processed}, rejected={self.rejected})"
