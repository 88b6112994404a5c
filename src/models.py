import threading
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DepositState(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


class RejectionReason(Enum):
    ACCOUNT_LOCKED = "account_locked"
    INVALID_AMOUNT = "invalid_amount"
    DUPLICATE_TRANSACTION_ID = "duplicate_transaction_id"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    CLIENT_MISMATCH = "client_mismatch"
    NOT_DISPUTABLE = "not_disputable"
    NOT_UNDER_DISPUTE = "not_under_dispute"
    INSUFFICIENT_FUNDS_FOR_DISPUTE = "insufficient_funds_for_dispute"
    INSUFFICIENT_HELD_FUNDS = "insufficient_held_funds"
    BALANCE_OUT_OF_RANGE = "balance_out_of_range"
    MALFORMED_RECORD = "malformed_record"


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


class AccountSnapshot(NamedTuple):
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(self.client_id, self.available, self.held, self.total, self.locked)


@dataclass
class DepositRecord:
    """An accepted deposit, kept so later disputes can find it."""

    transaction_id: int
    client_id: int
    amount: Decimal
    state: DepositState = DepositState.NORMAL


class RunStats:
    """Thread-safe counters for accepted and rejected records in one run."""

    def __init__(self):
        self._lock = threading.Lock()
        self.accepted = 0
        self.rejections: Counter = Counter()

    def record_accepted(self):
        with self._lock:
            self.accepted += 1

    def record_rejection(self, reason: RejectionReason):
        with self._lock:
            self.rejections[reason] += 1

    @property
    def rejected(self) -> int:
        with self._lock:
            return sum(self.rejections.values())

    def summary(self) -> str:
        with self._lock:
            breakdown = ", ".join(
                f"{reason.value}={count}"
                for reason, count in sorted(self.rejections.items(), key=lambda item: item[0].value)
            )
            line = f"Accepted: {self.accepted}, Rejected: {sum(self.rejections.values())}"
        return f"{line} ({breakdown})" if breakdown else line
