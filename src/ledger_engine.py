import logging
from decimal import Decimal, Rounded, localcontext
from typing import Iterable, List, Optional

from exceptions import TransactionRejected
from ledger_state import AccountBook, TransactionLog
from models import (
    AccountSnapshot,
    ClientAccount,
    DepositRecord,
    DepositState,
    RejectionReason,
    RunStats,
    Transaction,
    TransactionType,
)
from settings import ChargebackPolicy, LedgerSettings

logger = logging.getLogger(__name__)


class LedgerEngine:
    """
    Applies transactions to client accounts, one at a time, in the order given.
    Each transaction is either applied in full or rejected with no effect on state.

    The account book is private to this engine. The transaction log and stats may be
    shared with other engines, as long as each client is only ever fed to one of them.
    """

    def __init__(
        self,
        settings: Optional[LedgerSettings] = None,
        accounts: Optional[AccountBook] = None,
        transactions: Optional[TransactionLog] = None,
        stats: Optional[RunStats] = None,
    ):
        self._settings = settings if settings is not None else LedgerSettings()
        self._accounts = accounts if accounts is not None else AccountBook()
        self._transactions = transactions if transactions is not None else TransactionLog()
        self._stats = stats if stats is not None else RunStats()

    @property
    def accounts(self) -> AccountBook:
        return self._accounts

    @property
    def transactions(self) -> TransactionLog:
        return self._transactions

    @property
    def stats(self) -> RunStats:
        return self._stats

    def process_transaction(self, transaction: Transaction) -> Optional[RejectionReason]:
        """
        Apply a single transaction and report any rejection as a diagnostic.

        Returns:
            None if the transaction was applied, otherwise the reason it was rejected.
        """
        try:
            self.apply(transaction)
        except TransactionRejected as e:
            logger.warning(f"{transaction} rejected ({e.reason.value}): {e}")
            self._stats.record_rejection(e.reason)
            return e.reason

        self._stats.record_accepted()
        return None

    def process_all(self, transactions: Iterable[Transaction]) -> None:
        for transaction in transactions:
            self.process_transaction(transaction)

    def apply(self, transaction: Transaction) -> None:
        """Apply a transaction or raise TransactionRejected without touching state."""
        account = self._accounts.get_or_create_account(transaction.client_id)

        if account.locked:
            raise TransactionRejected(RejectionReason.ACCOUNT_LOCKED, f"client {account.client_id} is locked")

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                self._handle_chargeback(account, transaction)

    def snapshot(self) -> List[AccountSnapshot]:
        """Final balances of every known client, ordered by client id."""
        accounts = self._accounts.get_all_accounts()
        return [accounts[client_id].snapshot() for client_id in sorted(accounts)]

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> None:
        amount = _require_positive_amount(transaction)

        if self._transactions.is_known(transaction.transaction_id):
            raise TransactionRejected(
                RejectionReason.DUPLICATE_TRANSACTION_ID,
                f"tx {transaction.transaction_id} was already used",
            )

        # The total must stay exactly representable at the default decimal precision.
        if not _is_exact_sum(account.total, amount):
            raise TransactionRejected(
                RejectionReason.BALANCE_OUT_OF_RANGE,
                f"total {account.total} plus {amount} exceeds decimal precision",
            )

        record = DepositRecord(
            transaction_id=transaction.transaction_id,
            client_id=account.client_id,
            amount=amount,
        )
        if not self._transactions.record_deposit(record):
            raise TransactionRejected(
                RejectionReason.DUPLICATE_TRANSACTION_ID,
                f"tx {transaction.transaction_id} was already used",
            )

        account.credit(amount)

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> None:
        amount = _require_positive_amount(transaction)

        if self._transactions.is_known(transaction.transaction_id):
            raise TransactionRejected(
                RejectionReason.DUPLICATE_TRANSACTION_ID,
                f"tx {transaction.transaction_id} was already used",
            )

        if account.available < amount:
            raise TransactionRejected(
                RejectionReason.INSUFFICIENT_FUNDS,
                f"available {account.available} is less than {amount}",
            )

        if not self._transactions.record_withdrawal(transaction.transaction_id):
            raise TransactionRejected(
                RejectionReason.DUPLICATE_TRANSACTION_ID,
                f"tx {transaction.transaction_id} was already used",
            )

        account.debit(amount)

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> None:
        deposit = self._find_own_deposit(account, transaction)

        if deposit.state != DepositState.NORMAL:
            raise TransactionRejected(
                RejectionReason.NOT_DISPUTABLE,
                f"deposit tx {deposit.transaction_id} is {deposit.state.value}",
            )

        # A dispute must not push available funds below zero.
        if account.available < deposit.amount:
            raise TransactionRejected(
                RejectionReason.INSUFFICIENT_FUNDS_FOR_DISPUTE,
                f"available {account.available} cannot cover disputed {deposit.amount}",
            )

        account.hold(deposit.amount)
        deposit.state = DepositState.DISPUTED

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> None:
        deposit = self._find_own_deposit(account, transaction)
        _require_disputed(deposit)

        account.release_hold(deposit.amount)
        deposit.state = DepositState.NORMAL

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> None:
        deposit = self._find_own_deposit(account, transaction)
        _require_disputed(deposit)

        if self._settings.chargeback_policy == ChargebackPolicy.REVALIDATE and account.held < deposit.amount:
            raise TransactionRejected(
                RejectionReason.INSUFFICIENT_HELD_FUNDS,
                f"held {account.held} cannot cover charged back {deposit.amount}",
            )

        account.remove_held(deposit.amount)
        account.locked = True
        deposit.state = DepositState.CHARGED_BACK
        logger.info(f"Client {account.client_id} locked by chargeback of tx {deposit.transaction_id}")

    def _find_own_deposit(self, account: ClientAccount, transaction: Transaction) -> DepositRecord:
        deposit = self._transactions.get_deposit(transaction.transaction_id)

        if deposit is None:
            raise TransactionRejected(
                RejectionReason.UNKNOWN_TRANSACTION,
                f"no deposit with tx {transaction.transaction_id}",
            )

        if deposit.client_id != account.client_id:
            raise TransactionRejected(
                RejectionReason.CLIENT_MISMATCH,
                f"tx {deposit.transaction_id} belongs to client {deposit.client_id}",
            )

        return deposit


def _require_positive_amount(transaction: Transaction) -> Decimal:
    if transaction.amount is None or transaction.amount <= 0:
        raise TransactionRejected(
            RejectionReason.INVALID_AMOUNT,
            f"{transaction.transaction_type.value} amount must be positive, got {transaction.amount}",
        )
    return transaction.amount


def _require_disputed(deposit: DepositRecord) -> None:
    if deposit.state != DepositState.DISPUTED:
        raise TransactionRejected(
            RejectionReason.NOT_UNDER_DISPUTE,
            f"deposit tx {deposit.transaction_id} is {deposit.state.value}",
        )


def _is_exact_sum(left: Decimal, right: Decimal) -> bool:
    with localcontext() as ctx:
        ctx.traps[Rounded] = True
        try:
            left + right
        except Rounded:
            return False
    return True
