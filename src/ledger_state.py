import threading
from typing import Dict, Optional, Set

from models import ClientAccount, DepositRecord


class AccountBook:
    """
    Client accounts keyed by client id.
    Not synchronized: every client must have exactly one writer.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        account = self._accounts.get(client_id)
        if account is None:
            account = ClientAccount(client_id=client_id)
            self._accounts[client_id] = account
        return account

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)


class TransactionLog:
    """
    Registry of every deposit and withdrawal id seen in a run.
    Deposits are kept for dispute lookups. Withdrawal ids are only remembered so
    they cannot be reused. Id checks and inserts are safe to call from several
    threads; a deposit record itself is only ever mutated by its owner's writer.
    """

    def __init__(self):
        self._deposits: Dict[int, DepositRecord] = {}
        self._withdrawal_ids: Set[int] = set()
        self._lock = threading.Lock()

    def is_known(self, transaction_id: int) -> bool:
        """Check if a deposit or withdrawal already used this id."""
        with self._lock:
            return transaction_id in self._deposits or transaction_id in self._withdrawal_ids

    def record_deposit(self, record: DepositRecord) -> bool:
        """Store a new deposit. Returns False if the id is already taken."""
        with self._lock:
            if record.transaction_id in self._deposits or record.transaction_id in self._withdrawal_ids:
                return False
            self._deposits[record.transaction_id] = record
            return True

    def record_withdrawal(self, transaction_id: int) -> bool:
        """Claim an id for a withdrawal. Returns False if the id is already taken."""
        with self._lock:
            if transaction_id in self._deposits or transaction_id in self._withdrawal_ids:
                return False
            self._withdrawal_ids.add(transaction_id)
            return True

    def get_deposit(self, transaction_id: int) -> Optional[DepositRecord]:
        """Retrieve a stored deposit by id."""
        with self._lock:
            return self._deposits.get(transaction_id)
