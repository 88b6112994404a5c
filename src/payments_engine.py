import logging
import threading
from typing import Dict, Iterable, List, Optional, TextIO

from csv_source import read_transactions
from exceptions import InputSourceError, LedgerError
from ledger_engine import LedgerEngine
from ledger_state import TransactionLog
from message_queue import ShardedQueue
from models import AccountSnapshot, ClientAccount, RunStats, Transaction
from settings import LedgerSettings

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Runs one input source through the ledger and exposes the final balances.

    With a single shard every transaction is applied on the calling thread in input order.
    With more, the calling thread publishes transactions to per-shard queues and one
    consumer thread per shard applies them to its own LedgerEngine. A client always maps
    to the same shard, so its transactions keep their input order; transaction ids stay
    globally unique through the shared TransactionLog.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings if settings is not None else LedgerSettings()
        self._transactions = TransactionLog()
        self._stats = RunStats()
        self._engines = [
            LedgerEngine(self._settings, transactions=self._transactions, stats=self._stats)
            for _ in range(self._settings.shards)
        ]

    @property
    def stats(self) -> RunStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        try:
            f = open(filepath, "r", encoding="utf-8-sig", newline="")
        except OSError as e:
            raise InputSourceError(f"cannot open {filepath}: {e}") from e

        with f:
            return self.process_stream(f)

    def process_stream(self, stream: TextIO) -> Dict[int, ClientAccount]:
        """Process CSV text from an open stream and return final account states."""
        transactions = read_transactions(stream, self._settings.precision, self._stats)

        if len(self._engines) == 1:
            self._engines[0].process_all(transactions)
        else:
            self._process_sharded(transactions)

        logger.info(f"Processing complete. {self._stats.summary()}")
        return self.get_all_accounts()

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        accounts: Dict[int, ClientAccount] = {}
        for engine in self._engines:
            accounts.update(engine.accounts.get_all_accounts())
        return accounts

    def snapshot(self) -> List[AccountSnapshot]:
        """Final balances of every known client, ordered by client id."""
        accounts = self.get_all_accounts()
        return [accounts[client_id].snapshot() for client_id in sorted(accounts)]

    def _process_sharded(self, transactions: Iterable[Transaction]) -> None:
        queue = ShardedQueue(len(self._engines))
        errors: List[Exception] = []

        logger.info(f"Starting {queue.num_shards} shard consumers")
        consumer_threads = []
        for shard in range(queue.num_shards):
            consumer_thread = threading.Thread(
                target=self._consume_transactions,
                args=(queue, shard, errors),
                name=f"ledger-shard-{shard}",
            )
            consumer_thread.start()
            consumer_threads.append(consumer_thread)

        try:
            for transaction in transactions:
                queue.publish_message(transaction)
        finally:
            queue.shutdown()
            for consumer_thread in consumer_threads:
                consumer_thread.join()

        if errors:
            raise LedgerError(f"{len(errors)} shard consumer(s) failed") from errors[0]

    def _consume_transactions(self, queue: ShardedQueue, shard: int, errors: List[Exception]) -> None:
        """Consumer loop: drain one shard into its engine until shutdown."""
        engine = self._engines[shard]
        try:
            while True:
                transaction = queue.consume_message(shard)
                if transaction is None:
                    if queue.is_shutdown() and queue.is_empty(shard):
                        break
                    continue

                engine.process_transaction(transaction)
        except Exception as e:
            logger.exception(f"Shard {shard} consumer stopped")
            errors.append(e)
