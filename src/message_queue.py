import threading
from queue import Empty, Queue
from typing import List, Optional

from models import Transaction


class ShardedQueue:
    """
    One FIFO queue per shard, routed by client id.
    A client always lands on the same shard, so a single consumer per shard sees
    that client's transactions in publish order.
    All synchronization is internal - callers never need to lock.
    """

    DEFAULT_TIMEOUT = 0.1

    def __init__(self, num_shards: int):
        if num_shards < 1:
            raise ValueError(f"num_shards must be at least 1, got {num_shards}")
        self._shards: List[Queue[Transaction]] = [Queue() for _ in range(num_shards)]
        self._shutdown_event = threading.Event()

    @property
    def num_shards(self) -> int:
        return len(self._shards)

    def shard_for(self, client_id: int) -> int:
        return client_id % len(self._shards)

    def publish_message(self, message: Transaction) -> int:
        """Add message to its client's shard. Returns the shard index."""
        shard = self.shard_for(message.client_id)
        self._shards[shard].put(message)
        return shard

    def consume_message(self, shard: int) -> Optional[Transaction]:
        """
        Get next message from a shard.
        Returns None if the shard is empty after timeout.
        """
        try:
            return self._shards[shard].get(timeout=self.DEFAULT_TIMEOUT)
        except Empty:
            return None

    def is_empty(self, shard: int) -> bool:
        return self._shards[shard].empty()

    def pending(self) -> int:
        """Approximate number of unconsumed messages across all shards."""
        return sum(shard.qsize() for shard in self._shards)

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()
