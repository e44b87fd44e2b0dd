"""
Store-based barrier that sums a counter across the group.
"""

import logging
import threading

from core import keys
from store.base import Store


logger = logging.getLogger(__name__)


class BarrierCounter:
    """
    Blocks until every worker arrives, then returns the group-wide sum.

    Each call uses a fresh epoch, and each epoch its own set of keys. Epochs
    are counted per instance, so every worker must call sync_call_count the
    same number of times in the same order for the Nth call on each worker
    to meet at the same keys. This cannot be checked locally.
    """

    def __init__(self, store: Store):
        """
        Args:
            store: Store shared by every worker in the group
        """
        self.store = store
        self._epoch = 0
        self._lock = threading.Lock()

    @property
    def epoch(self) -> int:
        """Epoch of the most recent barrier call (0 before the first)."""
        return self._epoch

    def _next_epoch(self) -> int:
        with self._lock:
            self._epoch += 1
            return self._epoch

    def sync_call_count(self, world_size: int, active_calls: int) -> int:
        """
        Wait for all workers and return the total of their active calls.

        Exactly ``world_size`` workers must call this for each epoch. Fewer
        callers block until the store times out (forever without a timeout).

        Args:
            world_size: Number of workers in the group
            active_calls: This worker's contribution

        Returns:
            Sum of ``active_calls`` over all workers for this epoch
        """
        if world_size <= 0:
            raise ValueError(f"world_size must be positive, got {world_size}")

        epoch = self._next_epoch()
        process_count_key, active_call_count_key, ready_key = keys.epoch_keys(epoch)

        self.store.add(active_call_count_key, active_calls)
        arrived = self.store.add(process_count_key, 1)
        logger.debug(f"Barrier epoch {epoch}: {arrived}/{world_size} arrived")

        # Last arrival releases everyone
        if arrived == world_size:
            self.store.set(ready_key, b"")
            logger.debug(f"Barrier epoch {epoch}: released by last arrival")

        self.store.wait([ready_key])

        # Other workers may have added since our own add
        total = int(self.store.get(active_call_count_key))
        logger.debug(f"Barrier epoch {epoch}: total active calls {total}")
        return total
