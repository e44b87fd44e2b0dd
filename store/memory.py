"""
In-memory store for single-process groups and tests.

Workers running as threads of one process share a single InMemoryStore.
"""

import logging
import threading
from typing import Dict, List, Optional

from core.errors import StoreTimeoutError
from store.base import Store, Value


logger = logging.getLogger(__name__)


class InMemoryStore(Store):
    """
    Thread-safe dictionary-backed store.

    A single condition variable guards the data; every write notifies all
    blocked readers so they can re-check their keys.
    """

    def __init__(self, timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        self._data: Dict[str, bytes] = {}
        self._cond = threading.Condition()

    def set(self, key: str, value: Value):
        with self._cond:
            self._data[key] = self._to_bytes(value)
            self._cond.notify_all()

    def get(self, key: str) -> bytes:
        self.wait([key])
        with self._cond:
            return self._data[key]

    def add(self, key: str, delta: int) -> int:
        with self._cond:
            current = int(self._data.get(key, b"0"))
            total = current + delta
            self._data[key] = str(total).encode("ascii")
            self._cond.notify_all()
            return total

    def compare_set(self, key: str, expected: Value, desired: Value) -> bytes:
        expected = self._to_bytes(expected)
        desired = self._to_bytes(desired)

        with self._cond:
            if key not in self._data:
                if expected:
                    return expected
                self._data[key] = desired
                self._cond.notify_all()
                return desired

            if self._data[key] == expected:
                self._data[key] = desired
                self._cond.notify_all()

            return self._data[key]

    def check(self, keys: List[str]) -> bool:
        with self._cond:
            return all(key in self._data for key in keys)

    def wait(self, keys: List[str], timeout: Optional[float] = None):
        if timeout is None:
            timeout = self.timeout

        with self._cond:
            ready = self._cond.wait_for(
                lambda: all(key in self._data for key in keys),
                timeout=timeout
            )

        if not ready:
            missing = [key for key in keys if not self.check([key])]
            logger.debug(f"Wait timed out after {timeout}s, missing keys: {missing}")
            raise StoreTimeoutError(
                f"Timed out after {timeout}s waiting for keys {missing}"
            )

    def num_keys(self) -> int:
        with self._cond:
            return len(self._data)
