"""
Key-value store contract used for all cross-process coordination.

The registry and barrier code depend only on the operations defined here.
Implementations must provide linearizable add and compare_set, and a wait
that only returns once the awaited keys are visible to every client.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union


Value = Union[bytes, str]


class Store(ABC):
    """
    Abstract key-value store.

    Blocking operations (get, wait) honour ``timeout``; None blocks forever.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Default timeout in seconds for blocking operations
        """
        self.timeout = timeout

    @staticmethod
    def _to_bytes(value: Value) -> bytes:
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    @abstractmethod
    def set(self, key: str, value: Value):
        """Unconditionally overwrite ``key``."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the value of ``key``, blocking until it exists."""

    @abstractmethod
    def add(self, key: str, delta: int) -> int:
        """
        Atomically add ``delta`` to the integer stored at ``key``.

        An absent key counts as 0.

        Returns:
            The new total
        """

    @abstractmethod
    def compare_set(self, key: str, expected: Value, desired: Value) -> bytes:
        """
        Atomically replace ``expected`` with ``desired``.

        An absent key matches an empty ``expected``. When the key is absent
        and ``expected`` is not empty nothing is written and ``expected`` is
        returned.

        Returns:
            The value stored after the attempt (``desired`` iff it succeeded)
        """

    @abstractmethod
    def check(self, keys: List[str]) -> bool:
        """Return True if every key exists. Never blocks."""

    @abstractmethod
    def wait(self, keys: List[str], timeout: Optional[float] = None):
        """
        Block until every key exists.

        Args:
            keys: Keys to wait for
            timeout: Overrides the store timeout for this call

        Raises:
            StoreTimeoutError: If the keys do not appear in time
        """

    def close(self):
        """Release client resources."""
