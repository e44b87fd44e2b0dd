"""
Namespacing wrapper so several groups can share one backing store.
"""

from typing import List, Optional

from store.base import Store, Value


class PrefixStore(Store):
    """
    Store view that prefixes every key with ``"<prefix>/"``.

    Blocking operations use the wrapped store's timeout.
    """

    def __init__(self, prefix: str, store: Store):
        """
        Args:
            prefix: Namespace for this view (e.g. a group or job name)
            store: Underlying store
        """
        super().__init__(timeout=store.timeout)
        self.prefix = prefix
        self.store = store

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}"

    def set(self, key: str, value: Value):
        self.store.set(self._key(key), value)

    def get(self, key: str) -> bytes:
        return self.store.get(self._key(key))

    def add(self, key: str, delta: int) -> int:
        return self.store.add(self._key(key), delta)

    def compare_set(self, key: str, expected: Value, desired: Value) -> bytes:
        return self.store.compare_set(self._key(key), expected, desired)

    def check(self, keys: List[str]) -> bool:
        return self.store.check([self._key(key) for key in keys])

    def wait(self, keys: List[str], timeout: Optional[float] = None):
        self.store.wait([self._key(key) for key in keys], timeout=timeout)

    def close(self):
        self.store.close()
