"""
Key-value stores for group rendezvous.

- Store: the contract the core depends on
- InMemoryStore: threads of one process
- PrefixStore: several groups sharing one backend
- HTTPStore: client for the store server
"""

from store.base import Store
from store.memory import InMemoryStore
from store.prefix import PrefixStore
from store.http_store import HTTPStore

__version__ = "0.1.0"

__all__ = [
    "Store",
    "InMemoryStore",
    "PrefixStore",
    "HTTPStore",
]
