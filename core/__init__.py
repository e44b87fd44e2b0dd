"""
Core rendezvous protocol.

Provides the store-based coordination primitives:
- Name registry: claim an id and name, discover every other worker
- Barrier counter: wait for the whole group and sum a counter across it
"""

from core.barrier import BarrierCounter
from core.errors import (
    RendezvousError,
    NameCollisionError,
    IdCollisionError,
    ManifestFormatError,
    StoreError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from core.registry import NameRegistry

__version__ = "0.1.0"

__all__ = [
    "BarrierCounter",
    "NameRegistry",
    "RendezvousError",
    "NameCollisionError",
    "IdCollisionError",
    "ManifestFormatError",
    "StoreError",
    "StoreTimeoutError",
    "StoreUnavailableError",
]
