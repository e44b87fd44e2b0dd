"""
Coordinator module for group rendezvous.

The coordinator runs the shared store service:
- SQLite-backed key-value entries
- Atomic add and compare-and-set
- Long-poll waits for keys
"""

__version__ = "0.1.0"
