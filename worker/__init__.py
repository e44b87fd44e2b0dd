"""
Worker module for group rendezvous.

Workers use the group agent to:
- Join the group and discover every worker's name
- Synchronise at barriers and learn group-wide call counts
- Shut down together once no calls are in flight
"""

__version__ = "0.1.0"
