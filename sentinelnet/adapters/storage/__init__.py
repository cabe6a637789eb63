"""
Storage adapters for SentinelNet hexagonal architecture.

This module contains the key-value store adapters backing the
persistence sink.
"""

from .sqlite_kv import SQLiteKVStore
from .memory_kv import InMemoryKVStore

__all__ = ["SQLiteKVStore", "InMemoryKVStore"]
