"""
Adapters for SentinelNet hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import SQLiteKVStore, InMemoryKVStore
from .http import NotificationClient
from .mqtt import MqttAlertBroadcast
from .device import SimulatedLocationProvider, SimulatedDispatcher

__all__ = [
    "SQLiteKVStore", "InMemoryKVStore", "NotificationClient",
    "MqttAlertBroadcast", "SimulatedLocationProvider", "SimulatedDispatcher",
]
