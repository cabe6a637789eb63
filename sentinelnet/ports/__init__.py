"""
Port interfaces for SentinelNet hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external adapters.
"""

from .ingest import AlertBroadcastPort
from .notify import NotificationSinkPort
from .kvstore import KVStorePort
from .device import LocationProviderPort, EmergencyDispatchPort

__all__ = [
    "AlertBroadcastPort", "NotificationSinkPort", "KVStorePort",
    "LocationProviderPort", "EmergencyDispatchPort",
]
