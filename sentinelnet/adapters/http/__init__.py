"""
HTTP adapters for SentinelNet.

This module provides the implementation of NotificationSinkPort
over the SentinelNet backend HTTP API.
"""

from .notification_client import NotificationClient

__all__ = ["NotificationClient"]
