"""
MQTT broadcast adapter for SentinelNet.

This module provides the implementation of AlertBroadcastPort
for receiving alerts pushed over MQTT.
"""

from .broadcast import MqttAlertBroadcast

__all__ = ["MqttAlertBroadcast"]
