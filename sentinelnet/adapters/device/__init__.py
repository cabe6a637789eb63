"""
Device adapters for SentinelNet.

This module provides LocationProviderPort and EmergencyDispatchPort
implementations.
"""

from .simulated import SimulatedLocationProvider, SimulatedDispatcher

__all__ = ["SimulatedLocationProvider", "SimulatedDispatcher"]
