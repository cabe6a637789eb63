"""
Orchestrators for SentinelNet.

This module contains the orchestrators that coordinate
the flow between ports and adapters.
"""
from .escalation import SeverityEscalationController
from .sos import SOSEvent, SOSOrchestrator
from .tracker import AdaptiveLocationTracker
from .session import EmergencySession

__all__ = [
    "SeverityEscalationController", "SOSEvent", "SOSOrchestrator",
    "AdaptiveLocationTracker", "EmergencySession",
]
