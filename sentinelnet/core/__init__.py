"""
Core domain models and pure functions for SentinelNet.

This module contains the domain models and pure business logic
that are independent of external I/O and infrastructure concerns.
"""

from .models import (
    Alert, AlertZone, Contact, Decision, GeoPoint, Location,
    SOSPhase, SOSState, TrackingContext,
)
from .geofence import contains, distance_m
from .decision import AlertDecisionEngine, evaluate_alert
from .cadence import select_cadence
from .normalize import to_alert

__all__ = [
    "Alert", "AlertZone", "Contact", "Decision", "GeoPoint", "Location",
    "SOSPhase", "SOSState", "TrackingContext",
    "contains", "distance_m", "AlertDecisionEngine", "evaluate_alert",
    "select_cadence", "to_alert",
]
