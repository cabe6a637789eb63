"""
SentinelNet emergency orchestration core.

Geofenced alert decisioning, severity escalation, the SOS activation
state machine and adaptive location tracking.
"""

__version__ = "0.1.0"
