"""
Metrics definitions for SentinelNet.

This module defines Prometheus metrics for monitoring
alert decisioning, SOS activation and location tracking.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
alerts_received = Counter(
    "alerts_received_total",
    "Number of raw alerts received from the broadcast channel",
    ["source"]
)

alerts_invalid = Counter(
    "alerts_invalid_total",
    "Number of broadcast payloads rejected by normalization"
)

decisions_total = Counter(
    "alert_decisions_total",
    "Number of alert decisions by outcome",
    ["reason"]
)

escalations_total = Counter(
    "escalation_actions_total",
    "Escalation actions taken",
    ["action"]
)

notifications_failed = Counter(
    "notification_failures_total",
    "Notification sink calls that failed",
    ["endpoint"]
)

sos_transitions = Counter(
    "sos_phase_transitions_total",
    "SOS phase transitions",
    ["phase"]
)

sos_errors = Counter(
    "sos_step_errors_total",
    "SOS step failures",
    ["phase"]
)

location_fixes = Counter(
    "location_fixes_total",
    "Successful location fixes",
    ["mode"]
)

location_errors = Counter(
    "location_errors_total",
    "Failed location fix attempts",
    ["mode"]
)

# 히스토그램 메트릭
decision_seconds = Histogram(
    "decision_duration_seconds",
    "Time spent evaluating an alert",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1]
)

fix_seconds = Histogram(
    "location_fix_duration_seconds",
    "Time spent acquiring a location fix",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0]
)

# 게이지 메트릭
active_alerts = Gauge(
    "active_alerts",
    "Current number of active alerts"
)

sos_active = Gauge(
    "sos_active",
    "1 while an SOS sequence is active"
)

tracking_interval_seconds = Gauge(
    "tracking_interval_seconds",
    "Current location polling interval"
)

battery_level = Gauge(
    "battery_level_percent",
    "Last reported battery level"
)
