"""
Alert decision evaluation for SentinelNet.

This module decides whether a broadcast alert is relevant to the user
by testing the user's location against the alert's geofence. An alert
is never triggered without a location fix.
"""

import time
from collections import deque
from typing import Callable, Deque, List, Optional
from .models import Alert, Decision, Location
from .geofence import contains, distance_m, is_valid_coordinate
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.decision")

DEFAULT_LOG_CAPACITY = 50


def evaluate_alert(
    current_location: Optional[Location],
    alert: Alert,
    *,
    last_known: Optional[Location] = None,
    now: Optional[float] = None,
) -> Decision:
    """
    경보를 현재 위치 기준으로 평가합니다.

    Args:
        current_location: 현재 위치 (모르면 None)
        alert: 평가할 경보
        last_known: 현재 위치가 없을 때 사용할 마지막 위치
        now: 평가 시각 (Unix timestamp)

    Returns:
        평가 결과
    """
    evaluated_at = time.time() if now is None else now
    location = current_location
    used_last_known = False

    if location is None and last_known is not None:
        location = last_known
        used_last_known = True

    if location is None:
        return Decision(
            alert_id=alert.id,
            should_trigger=False,
            distance_m=None,
            reason="NO_LOCATION",
            severity=alert.severity,
            evaluated_at=evaluated_at,
        )

    if not is_valid_coordinate(location.latitude, location.longitude):
        return Decision(
            alert_id=alert.id,
            should_trigger=False,
            distance_m=None,
            reason="INVALID_LOCATION",
            severity=alert.severity,
            used_last_known=used_last_known,
            evaluated_at=evaluated_at,
        )

    distance = distance_m(alert.zone.center, location)
    inside = contains(alert.zone, location)

    return Decision(
        alert_id=alert.id,
        should_trigger=inside,
        distance_m=distance,
        reason="IN_ZONE" if inside else "OUT_OF_ZONE",
        severity=alert.severity,
        used_last_known=used_last_known,
        evaluated_at=evaluated_at,
    )


class AlertDecisionEngine:
    """경보 결정 엔진 (결정 감사 로그 소유)"""

    def __init__(self, *, capacity: int = DEFAULT_LOG_CAPACITY,
                 clock: Callable[[], float] = time.time):
        self._log: Deque[Decision] = deque(maxlen=capacity)
        self._clock = clock

    def evaluate(self, current_location: Optional[Location], alert: Alert,
                 *, last_known: Optional[Location] = None) -> Decision:
        """경보를 평가하고 결과를 감사 로그에 추가합니다."""
        decision = evaluate_alert(current_location, alert,
                                  last_known=last_known, now=self._clock())
        # 트리거 여부와 무관하게 모두 기록
        self._log.append(decision)

        log.info("경보 평가 완료",
                 alert_id=alert.id,
                 alert_type=alert.type,
                 severity=alert.severity,
                 should_trigger=decision.should_trigger,
                 reason=decision.reason,
                 distance_m=decision.distance_m)
        return decision

    @property
    def decisions(self) -> List[Decision]:
        return list(self._log)

    @property
    def capacity(self) -> int:
        return self._log.maxlen or 0
