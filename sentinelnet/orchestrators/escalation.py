"""
Severity escalation controller for SentinelNet.

This module turns a triggered alert into severity-based side effects:
contact notification for MEDIUM and HIGH alerts, and a deferred
auto-dial for HIGH alerts. The auto-dial stays cancellable until its
grace window elapses.
"""

import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple
from sentinelnet.common.scheduling import LoopScheduler, Scheduler, TaskGroup, TimerHandle
from sentinelnet.core.models import Alert, Contact, EscalationRecord, Location
from sentinelnet.ports.device import EmergencyDispatchPort
from sentinelnet.ports.notify import NotificationSinkPort
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.escalation")

DEFAULT_EMERGENCY_NUMBERS: Dict[str, Dict[str, str]] = {
    "Fire": {"number": "101", "service": "Fire Department"},
    "Flood": {"number": "112", "service": "Police/Emergency"},
    "Earthquake": {"number": "112", "service": "Police/Emergency"},
    "Toxic Gas Leak": {"number": "108", "service": "Ambulance"},
}

NOTIFY_SEVERITIES = ("MEDIUM", "HIGH")
HISTORY_SIZE = 200


class SeverityEscalationController:
    """심각도 기반 에스컬레이션 컨트롤러"""

    def __init__(self,
                 sink: NotificationSinkPort,
                 dispatcher: EmergencyDispatchPort,
                 *,
                 grace_window_ms: int = 2000,
                 emergency_numbers: Optional[Dict[str, Dict[str, str]]] = None,
                 default_number: str = "112",
                 default_service: str = "Police/Emergency",
                 scheduler: Optional[Scheduler] = None,
                 history_size: int = HISTORY_SIZE,
                 clock: Callable[[], float] = time.time):
        """
        초기화합니다.

        Args:
            sink: 알림 싱크
            dispatcher: 전화 발신 포트
            grace_window_ms: 자동 발신 전 유예 시간 (밀리초)
            emergency_numbers: 재난 유형별 긴급 번호 표
            default_number: 표에 없는 유형의 번호
            default_service: 표에 없는 유형의 서비스명
            scheduler: 지연 실행 스케줄러
            history_size: 보관할 에스컬레이션 기록 수
            clock: 시각 함수
        """
        self.sink = sink
        self.dispatcher = dispatcher
        self.grace_window_ms = grace_window_ms
        self.emergency_numbers = emergency_numbers or DEFAULT_EMERGENCY_NUMBERS
        self.default_number = default_number
        self.default_service = default_service
        self.scheduler = scheduler or LoopScheduler()
        self._clock = clock

        self._tasks = TaskGroup("escalation")
        self._pending: Optional[TimerHandle] = None
        self._pending_alert: Optional[Alert] = None
        self._token = 0
        self._history: Deque[EscalationRecord] = deque(maxlen=history_size)

    def resolve_emergency(self, alert_type: str) -> Tuple[str, str]:
        """재난 유형을 (긴급 번호, 서비스명)으로 매핑합니다."""
        entry = self.emergency_numbers.get(alert_type)
        if entry is None:
            return self.default_number, self.default_service
        return entry["number"], entry["service"]

    def on_trigger(self, alert: Alert, location: Optional[Location],
                   contacts: Sequence[Contact]) -> None:
        """
        트리거된 경보의 심각도에 따라 부수 효과를 예약합니다.

        호출자를 막지 않습니다. 알림 실패는 로그로만 남습니다.

        Args:
            alert: 트리거된 경보
            location: 평가에 사용된 위치
            contacts: 비상 연락처
        """
        if alert.severity not in NOTIFY_SEVERITIES:
            log.debug("에스컬레이션 대상 아님", alert_id=alert.id, severity=alert.severity)
            return

        if contacts:
            self._record("notify", alert_id=alert.id)
            metrics.escalations_total.labels(action="notify").inc()
            self._tasks.spawn(
                self.sink.notify_contacts(list(contacts), location, alert),
                label=f"notify:{alert.id}",
            )
        else:
            self._record("notify_skipped", alert_id=alert.id)
            log.info("알릴 연락처가 없습니다", alert_id=alert.id)

        if alert.severity == "HIGH":
            self._schedule_dial(alert)

    def _schedule_dial(self, alert: Alert) -> None:
        # 대기 중인 타이머는 교체 (중복 생성 금지)
        if self._pending is not None:
            self._pending.cancel()
            log.info("대기 중인 자동 발신을 새 경보로 교체",
                     previous=self._pending_alert.id if self._pending_alert else None,
                     alert_id=alert.id)

        self._token += 1
        token = self._token
        number, service = self.resolve_emergency(alert.type)

        self._pending_alert = alert
        self._pending = self.scheduler.call_later(
            self.grace_window_ms / 1000.0,
            lambda: self._fire_dial(token),
        )
        self._record("dial_scheduled", alert_id=alert.id, number=number, service=service)
        metrics.escalations_total.labels(action="dial_scheduled").inc()
        log.warning("자동 긴급 발신 예약됨",
                    alert_id=alert.id,
                    number=number,
                    service=service,
                    grace_window_ms=self.grace_window_ms)

    def _fire_dial(self, token: int) -> None:
        # 취소/교체된 타이머는 무시
        if token != self._token or self._pending_alert is None:
            return
        alert = self._pending_alert
        self._pending = None
        self._pending_alert = None

        number, service = self.resolve_emergency(alert.type)
        self._record("dial_fired", alert_id=alert.id, number=number, service=service)
        metrics.escalations_total.labels(action="dial_fired").inc()
        log.warning("자동 긴급 발신 실행", alert_id=alert.id, number=number, service=service)
        self._tasks.spawn(self.dispatcher.dial(number, service), label=f"dial:{number}")

    def cancel(self) -> bool:
        """
        아직 실행되지 않은 자동 발신을 취소합니다.

        Returns:
            취소된 타이머가 있었으면 True
        """
        if self._pending is None:
            return False
        self._pending.cancel()
        alert = self._pending_alert
        self._pending = None
        self._pending_alert = None
        # 이미 큐에 들어간 콜백도 무효화
        self._token += 1

        self._record("dial_cancelled", alert_id=alert.id if alert else None)
        metrics.escalations_total.labels(action="dial_cancelled").inc()
        log.info("자동 긴급 발신 취소됨", alert_id=alert.id if alert else None)
        return True

    def _record(self, action: str, **fields) -> None:
        self._history.append(EscalationRecord(action=action, at=self._clock(), **fields))

    @property
    def has_pending_dial(self) -> bool:
        return self._pending is not None

    @property
    def history(self) -> List[EscalationRecord]:
        return list(self._history)

    async def drain(self) -> None:
        """진행 중인 알림/발신 태스크가 끝날 때까지 기다립니다."""
        await self._tasks.join()
