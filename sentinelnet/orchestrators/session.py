"""
Emergency session orchestrator for SentinelNet.

This module wires the decision engine, escalation controller, SOS
orchestrator and location tracker into a single user session:
broadcast alerts are evaluated against the latest location fix,
triggered alerts are escalated, and SOS phase events are audited and
forwarded to the notification sink.
"""

import asyncio
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional
from sentinelnet.common.scheduling import TaskGroup
from sentinelnet.core.decision import AlertDecisionEngine
from sentinelnet.core.errors import AlertPayloadError
from sentinelnet.core.events import Subscription
from sentinelnet.core.models import (
    Alert, Decision, Location, SOSLogEntry, SOSState, ServiceRequestLog, TrackingContext,
)
from sentinelnet.core.normalize import to_alert
from sentinelnet.features.contacts import ContactBook
from sentinelnet.features.path_history import PathHistory
from sentinelnet.orchestrators.escalation import SeverityEscalationController
from sentinelnet.orchestrators.sos import SOSEvent, SOSOrchestrator
from sentinelnet.orchestrators.tracker import AdaptiveLocationTracker
from sentinelnet.ports.ingest import AlertBroadcastPort
from sentinelnet.ports.notify import NotificationSinkPort
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.session")

AUDIT_LOG_SIZE = 200


class EmergencySession:
    """사용자 세션 단위 긴급 대응 오케스트레이터"""

    def __init__(self,
                 *,
                 engine: AlertDecisionEngine,
                 escalation: SeverityEscalationController,
                 sos: SOSOrchestrator,
                 tracker: AdaptiveLocationTracker,
                 contacts: ContactBook,
                 path: PathHistory,
                 sink: NotificationSinkPort,
                 user_id: str = "demo-user",
                 low_battery_threshold: float = 20.0,
                 clock: Callable[[], float] = time.time):
        """
        초기화합니다.

        Args:
            engine: 경보 결정 엔진
            escalation: 에스컬레이션 컨트롤러
            sos: SOS 오케스트레이터
            tracker: 위치 추적기
            contacts: 비상 연락처
            path: 경로 기록
            sink: 알림 싱크
            user_id: 사용자 ID
            low_battery_threshold: 저전력 모드 진입 배터리 잔량 (%)
            clock: 시각 함수
        """
        self.engine = engine
        self.escalation = escalation
        self.sos = sos
        self.tracker = tracker
        self.contacts = contacts
        self.path = path
        self.sink = sink
        self.user_id = user_id
        self.low_battery_threshold = low_battery_threshold
        self._clock = clock

        self.current_location: Optional[Location] = None
        self.active_alerts: List[Alert] = []
        self.battery_level: float = 100.0
        self.is_low_power_mode = False

        self.sos_log: Deque[SOSLogEntry] = deque(maxlen=AUDIT_LOG_SIZE)
        self.service_log: Deque[ServiceRequestLog] = deque(maxlen=AUDIT_LOG_SIZE)

        self._tasks = TaskGroup("session")
        self._sos_events: Optional[Subscription[SOSEvent]] = None
        self._sos_consumer: Optional[asyncio.Task] = None

        log.info("긴급 대응 세션 초기화됨", user_id=user_id)

    # ---- 수명 주기 ----

    async def open(self) -> Optional[SOSState]:
        """
        세션을 엽니다: 저장된 데이터 로드, 크래시 복구, 위치 추적 시작.

        Returns:
            복구된 SOS 상태 (없으면 None)
        """
        await self.contacts.load()
        await self.path.load()

        self._sos_events = self.sos.events.subscribe()
        self._sos_consumer = asyncio.get_running_loop().create_task(self._consume_sos_events())

        recovered = await self.sos.recover()
        if recovered is not None and recovered.location is not None:
            self.current_location = recovered.location

        self._restart_tracking()
        return recovered

    async def close(self) -> None:
        """세션을 닫습니다. 추적과 대기 중인 에스컬레이션을 멈춥니다."""
        self.tracker.stop()
        self.escalation.cancel()
        if self._sos_consumer is not None:
            self._sos_consumer.cancel()
            try:
                await self._sos_consumer
            except asyncio.CancelledError:
                pass
            self._sos_consumer = None
        if self._sos_events is not None:
            self._sos_events.close()
            self._sos_events = None
        await self.drain()
        log.info("긴급 대응 세션 종료")

    async def drain(self) -> None:
        """진행 중인 백그라운드 작업이 끝날 때까지 기다립니다."""
        await self._tasks.join()
        await self.escalation.drain()

    async def run(self, broadcast: AlertBroadcastPort) -> None:
        """경보 브로드캐스트 채널을 소비합니다."""
        async for raw in broadcast.recv():
            metrics.alerts_received.labels(source="broadcast").inc()
            try:
                await self.handle_alert(raw)
            except Exception as e:
                log.error("경보 처리 오류", error=str(e), alert_id=raw.get("id", "unknown"))
                continue

    # ---- 경보 ----

    async def handle_alert(self, raw: Dict) -> Optional[Decision]:
        """
        브로드캐스트 페이로드를 정규화하고 평가합니다.

        Returns:
            평가 결과, 페이로드가 잘못되었으면 None
        """
        try:
            alert = to_alert(raw)
        except AlertPayloadError as e:
            metrics.alerts_invalid.inc()
            log.error("잘못된 경보 페이로드", error=str(e))
            return None
        return await self.process_alert(alert)

    async def process_alert(self, alert: Alert) -> Decision:
        """경보를 현재 위치 기준으로 평가하고, 트리거되면 에스컬레이션합니다."""
        # 호출 시점의 최신 위치 사용 (더 새로운 측위를 기다리지 않음)
        location = self.current_location
        last_known = self.path.last_location() if location is None else None

        with metrics.decision_seconds.time():
            decision = self.engine.evaluate(location, alert, last_known=last_known)
        metrics.decisions_total.labels(reason=decision.reason).inc()

        if not decision.should_trigger:
            return decision

        if any(a.id == alert.id for a in self.active_alerts):
            log.info("이미 활성화된 경보입니다", alert_id=alert.id)
            return decision

        self.active_alerts.append(alert)
        metrics.active_alerts.set(len(self.active_alerts))
        log.warning("경보 트리거됨",
                    alert_id=alert.id,
                    alert_type=alert.type,
                    severity=alert.severity,
                    distance_m=decision.distance_m)

        self.escalation.on_trigger(alert, location or last_known, self.contacts.contacts)
        return decision

    def dismiss_alert(self, alert_id: str) -> bool:
        """
        활성 경보를 해제합니다. 남은 경보가 없으면 대기 중인 자동 발신을 취소합니다.

        Returns:
            해제된 경보가 있었으면 True
        """
        remaining = [a for a in self.active_alerts if a.id != alert_id]
        dismissed = len(remaining) < len(self.active_alerts)
        self.active_alerts = remaining
        metrics.active_alerts.set(len(remaining))

        if not remaining:
            self.escalation.cancel()
        log.info("경보 해제", alert_id=alert_id, dismissed=dismissed, remaining=len(remaining))
        return dismissed

    # ---- SOS ----

    async def toggle_sos(self) -> SOSState:
        """SOS를 켜거나 끕니다."""
        if self.sos.is_active:
            return await self.stop_sos()
        return await self.start_sos()

    async def start_sos(self) -> SOSState:
        state = await self.sos.start(self.contacts.contacts)
        self._restart_tracking()
        return state

    async def stop_sos(self) -> SOSState:
        state = await self.sos.stop()
        self._restart_tracking()
        self._tasks.spawn(self.sink.sos_stop(self.user_id), label="sos_stop")
        return state

    async def retry_sos(self) -> bool:
        """현재 연락처로 실패한 SOS 단계를 다시 실행합니다."""
        return await self.sos.retry(self.contacts.contacts)

    async def _consume_sos_events(self) -> None:
        """SOS 이벤트를 감사 로그와 알림 싱크로 전달합니다."""
        assert self._sos_events is not None
        async for event in self._sos_events:
            state = event.state
            self.sos_log.append(SOSLogEntry(
                kind=event.kind,
                phase=state.phase,
                location=state.location,
                error=event.error,
                timestamp=event.at,
            ))
            if event.kind == "complete":
                self._tasks.spawn(
                    self.sink.sos_start(self.user_id, state.location, state.phase),
                    label="sos_start",
                )
            elif event.kind == "error":
                log.error("SOS 오류", phase=state.phase.value, error=event.error)

    # ---- 서비스 요청 ----

    async def request_service(self, service: str) -> ServiceRequestLog:
        """
        사용자가 요청한 긴급 서비스를 전송합니다. 실패해도 로컬에 기록합니다.

        Args:
            service: 서비스 이름

        Returns:
            감사 로그 항목
        """
        location = self.current_location
        try:
            response = await self.sink.request_service(service, location, self.user_id)
            entry = ServiceRequestLog(service=service, location=location, user_id=self.user_id,
                                      timestamp=self._clock(), response=response)
        except Exception as e:
            log.error("서비스 요청 실패", service=service, error=str(e))
            entry = ServiceRequestLog(service=service, location=location, user_id=self.user_id,
                                      timestamp=self._clock(), error=str(e))
        self.service_log.append(entry)
        return entry

    # ---- 위치 / 배터리 ----

    def tracking_context(self) -> TrackingContext:
        return TrackingContext(
            is_sos_active=self.sos.is_active,
            battery_level=self.battery_level,
            is_low_power_mode=self.is_low_power_mode,
        )

    def _restart_tracking(self) -> None:
        self.tracker.start(self._on_location, self._on_location_error, self.tracking_context())

    def _on_location(self, location: Location) -> None:
        self.current_location = location
        self._tasks.spawn(self.path.record(location), label="path")

        if self.sos.is_active:
            self._tasks.spawn(self.sos.update_location(location), label="sos_location")
            self._tasks.spawn(
                self.sink.sos_start(self.user_id, location, self.sos.state.phase),
                label="sos_heartbeat",
            )

    def _on_location_error(self, error: Exception) -> None:
        log.warning("위치 측위 오류", error=str(error))

    def update_battery(self, level: float) -> bool:
        """
        배터리 잔량을 갱신합니다. 저전력 모드가 바뀌면 추적 주기를 다시 잡습니다.

        Returns:
            저전력 모드가 바뀌었으면 True
        """
        self.battery_level = max(0.0, min(100.0, level))
        metrics.battery_level.set(self.battery_level)

        low = self.battery_level <= self.low_battery_threshold
        if low == self.is_low_power_mode:
            return False
        self.is_low_power_mode = low
        log.info("저전력 모드 변경", low_power=low, battery_level=self.battery_level)
        self._restart_tracking()
        return True

    # ---- 조회 ----

    def snapshot(self) -> Dict:
        """UI/HTTP 노출용 세션 상태"""
        sos = self.sos.state
        return {
            "user_id": self.user_id,
            "location": self.current_location.model_dump() if self.current_location else None,
            "sos": sos.model_dump(mode="json"),
            "active_alerts": [a.model_dump() for a in self.active_alerts],
            "battery_level": self.battery_level,
            "is_low_power_mode": self.is_low_power_mode,
            "tracking": self.tracker.status().model_dump(),
            "contacts": len(self.contacts.contacts),
            "pending_auto_dial": self.escalation.has_pending_dial,
        }

    def logs(self) -> Dict:
        """감사 로그 (sos / services / decisions / escalations)"""
        return {
            "sos": [e.model_dump(mode="json") for e in self.sos_log],
            "services": [e.model_dump(mode="json") for e in self.service_log],
            "decisions": [d.model_dump() for d in self.engine.decisions],
            "escalations": [r.model_dump() for r in self.escalation.history],
        }
