"""
SOS orchestrator for SentinelNet.

This module drives the SOS activation sequence

    IDLE -> GPS_CAPTURING -> GPS_CAPTURED -> SMS_DISPATCHING
         -> SMS_DISPATCHED -> CALL_INITIATING -> STREAMING

as a single-instance state machine. Every transition is persisted before
it is published, so a crash loses at most the in-flight step. Recovery
restores visibility (phase, location) and never re-runs a step.
"""

import asyncio
import time
from typing import Callable, List, Literal, Optional, Sequence
from pydantic import BaseModel, ValidationError
from sentinelnet.core.events import EventStream
from sentinelnet.core.models import (
    Contact, Location, SOSPhase, SOSSnapshot, SOSState, next_phase,
)
from sentinelnet.orchestrators.escalation import SeverityEscalationController
from sentinelnet.ports.device import EmergencyDispatchPort, LocationProviderPort
from sentinelnet.ports.kvstore import KVStorePort
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.sos")

SOSEventKind = Literal["phase", "error", "complete", "stopped", "recovered", "location"]


class SOSEvent(BaseModel):
    """오케스트레이터가 발행하는 이벤트"""
    kind: SOSEventKind
    state: SOSState
    error: Optional[str] = None
    at: float


class SOSOrchestrator:
    """SOS 활성화 상태 머신"""

    def __init__(self,
                 store: KVStorePort,
                 provider: LocationProviderPort,
                 dispatcher: EmergencyDispatchPort,
                 *,
                 escalation: Optional[SeverityEscalationController] = None,
                 snapshot_key: str = "sentinelnet_sos_state",
                 fix_timeout_sec: float = 10.0,
                 emergency_number: str = "112",
                 emergency_service: str = "Police/Emergency",
                 sms_template: str = "SOS! I need help. My location: https://maps.google.com/?q={lat},{lng}",
                 clock: Callable[[], float] = time.time):
        """
        초기화합니다.

        Args:
            store: 스냅샷 저장소
            provider: 위치 측위 포트
            dispatcher: SMS/전화 발신 포트
            escalation: 함께 종료할 에스컬레이션 컨트롤러
            snapshot_key: 스냅샷 저장 키
            fix_timeout_sec: GPS 측위 타임아웃 (초)
            emergency_number: SOS 발신 번호
            emergency_service: SOS 발신 서비스명
            sms_template: SOS 문자 템플릿 ({lat}, {lng})
            clock: 시각 함수
        """
        self.store = store
        self.provider = provider
        self.dispatcher = dispatcher
        self.escalation = escalation
        self.snapshot_key = snapshot_key
        self.fix_timeout_sec = fix_timeout_sec
        self.emergency_number = emergency_number
        self.emergency_service = emergency_service
        self.sms_template = sms_template
        self._clock = clock

        self.events: EventStream[SOSEvent] = EventStream("sos")
        self._state = SOSState()
        self._contacts: List[Contact] = []
        self._task: Optional[asyncio.Task] = None
        self._lifecycle = asyncio.Lock()
        # start/stop/recover마다 증가, 이전 세대의 시퀀스 태스크는 상태를 바꾸지 못함
        self._generation = 0

    # ---- 조회 ----

    @property
    def state(self) -> SOSState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def in_flight(self) -> bool:
        """시퀀스 태스크가 실행 중인지"""
        return self._task is not None and not self._task.done()

    # ---- 수명 주기 ----

    async def start(self, contacts: Sequence[Contact] = ()) -> SOSState:
        """
        SOS 시퀀스를 시작합니다. 이미 활성 상태면 아무것도 하지 않습니다.

        Args:
            contacts: SOS 문자를 받을 연락처

        Returns:
            시작 직후 상태
        """
        async with self._lifecycle:
            if self._state.is_active:
                log.info("SOS가 이미 활성 상태입니다 (무시)", phase=self._state.phase.value)
                return self._state

            self._generation += 1
            now = self._clock()
            self._contacts = list(contacts)
            self._state = SOSState(
                phase=SOSPhase.IDLE,
                is_active=True,
                started_at=now,
                last_updated_at=now,
            )
            metrics.sos_active.set(1)
            log.warning("SOS 시작", contacts=len(self._contacts))

            await self._transition(SOSPhase.GPS_CAPTURING)
            self._task = asyncio.get_running_loop().create_task(self._run_sequence(self._generation))
            return self._state

    async def wait(self) -> SOSState:
        """진행 중인 시퀀스가 끝나거나 실패할 때까지 기다립니다."""
        task = self._task
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._state

    async def stop(self) -> SOSState:
        """
        SOS를 중지합니다. 어느 단계에서든 IDLE로 돌아갑니다.

        진행 중인 단계를 취소하고, 에스컬레이션 타이머를 취소하고,
        저장된 스냅샷을 지웁니다.

        Returns:
            최종 IDLE 상태
        """
        async with self._lifecycle:
            task = self._task
            self._task = None
            self._generation += 1
            if task is not None and not task.done():
                task.cancel()
            # 사용자가 취소한 뒤 자동 발신이 남지 않도록 함께 종료
            if self.escalation is not None:
                self.escalation.cancel()

            previous = self._state.phase
            self._state = SOSState(phase=SOSPhase.IDLE, is_active=False,
                                   last_updated_at=self._clock())
            metrics.sos_active.set(0)

            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            try:
                await self.store.delete(self.snapshot_key)
            except Exception as e:
                log.error("SOS 스냅샷 삭제 실패", error=str(e))

            log.warning("SOS 중지", previous_phase=previous.value)
            self._publish("stopped")
            return self._state

    async def retry(self, contacts: Optional[Sequence[Contact]] = None) -> bool:
        """
        실패한 단계를 외부 요청에 따라 다시 실행합니다.

        Args:
            contacts: SOS 문자를 받을 연락처 (지정하면 교체)

        Returns:
            재시도가 시작되었으면 True
        """
        async with self._lifecycle:
            phase = self._state.phase
            if not self._state.is_active or phase in (SOSPhase.IDLE, SOSPhase.STREAMING):
                log.warning("재시도할 SOS 단계가 없습니다", phase=phase.value)
                return False
            if self.in_flight:
                log.warning("SOS 시퀀스가 이미 진행 중입니다", phase=phase.value)
                return False

            if contacts is not None:
                self._contacts = list(contacts)
            log.info("SOS 단계 재시도", phase=phase.value)
            self._task = asyncio.get_running_loop().create_task(self._run_sequence(self._generation))
            return True

    async def recover(self) -> Optional[SOSState]:
        """
        저장된 스냅샷에서 SOS 표시 상태를 복구합니다.

        이미 수행된 부수 효과(SMS, 전화)는 다시 실행하지 않습니다.

        Returns:
            복구된 상태, 복구할 것이 없으면 None
        """
        async with self._lifecycle:
            if self._state.is_active:
                return None

            try:
                raw = await self.store.get(self.snapshot_key)
            except Exception as e:
                log.error("SOS 스냅샷 읽기 실패", error=str(e))
                return None
            if not raw:
                return None

            try:
                snapshot = SOSSnapshot.model_validate_json(raw)
            except ValidationError as e:
                log.error("손상된 SOS 스냅샷 무시", error=str(e))
                return None

            if snapshot.phase == SOSPhase.IDLE:
                return None

            self._generation += 1
            self._state = SOSState(
                phase=snapshot.phase,
                is_active=True,
                location=snapshot.location,
                started_at=snapshot.started_at,
                last_updated_at=self._clock(),
            )
            metrics.sos_active.set(1)
            log.warning("크래시 이후 SOS 상태 복구됨", phase=snapshot.phase.value)
            self._publish("recovered")
            return self._state

    async def update_location(self, location: Location) -> bool:
        """STREAMING 중 위치를 갱신하고 스냅샷을 다시 저장합니다."""
        # 스냅샷 쓰기는 stop()의 삭제와 직렬화
        async with self._lifecycle:
            if not self._state.is_active or self._state.phase != SOSPhase.STREAMING:
                return False
            self._state = self._state.model_copy(update={
                "location": location,
                "last_updated_at": self._clock(),
            })
            await self._persist()
            self._publish("location")
            return True

    # ---- 시퀀스 ----

    async def _run_sequence(self, generation: int) -> None:
        """현재 단계부터 STREAMING까지 단계를 순서대로 실행합니다."""
        try:
            while self._state.is_active and generation == self._generation:
                phase = self._state.phase
                if phase == SOSPhase.GPS_CAPTURING:
                    location = await self._capture_location()
                    await self._transition(SOSPhase.GPS_CAPTURED, location=location,
                                           generation=generation)
                elif phase == SOSPhase.GPS_CAPTURED:
                    await self._transition(SOSPhase.SMS_DISPATCHING, generation=generation)
                elif phase == SOSPhase.SMS_DISPATCHING:
                    await self._dispatch_sms()
                    await self._transition(SOSPhase.SMS_DISPATCHED, generation=generation)
                elif phase == SOSPhase.SMS_DISPATCHED:
                    await self._transition(SOSPhase.CALL_INITIATING, generation=generation)
                elif phase == SOSPhase.CALL_INITIATING:
                    await self._initiate_call()
                    if await self._transition(SOSPhase.STREAMING, generation=generation):
                        log.warning("SOS 활성화 완료, 위치 스트리밍 중")
                        self._publish("complete")
                    return
                else:
                    return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # 자동 재시도 없음: 단계는 마지막 성공 값에 머무름
            phase = self._state.phase
            metrics.sos_errors.labels(phase=phase.value).inc()
            log.error("SOS 단계 실패", phase=phase.value, error=str(e))
            self._publish("error", error=str(e) or type(e).__name__)

    async def _capture_location(self) -> Location:
        return await self.provider.get_fix(timeout_sec=self.fix_timeout_sec, high_accuracy=True)

    async def _dispatch_sms(self) -> None:
        if not self._contacts:
            log.warning("SOS 문자를 받을 연락처가 없습니다")
            return
        location = self._state.location
        message = self.sms_template.format(
            lat=location.latitude if location else "?",
            lng=location.longitude if location else "?",
        )
        await self.dispatcher.send_sms(self._contacts, message)

    async def _initiate_call(self) -> None:
        await self.dispatcher.dial(self.emergency_number, self.emergency_service)

    async def _transition(self, target: SOSPhase, *, location: Optional[Location] = None,
                          generation: Optional[int] = None) -> bool:
        """
        다음 단계로 전이합니다. 순서에 맞지 않는 전이는 경고 후 무시합니다.

        Args:
            target: 목표 단계
            location: 함께 기록할 위치
            generation: 호출한 시퀀스의 세대 (다르면 무시)

        Returns:
            전이 성공 여부
        """
        if generation is not None and generation != self._generation:
            log.debug("이전 세대의 SOS 전이 무시", target=target.value)
            return False

        current = self._state.phase
        if not self._state.is_active or next_phase(current) != target:
            log.warning("잘못된 SOS 단계 전이 무시",
                        current=current.value,
                        target=target.value,
                        active=self._state.is_active)
            return False

        update = {"phase": target, "last_updated_at": self._clock()}
        if location is not None:
            update["location"] = location
        self._state = self._state.model_copy(update=update)

        # 관찰자에게 알리기 전에 저장
        await self._persist()

        metrics.sos_transitions.labels(phase=target.value).inc()
        log.info("SOS 단계 전이", previous=current.value, phase=target.value)
        self._publish("phase")
        return True

    async def _persist(self) -> None:
        snapshot = SOSSnapshot(
            phase=self._state.phase,
            location=self._state.location,
            started_at=self._state.started_at,
        )
        try:
            await self.store.put(self.snapshot_key, snapshot.model_dump_json())
        except Exception as e:
            # 저장 실패가 단계 진행을 막지 않음
            log.error("SOS 스냅샷 저장 실패", phase=snapshot.phase.value, error=str(e))

    def _publish(self, kind: SOSEventKind, *, error: Optional[str] = None) -> None:
        self.events.publish(SOSEvent(kind=kind, state=self._state, error=error, at=self._clock()))
