"""
Emergency Session 단위 테스트

이 모듈은 경보 처리, SOS 토글, 서비스 요청, 배터리 기반 추적 전환 등
세션 단위 조립 동작을 테스트합니다.
"""

import asyncio
import json
import pytest

from sentinelnet.adapters.storage import InMemoryKVStore
from sentinelnet.core.cadence import Cadence, CadenceTable
from sentinelnet.core.decision import AlertDecisionEngine
from sentinelnet.core.models import SOSPhase, SOSSnapshot
from sentinelnet.features import ContactBook, PathHistory
from sentinelnet.orchestrators import (
    AdaptiveLocationTracker, EmergencySession, SOSOrchestrator, SeverityEscalationController,
)
from conftest import (
    BANGALORE, FakeDispatcher, FakeLocationProvider, ManualScheduler, RecordingSink,
    make_location, raw_alert, settle,
)

FAST = CadenceTable(
    idle=Cadence(mode="IDLE", interval_sec=0.01, high_accuracy=False, fix_timeout_sec=1.0),
    sos=Cadence(mode="SOS", interval_sec=0.01, high_accuracy=True, fix_timeout_sec=1.0),
    low_power=Cadence(mode="LOW_POWER", interval_sec=0.05, high_accuracy=False, fix_timeout_sec=1.0),
)


class Harness:
    """세션과 테스트 더블 묶음"""

    def __init__(self, *, sink=None, store=None):
        self.store = store or InMemoryKVStore()
        self.sink = sink or RecordingSink()
        self.dispatcher = FakeDispatcher()
        self.scheduler = ManualScheduler()
        # 추적용 측위는 테스트가 열어줄 때까지 대기
        self.tracking_provider = FakeLocationProvider()
        self.tracking_provider.gate = asyncio.Event()
        self.sos_provider = FakeLocationProvider()

        self.escalation = SeverityEscalationController(self.sink, self.dispatcher,
                                                       scheduler=self.scheduler)
        self.sos = SOSOrchestrator(self.store, self.sos_provider, self.dispatcher,
                                   escalation=self.escalation)
        self.tracker = AdaptiveLocationTracker(self.tracking_provider, cadence_table=FAST)
        self.contacts = ContactBook(self.store)
        self.path = PathHistory(self.store)
        self.session = EmergencySession(
            engine=AlertDecisionEngine(),
            escalation=self.escalation,
            sos=self.sos,
            tracker=self.tracker,
            contacts=self.contacts,
            path=self.path,
            sink=self.sink,
            user_id="user-1",
        )


@pytest.fixture
async def harness():
    h = Harness()
    await h.session.open()
    yield h
    await h.session.close()


class TestSessionAlerts:
    """경보 처리 테스트"""

    @pytest.mark.asyncio
    async def test_alert_without_location_is_not_triggered(self, harness):
        decision = await harness.session.handle_alert(raw_alert())

        assert decision.reason == "NO_LOCATION"
        assert harness.session.active_alerts == []
        assert harness.escalation.history == []

    @pytest.mark.asyncio
    async def test_in_zone_alert_escalates(self, harness):
        """영역 안 HIGH 경보 → 활성 경보 추가, 알림, 자동 발신 예약"""
        await harness.contacts.add("Asha", "+919800000001")
        harness.session.current_location = make_location(12.9850, 77.5946)

        decision = await harness.session.handle_alert(raw_alert())
        await harness.session.drain()

        assert decision.should_trigger
        assert [a.id for a in harness.session.active_alerts] == ["bcast-1"]
        assert len(harness.sink.notified) == 1
        assert harness.escalation.has_pending_dial

        harness.scheduler.advance(2000)
        await harness.session.drain()
        assert harness.dispatcher.calls == [("101", "Fire Department")]

    @pytest.mark.asyncio
    async def test_last_known_location_from_path(self, harness):
        """현재 위치가 없으면 경로 기록의 마지막 위치로 평가"""
        await harness.path.record(make_location(*BANGALORE))

        decision = await harness.session.handle_alert(raw_alert())

        assert decision.should_trigger
        assert decision.used_last_known

    @pytest.mark.asyncio
    async def test_invalid_payload_is_dropped(self, harness):
        assert await harness.session.handle_alert({"id": "x"}) is None
        assert harness.session.engine.decisions == []

    @pytest.mark.asyncio
    async def test_duplicate_alert_is_not_escalated_twice(self, harness):
        harness.session.current_location = make_location(*BANGALORE)

        await harness.session.handle_alert(raw_alert())
        await harness.session.handle_alert(raw_alert())

        assert len(harness.session.active_alerts) == 1
        assert [r.action for r in harness.escalation.history].count("dial_scheduled") == 1
        assert len(harness.session.engine.decisions) == 2

    @pytest.mark.asyncio
    async def test_dismissing_last_alert_cancels_auto_dial(self, harness):
        harness.session.current_location = make_location(*BANGALORE)
        await harness.session.handle_alert(raw_alert())

        assert harness.session.dismiss_alert("bcast-1") is True
        harness.scheduler.advance(5000)
        await harness.session.drain()

        assert harness.dispatcher.calls == []
        assert harness.session.active_alerts == []
        assert harness.session.dismiss_alert("bcast-1") is False

    @pytest.mark.asyncio
    async def test_run_consumes_broadcast(self, harness):
        harness.session.current_location = make_location(*BANGALORE)

        class Broadcast:
            async def recv(self):
                yield raw_alert(id="a1", severity="LOW")
                yield {"garbage": True}
                yield raw_alert(id="a2", severity="LOW")

        await harness.session.run(Broadcast())

        assert [a.id for a in harness.session.active_alerts] == ["a1", "a2"]


class TestSessionSOS:
    """SOS 토글 테스트"""

    @pytest.mark.asyncio
    async def test_toggle_on_then_off(self, harness):
        await harness.contacts.add("Asha", "+919800000001")

        state = await harness.session.toggle_sos()
        assert state.is_active
        assert harness.tracker.status().mode == "SOS"

        await harness.sos.wait()
        await settle()
        await harness.session.drain()

        assert harness.sink.sos_started[-1][0] == "user-1"
        assert harness.sink.sos_started[-1][2] == SOSPhase.STREAMING
        kinds = [e.kind for e in harness.session.sos_log]
        assert kinds[0] == "phase"
        assert "complete" in kinds

        state = await harness.session.toggle_sos()
        await settle()
        await harness.session.drain()

        assert not state.is_active
        assert harness.sink.sos_stopped == ["user-1"]
        assert harness.tracker.status().mode == "IDLE"

    @pytest.mark.asyncio
    async def test_sos_stop_notification_failure_is_logged(self):
        h = Harness(sink=RecordingSink(fail=True))
        await h.session.open()

        await h.session.start_sos()
        await h.sos.wait()
        state = await h.session.stop_sos()
        await h.session.drain()

        assert state.phase == SOSPhase.IDLE
        await h.session.close()

    @pytest.mark.asyncio
    async def test_location_updates_stream_during_sos(self, harness):
        """STREAMING 중 새 위치는 SOS 상태와 하트비트로 전달"""
        await harness.session.start_sos()
        await harness.sos.wait()

        moved = make_location(12.99, 77.61, captured_at=5000.0)
        harness.session._on_location(moved)
        await harness.session.drain()

        assert harness.sos.state.location == moved
        assert harness.sink.sos_started[-1][1] == moved
        assert harness.path.last_location() == moved

    @pytest.mark.asyncio
    async def test_open_recovers_sos(self):
        store = InMemoryKVStore({
            "sentinelnet_sos_state": SOSSnapshot(phase=SOSPhase.SMS_DISPATCHED,
                                                 location=make_location(*BANGALORE)).model_dump_json()
        })
        h = Harness(store=store)

        recovered = await h.session.open()
        await settle()

        assert recovered.phase == SOSPhase.SMS_DISPATCHED
        assert h.session.current_location.latitude == pytest.approx(BANGALORE[0])
        assert h.tracker.status().mode == "SOS"
        assert h.dispatcher.sms == []
        assert [e.kind for e in h.session.sos_log] == ["recovered"]
        await h.session.close()

    @pytest.mark.asyncio
    async def test_retry_after_recovery_sends_sms_to_saved_contacts(self):
        """SMS_DISPATCHING에서 복구 후 재시도하면 저장된 연락처로 문자 발송"""
        store = InMemoryKVStore({
            "sentinelnet_sos_state": SOSSnapshot(phase=SOSPhase.SMS_DISPATCHING,
                                                 location=make_location(*BANGALORE)).model_dump_json()
        })
        h = Harness(store=store)
        await h.contacts.add("Asha", "+919800000001")

        await h.session.open()
        assert await h.session.retry_sos() is True
        await h.sos.wait()

        assert h.sos.state.phase == SOSPhase.STREAMING
        assert [phones for phones, _ in h.dispatcher.sms] == [["+919800000001"]]
        await h.session.close()


class TestSessionServicesAndPower:
    """서비스 요청과 전력 모드 테스트"""

    @pytest.mark.asyncio
    async def test_service_request_logged(self, harness):
        harness.session.current_location = make_location(*BANGALORE)

        entry = await harness.session.request_service("Ambulance")

        assert entry.response == {"ok": True, "ticket": "T-1"}
        assert entry.error is None
        assert harness.sink.services[0][0] == "Ambulance"
        assert list(harness.session.service_log) == [entry]

    @pytest.mark.asyncio
    async def test_service_request_failure_logged_locally(self):
        h = Harness(sink=RecordingSink(fail=True))
        await h.session.open()

        entry = await h.session.request_service("Fire Department")

        assert entry.response is None
        assert "connection refused" in entry.error
        assert len(h.session.service_log) == 1
        await h.session.close()

    @pytest.mark.asyncio
    async def test_low_battery_switches_cadence(self, harness):
        assert harness.session.update_battery(50) is False
        assert harness.tracker.status().mode == "IDLE"

        assert harness.session.update_battery(15) is True
        assert harness.session.is_low_power_mode
        assert harness.tracker.status().mode == "LOW_POWER"

        assert harness.session.update_battery(80) is True
        assert harness.tracker.status().mode == "IDLE"

    @pytest.mark.asyncio
    async def test_tracking_fix_updates_location_and_path(self, harness):
        harness.tracking_provider.gate.set()
        for _ in range(200):
            if harness.session.current_location is not None:
                break
            await asyncio.sleep(0.005)
        await harness.session.drain()

        assert harness.session.current_location is not None
        assert len(harness.path.points) == 1

    @pytest.mark.asyncio
    async def test_snapshot_and_logs(self, harness):
        harness.session.current_location = make_location(*BANGALORE)
        await harness.session.handle_alert(raw_alert(severity="LOW"))

        snapshot = harness.session.snapshot()
        logs = harness.session.logs()

        assert snapshot["user_id"] == "user-1"
        assert snapshot["sos"]["phase"] == "IDLE"
        assert snapshot["active_alerts"][0]["id"] == "bcast-1"
        assert snapshot["tracking"]["is_tracking"] is True
        assert set(logs) == {"sos", "services", "decisions", "escalations"}
        assert logs["decisions"][0]["reason"] == "IN_ZONE"
        json.dumps(snapshot)
        json.dumps(logs)
