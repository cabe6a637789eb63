"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import asyncio
import tempfile
import os
from typing import Callable, List, Optional, Sequence, Tuple
from sentinelnet.settings import Settings
from sentinelnet.adapters.storage import InMemoryKVStore
from sentinelnet.core.errors import LocationUnavailableError, NotificationError
from sentinelnet.core.models import Alert, AlertZone, Contact, GeoPoint, Location, SOSPhase


# 방갈로르 기준 좌표
BANGALORE = (12.9716, 77.5946)


class ManualHandle:
    def __init__(self, due_ms: float, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """수동으로 시간을 진행하는 테스트용 스케줄러 (밀리초)"""

    def __init__(self):
        self.now_ms = 0.0
        self.timers: List[ManualHandle] = []

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now_ms + delay_sec * 1000.0, callback)
        self.timers.append(handle)
        return handle

    def advance(self, ms: float) -> None:
        self.now_ms += ms
        for handle in sorted(self.timers, key=lambda h: h.due_ms):
            if handle.cancelled or handle.due_ms > self.now_ms:
                continue
            self.timers.remove(handle)
            handle.callback()

    @property
    def pending(self) -> int:
        return sum(1 for h in self.timers if not h.cancelled)


class FakeLocationProvider:
    """순서대로 위치를 돌려주거나 실패하는 측위 포트"""

    def __init__(self, results: Optional[Sequence] = None, *, default: Optional[Location] = None):
        self.results = list(results or [])
        self.default = default or make_location(*BANGALORE)
        self.calls: List[Tuple[float, bool]] = []
        self.gate: Optional[asyncio.Event] = None

    async def get_fix(self, *, timeout_sec: float, high_accuracy: bool) -> Location:
        self.calls.append((timeout_sec, high_accuracy))
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result


class FakeDispatcher:
    """SMS/전화 호출을 기록하는 발신 포트"""

    def __init__(self):
        self.sms: List[Tuple[List[str], str]] = []
        self.calls: List[Tuple[str, str]] = []
        self.sms_gate: Optional[asyncio.Event] = None
        self.dial_gate: Optional[asyncio.Event] = None
        self.fail_sms: Optional[Exception] = None
        self.fail_dial: Optional[Exception] = None

    async def send_sms(self, contacts: Sequence[Contact], message: str) -> None:
        if self.sms_gate is not None:
            await self.sms_gate.wait()
        if self.fail_sms is not None:
            raise self.fail_sms
        self.sms.append(([c.phone for c in contacts], message))

    async def dial(self, number: str, service_name: str) -> None:
        if self.dial_gate is not None:
            await self.dial_gate.wait()
        if self.fail_dial is not None:
            raise self.fail_dial
        self.calls.append((number, service_name))


class RecordingSink:
    """알림 싱크 호출을 기록 (fail=True면 NotificationError)"""

    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.notified: List[Tuple[List[Contact], Optional[Location], Alert]] = []
        self.sos_started: List[Tuple[str, Optional[Location], SOSPhase]] = []
        self.sos_stopped: List[str] = []
        self.services: List[Tuple[str, Optional[Location], str]] = []

    def _check(self, endpoint: str) -> None:
        if self.fail:
            raise NotificationError(endpoint, "connection refused")

    async def notify_contacts(self, contacts, location, alert) -> dict:
        self._check("/api/contacts/notify")
        self.notified.append((list(contacts), location, alert))
        return {"ok": True}

    async def sos_start(self, user_id, location, phase) -> dict:
        self._check("/api/sos/start")
        self.sos_started.append((user_id, location, phase))
        return {"ok": True}

    async def sos_stop(self, user_id) -> dict:
        self._check("/api/sos/stop")
        self.sos_stopped.append(user_id)
        return {"ok": True}

    async def request_service(self, service, location, user_id) -> dict:
        self._check("/api/service/request")
        self.services.append((service, location, user_id))
        return {"ok": True, "ticket": "T-1"}


class FailingKVStore(InMemoryKVStore):
    """쓰기가 항상 실패하는 저장소"""

    async def put(self, key: str, value: str) -> None:
        raise OSError("disk full")


def make_location(lat: float, lng: float, accuracy: float = 10.0, captured_at: float = 1000.0) -> Location:
    return Location(latitude=lat, longitude=lng, accuracy=accuracy, captured_at=captured_at)


def make_alert(alert_id: str = "alert-1",
               alert_type: str = "Fire",
               severity: str = "HIGH",
               center: Tuple[float, float] = BANGALORE,
               radius_m: float = 5000.0) -> Alert:
    return Alert(
        id=alert_id,
        type=alert_type,
        severity=severity,
        zone=AlertZone(name="Test Zone", center=GeoPoint(latitude=center[0], longitude=center[1]),
                       radius_m=radius_m),
        instructions="Evacuate immediately",
        timestamp=1700000000.0,
    )


def make_contact(contact_id: str = "c1", name: str = "Asha", phone: str = "+919800000001") -> Contact:
    return Contact(id=contact_id, name=name, phone=phone, created_at="2026-01-01T00:00:00+00:00")


def raw_alert(**overrides) -> dict:
    """브로드캐스트 원시 페이로드"""
    payload = {
        "id": "bcast-1",
        "type": "Fire",
        "severity": "HIGH",
        "zone": {"name": "MG Road", "center": {"lat": BANGALORE[0], "lng": BANGALORE[1]}, "radius": 5000},
        "instructions": "Evacuate immediately",
        "timestamp": "2026-10-01T10:00:00Z",
    }
    payload.update(overrides)
    return payload


async def settle(rounds: int = 20) -> None:
    """대기 중인 태스크가 진행되도록 이벤트 루프를 몇 번 양보합니다."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def kv_store():
    return InMemoryKVStore()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def provider():
    return FakeLocationProvider()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def contacts():
    return [make_contact("c1", "Asha", "+919800000001"), make_contact("c2", "Ravi", "+919800000002")]
