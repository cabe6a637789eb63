"""
Core domain models for SentinelNet.

This module defines the core domain models using Pydantic v2
for type safety and validation.
"""

from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

# 심각도 / 재난 유형 정의
Severity = Literal["LOW", "MEDIUM", "HIGH"]
AlertType = Literal["Fire", "Flood", "Earthquake", "Toxic Gas Leak"]

# 결정 사유
DecisionReason = Literal["IN_ZONE", "OUT_OF_ZONE", "NO_LOCATION", "INVALID_LOCATION"]


class GeoPoint(BaseModel):
    """위경도 좌표"""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class Location(GeoPoint):
    """측위 결과 (한 번 캡처되면 변경되지 않음)"""
    accuracy: float = 0.0
    captured_at: float = 0.0

    def to_wire(self) -> dict:
        return {"lat": self.latitude, "lng": self.longitude, "accuracy": self.accuracy}


class AlertZone(BaseModel):
    """원형 경보 영역"""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    center: GeoPoint
    radius_m: float


class Alert(BaseModel):
    """재난 경보"""
    model_config = ConfigDict(frozen=True)

    id: str
    type: AlertType
    severity: Severity
    zone: AlertZone
    instructions: str = ""
    timestamp: float

    def summary(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "timestamp": self.timestamp,
        }


class Decision(BaseModel):
    """경보 평가 결과 (감사 로그에 추가만 됨)"""
    model_config = ConfigDict(frozen=True)

    alert_id: str
    should_trigger: bool
    distance_m: Optional[float] = None
    reason: DecisionReason
    severity: Severity
    used_last_known: bool = False
    evaluated_at: float


class SOSPhase(str, Enum):
    """SOS 활성화 단계 (선언 순서가 진행 순서)"""
    IDLE = "IDLE"
    GPS_CAPTURING = "GPS_CAPTURING"
    GPS_CAPTURED = "GPS_CAPTURED"
    SMS_DISPATCHING = "SMS_DISPATCHING"
    SMS_DISPATCHED = "SMS_DISPATCHED"
    CALL_INITIATING = "CALL_INITIATING"
    STREAMING = "STREAMING"


SOS_SEQUENCE: List[SOSPhase] = [
    SOSPhase.GPS_CAPTURING,
    SOSPhase.GPS_CAPTURED,
    SOSPhase.SMS_DISPATCHING,
    SOSPhase.SMS_DISPATCHED,
    SOSPhase.CALL_INITIATING,
    SOSPhase.STREAMING,
]


def next_phase(phase: SOSPhase) -> Optional[SOSPhase]:
    """진행 순서상 다음 단계. STREAMING 이후는 없음."""
    if phase == SOSPhase.IDLE:
        return SOS_SEQUENCE[0]
    idx = SOS_SEQUENCE.index(phase)
    if idx + 1 < len(SOS_SEQUENCE):
        return SOS_SEQUENCE[idx + 1]
    return None


class SOSState(BaseModel):
    """세션당 하나의 SOS 상태"""
    model_config = ConfigDict(frozen=True)

    phase: SOSPhase = SOSPhase.IDLE
    is_active: bool = False
    location: Optional[Location] = None
    started_at: Optional[float] = None
    last_updated_at: Optional[float] = None


class SOSSnapshot(BaseModel):
    """크래시 복구용 영속 스냅샷"""
    phase: SOSPhase
    location: Optional[Location] = None
    started_at: Optional[float] = None


class TrackingContext(BaseModel):
    """추적 주기 결정용 컨텍스트 (영속화하지 않음)"""
    model_config = ConfigDict(frozen=True)

    is_sos_active: bool = False
    battery_level: float = Field(default=100.0, ge=0, le=100)
    is_low_power_mode: bool = False


class TrackingStatus(BaseModel):
    is_tracking: bool = False
    mode: Optional[str] = None
    interval_sec: Optional[float] = None
    high_accuracy: bool = False
    last_fix_at: Optional[float] = None
    fix_count: int = 0
    error_count: int = 0


class Contact(BaseModel):
    """비상 연락처"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    phone: str
    created_at: str

    def to_wire(self) -> dict:
        return {"name": self.name, "phone": self.phone}


class PathPoint(BaseModel):
    lat: float
    lng: float
    accuracy: float = 0.0
    timestamp: float


class EscalationRecord(BaseModel):
    """에스컬레이션 조치 이력"""
    action: Literal["notify", "notify_skipped", "dial_scheduled", "dial_cancelled", "dial_fired"]
    alert_id: Optional[str] = None
    number: Optional[str] = None
    service: Optional[str] = None
    at: float


class SOSLogEntry(BaseModel):
    kind: str
    phase: SOSPhase
    location: Optional[Location] = None
    error: Optional[str] = None
    timestamp: float


class ServiceRequestLog(BaseModel):
    service: str
    location: Optional[Location] = None
    user_id: str
    timestamp: float
    response: Optional[dict] = None
    error: Optional[str] = None
