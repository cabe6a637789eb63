# sentinelnet/settings.py
from __future__ import annotations
from typing import Dict
from pydantic import BaseModel, Field
from sentinelnet.core.cadence import CadenceTable

class NotificationConfig(BaseModel):
    base_url: str = "http://localhost:3001"
    timeout_sec: float = 5.0
    user_id: str = "demo-user"

class BroadcastConfig(BaseModel):
    host: str = "localhost"
    port: int = 1883
    topic: str = "sentinelnet/alerts"
    username: str | None = None
    password: str | None = None
    tls: bool = False
    client_id: str | None = None
    keepalive: int = 30
    qos: int = 1

class StorageConfig(BaseModel):
    kv_path: str = "/data/sentinelnet.db"
    sos_key: str = "sentinelnet_sos_state"
    contacts_key: str = "sentinelnet_emergency_contacts"
    path_key: str = "sentinelnet_path_history"

class TrackerConfig(BaseModel):
    cadence: CadenceTable = Field(default_factory=CadenceTable)
    # 경로 기록 (미터 / 최대 포인트)
    path_min_move_m: float = 10.0
    path_max_points: int = 500

class EscalationConfig(BaseModel):
    grace_window_ms: int = 2000
    # 재난 유형 → (번호, 서비스명)
    emergency_numbers: Dict[str, Dict[str, str]] = Field(default_factory=lambda: {
        "Fire": {"number": "101", "service": "Fire Department"},
        "Flood": {"number": "112", "service": "Police/Emergency"},
        "Earthquake": {"number": "112", "service": "Police/Emergency"},
        "Toxic Gas Leak": {"number": "108", "service": "Ambulance"},
    })
    default_number: str = "112"
    default_service: str = "Police/Emergency"

class SOSConfig(BaseModel):
    fix_timeout_sec: float = 10.0
    emergency_number: str = "112"
    emergency_service: str = "Police/Emergency"
    sms_template: str = "SOS! I need help. My location: https://maps.google.com/?q={lat},{lng}"

class DecisionConfig(BaseModel):
    log_capacity: int = 50

class PowerConfig(BaseModel):
    low_battery_threshold: float = 20.0

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "SentinelNet"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"
    log_json: bool = False

class SimulationConfig(BaseModel):
    latitude: float = 12.9716
    longitude: float = 77.5946
    failure_rate: float = 0.0

class Settings(BaseModel):
    # 상위 플래그
    dry_run: bool = False

    # 하위 섹션 (기본값/팩토리로 누락 방지)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    escalation: EscalationConfig = Field(default_factory=EscalationConfig)
    sos: SOSConfig = Field(default_factory=SOSConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    power: PowerConfig = Field(default_factory=PowerConfig)
    observability: Observability = Field(default_factory=Observability)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
