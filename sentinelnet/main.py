# sentinelnet/main.py
import os, asyncio, signal
from typing import Optional
import uvicorn
from sentinelnet.settings import Settings
from sentinelnet.observability.health import create_app
from sentinelnet.observability.logging_setup import setup_logging_dev, setup_logging_json, get_logger
from sentinelnet.adapters.storage import SQLiteKVStore, InMemoryKVStore
from sentinelnet.adapters.http import NotificationClient
from sentinelnet.adapters.mqtt import MqttAlertBroadcast
from sentinelnet.adapters.device import SimulatedLocationProvider, SimulatedDispatcher
from sentinelnet.core.decision import AlertDecisionEngine
from sentinelnet.features import ContactBook, PathHistory
from sentinelnet.orchestrators import (
    AdaptiveLocationTracker, EmergencySession, SOSOrchestrator, SeverityEscalationController,
)

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()
    # 플래그
    s.dry_run = _b("DRY_RUN", s.dry_run)

    # 알림 싱크 (백엔드 HTTP)
    s.notification.base_url = os.getenv("NOTIFY_BASE_URL", s.notification.base_url)
    s.notification.timeout_sec = float(os.getenv("NOTIFY_TIMEOUT_SEC", s.notification.timeout_sec))
    s.notification.user_id = os.getenv("USER_ID", s.notification.user_id)

    # 경보 브로드캐스트 MQTT
    s.broadcast.host = os.getenv("BROADCAST_MQTT_HOST", s.broadcast.host)
    s.broadcast.port = int(os.getenv("BROADCAST_MQTT_PORT", s.broadcast.port))
    s.broadcast.username = os.getenv("BROADCAST_MQTT_USERNAME", s.broadcast.username)
    s.broadcast.password = os.getenv("BROADCAST_MQTT_PASSWORD", s.broadcast.password)
    s.broadcast.client_id = os.getenv("BROADCAST_MQTT_CLIENT_ID", s.broadcast.client_id)
    s.broadcast.keepalive = int(os.getenv("BROADCAST_MQTT_KEEPALIVE", s.broadcast.keepalive))
    s.broadcast.tls = _b("BROADCAST_MQTT_TLS", s.broadcast.tls)
    s.broadcast.topic = os.getenv("BROADCAST_TOPIC", s.broadcast.topic)

    # 저장소
    s.storage.kv_path = os.getenv("KV_PATH", s.storage.kv_path)

    # 에스컬레이션 / SOS
    s.escalation.grace_window_ms = int(os.getenv("AUTO_DIAL_GRACE_MS", s.escalation.grace_window_ms))
    s.sos.fix_timeout_sec = float(os.getenv("SOS_FIX_TIMEOUT_SEC", s.sos.fix_timeout_sec))
    s.sos.emergency_number = os.getenv("SOS_EMERGENCY_NUMBER", s.sos.emergency_number)

    # 추적 / 전력
    c = s.tracker.cadence
    s.tracker.cadence = c.model_copy(update={
        "idle": c.idle.model_copy(update={"interval_sec": float(os.getenv("TRACK_IDLE_SEC", c.idle.interval_sec))}),
        "sos": c.sos.model_copy(update={"interval_sec": float(os.getenv("TRACK_SOS_SEC", c.sos.interval_sec))}),
        "low_power": c.low_power.model_copy(update={"interval_sec": float(os.getenv("TRACK_LOW_POWER_SEC", c.low_power.interval_sec))}),
    })
    s.power.low_battery_threshold = float(os.getenv("LOW_BATTERY_THRESHOLD", s.power.low_battery_threshold))
    s.decision.log_capacity = int(os.getenv("DECISION_LOG_CAPACITY", s.decision.log_capacity))

    # 시뮬레이션 장치
    s.simulation.latitude = float(os.getenv("SIM_LATITUDE", s.simulation.latitude))
    s.simulation.longitude = float(os.getenv("SIM_LONGITUDE", s.simulation.longitude))
    s.simulation.failure_rate = float(os.getenv("SIM_FAILURE_RATE", s.simulation.failure_rate))

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("METRICS_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.log_json = _b("LOG_JSON", s.observability.log_json)

    return s

def build_session(s: Settings, notifier: NotificationClient) -> EmergencySession:
    """설정으로부터 세션과 하위 구성요소를 조립합니다."""
    store = InMemoryKVStore() if s.dry_run else SQLiteKVStore(s.storage.kv_path)
    provider = SimulatedLocationProvider(
        s.simulation.latitude,
        s.simulation.longitude,
        failure_rate=s.simulation.failure_rate,
    )
    dispatcher = SimulatedDispatcher()

    escalation = SeverityEscalationController(
        notifier, dispatcher,
        grace_window_ms=s.escalation.grace_window_ms,
        emergency_numbers=s.escalation.emergency_numbers,
        default_number=s.escalation.default_number,
        default_service=s.escalation.default_service,
    )
    sos = SOSOrchestrator(
        store, provider, dispatcher,
        escalation=escalation,
        snapshot_key=s.storage.sos_key,
        fix_timeout_sec=s.sos.fix_timeout_sec,
        emergency_number=s.sos.emergency_number,
        emergency_service=s.sos.emergency_service,
        sms_template=s.sos.sms_template,
    )
    return EmergencySession(
        engine=AlertDecisionEngine(capacity=s.decision.log_capacity),
        escalation=escalation,
        sos=sos,
        tracker=AdaptiveLocationTracker(provider, cadence_table=s.tracker.cadence),
        contacts=ContactBook(store, key=s.storage.contacts_key),
        path=PathHistory(store, key=s.storage.path_key,
                         min_move_m=s.tracker.path_min_move_m,
                         max_points=s.tracker.path_max_points),
        sink=notifier,
        user_id=s.notification.user_id,
        low_battery_threshold=s.power.low_battery_threshold,
    )

async def start_http(settings: Settings, session: EmergencySession) -> Optional[asyncio.Task]:
    if not settings.observability.metrics_enabled: return None
    app = create_app(settings, session)
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port, log_level="info")
    ).serve())

async def main():
    s = build_settings()
    if s.observability.log_json:
        setup_logging_json(s.observability.log_level)
    else:
        setup_logging_dev(s.observability.log_level)
    log = get_logger("sentinelnet.main")
    log.info("설정 로드 완료", dry_run=s.dry_run)

    notifier = NotificationClient(s.notification.base_url, timeout=s.notification.timeout_sec,
                                  dry_run=s.dry_run)
    await notifier.open()

    session = build_session(s, notifier)
    recovered = await session.open()
    if recovered is not None:
        log.warning("이전 SOS 세션 복구됨", phase=recovered.phase.value)
    log.info("긴급 대응 세션 시작")

    broadcast = MqttAlertBroadcast(
        host=s.broadcast.host,
        port=s.broadcast.port,
        topic=s.broadcast.topic,
        username=s.broadcast.username,
        password=s.broadcast.password,
        tls=s.broadcast.tls,
        client_id=s.broadcast.client_id,
        keepalive=s.broadcast.keepalive,
        qos=s.broadcast.qos,
    )

    http_task = await start_http(s, session)
    if http_task:
        log.info("HTTP 서버 시작됨", port=s.observability.http_port)

    stop = asyncio.Future()
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass
    except RuntimeError: pass

    run_task = asyncio.create_task(session.run(broadcast))
    await stop

    log.info("종료 신호 수신")
    await broadcast.stop()
    run_task.cancel()
    await session.close()
    await notifier.close()
    if http_task: http_task.cancel()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
