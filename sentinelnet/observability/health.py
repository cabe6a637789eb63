"""
HTTP endpoints for SentinelNet observability.

This module implements health, readiness, metrics, and info endpoints
for monitoring, plus session state, audit logs and the user-facing
emergency controls (SOS toggle, alert dismissal, service requests).
"""

from typing import Optional
from fastapi import FastAPI, HTTPException, Body
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
from sentinelnet.settings import Settings
from sentinelnet.orchestrators.session import EmergencySession
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.http")

def create_app(settings: Settings, session: Optional[EmergencySession] = None) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="SentinelNet Emergency Orchestration Service"
    )

    start_time = time.time()

    def _session() -> EmergencySession:
        if session is None:
            raise HTTPException(status_code=503, detail="Session not started")
        return session

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트 (세션과 위치 추적이 살아 있어야 함)"""
        tracking = session.tracker.status().is_tracking if session is not None else False
        body = {
            "status": "ready" if tracking else "not_ready",
            "service": settings.observability.service_name,
            "tracking": tracking,
            "timestamp": time.time()
        }
        return JSONResponse(body, status_code=200 if tracking else 503)

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        try:
            return Response(
                generate_latest(),
                media_type=CONTENT_TYPE_LATEST
            )
        except Exception as e:
            log.error("메트릭 생성 오류", error=str(e))
            raise HTTPException(status_code=500, detail="Metrics generation failed")

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "dry_run": settings.dry_run
        })

    @app.get("/state")
    async def state():
        """현재 세션 상태"""
        return JSONResponse(_session().snapshot())

    @app.get("/logs")
    async def logs():
        """감사 로그"""
        return JSONResponse(_session().logs())

    @app.post("/alerts")
    async def submit_alert(payload: dict = Body(...)):
        """경보 페이로드를 직접 주입합니다 (브로드캐스트 채널 대체)."""
        decision = await _session().handle_alert(payload)
        if decision is None:
            raise HTTPException(status_code=422, detail="Invalid alert payload")
        return decision.model_dump()

    @app.post("/alerts/{alert_id}/dismiss")
    async def dismiss_alert(alert_id: str):
        """활성 경보 해제"""
        dismissed = _session().dismiss_alert(alert_id)
        if not dismissed:
            raise HTTPException(status_code=404, detail="Alert not active")
        return {"ok": True, "alert_id": alert_id}

    @app.post("/sos/toggle")
    async def toggle_sos():
        """SOS 켜기/끄기"""
        sos_state = await _session().toggle_sos()
        log.info("SOS 토글 요청 처리", phase=sos_state.phase.value, active=sos_state.is_active)
        return sos_state.model_dump(mode="json")

    @app.post("/sos/retry")
    async def retry_sos():
        """실패한 SOS 단계 재시도"""
        started = await _session().retry_sos()
        if not started:
            raise HTTPException(status_code=409, detail="Nothing to retry")
        return {"ok": True}

    @app.post("/service")
    async def request_service(payload: dict = Body(...)):
        """긴급 서비스 요청"""
        service = (payload.get("service") or "").strip()
        if not service:
            raise HTTPException(status_code=400, detail="service is required")
        entry = await _session().request_service(service)
        return entry.model_dump(mode="json")

    @app.post("/battery")
    async def battery(payload: dict = Body(...)):
        """배터리 잔량 보고"""
        try:
            level = float(payload["level"])
        except (KeyError, TypeError, ValueError):
            raise HTTPException(status_code=400, detail="level is required")
        s = _session()
        changed = s.update_battery(level)
        return {"battery_level": s.battery_level, "is_low_power_mode": s.is_low_power_mode,
                "changed": changed}

    @app.get("/contacts")
    async def list_contacts():
        return [c.model_dump() for c in _session().contacts.contacts]

    @app.post("/contacts")
    async def add_contact(payload: dict = Body(...)):
        """비상 연락처 추가"""
        added = await _session().contacts.add(payload.get("name"), payload.get("phone"))
        if not added:
            raise HTTPException(status_code=400, detail="Invalid contact or limit reached")
        return {"ok": True}

    @app.delete("/contacts/{contact_id}")
    async def remove_contact(contact_id: str):
        removed = await _session().contacts.remove(contact_id)
        if not removed:
            raise HTTPException(status_code=404, detail="Contact not found")
        return {"ok": True}

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "state": "/state",
                "logs": "/logs",
                "alerts": "/alerts",
                "sos_toggle": "/sos/toggle",
                "service": "/service",
                "contacts": "/contacts"
            }
        })

    return app
