"""
Notification sink HTTP client for SentinelNet.

This module provides a client for the SentinelNet backend endpoints that
notify contacts and record SOS and service requests. Requests are sent
once; failures are raised as NotificationError for the caller to log.
"""

import aiohttp
import asyncio
import time
from typing import Dict, Optional, Sequence
from sentinelnet.core.errors import NotificationError
from sentinelnet.core.models import Alert, Contact, Location, SOSPhase
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.notify")

class NotificationClient:
    """알림 싱크 HTTP 클라이언트"""

    def __init__(self,
                 base_url: str,
                 timeout: float = 5.0,
                 dry_run: bool = False):
        """
        초기화합니다.

        Args:
            base_url: 백엔드 기본 URL
            timeout: 요청 타임아웃 (초)
            dry_run: 참이면 전송하지 않고 로그만 남김
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.dry_run = dry_run
        self.session: Optional[aiohttp.ClientSession] = None

        log.info("알림 클라이언트 초기화됨", base_url=self.base_url, dry_run=dry_run)

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        await self.close()

    async def open(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def _post(self, endpoint: str, payload: Dict) -> Dict:
        """
        POST 요청을 한 번 수행합니다 (재시도 없음).

        Args:
            endpoint: API 엔드포인트
            payload: 요청 본문

        Returns:
            응답 데이터

        Raises:
            NotificationError: 네트워크 오류, 타임아웃, 오류 응답
        """
        if self.dry_run:
            log.info("DRY RUN: 알림 전송 생략", endpoint=endpoint)
            return {"dry_run": True}

        await self.open()
        assert self.session is not None
        url = f"{self.base_url}{endpoint}"

        try:
            async with self.session.post(url, json=payload) as response:
                response.raise_for_status()
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            metrics.notifications_failed.labels(endpoint=endpoint).inc()
            raise NotificationError(endpoint, str(e) or type(e).__name__) from e

    async def notify_contacts(self, contacts: Sequence[Contact],
                              location: Optional[Location], alert: Alert) -> Dict:
        """비상 연락처 알림 요청"""
        data = await self._post("/api/contacts/notify", {
            "contacts": [c.to_wire() for c in contacts],
            "location": location.to_wire() if location else None,
            "alert": alert.summary(),
        })
        log.info("연락처 알림 전송됨", count=len(contacts), alert_id=alert.id)
        return data

    async def sos_start(self, user_id: str, location: Optional[Location],
                        phase: SOSPhase) -> Dict:
        """SOS 시작/위치 갱신 기록"""
        return await self._post("/api/sos/start", {
            "userId": user_id,
            "location": location.to_wire() if location else None,
            "phase": phase.value,
        })

    async def sos_stop(self, user_id: str) -> Dict:
        """SOS 종료 기록"""
        return await self._post("/api/sos/stop", {"userId": user_id})

    async def request_service(self, service: str, location: Optional[Location],
                              user_id: str) -> Dict:
        """긴급 서비스 요청"""
        data = await self._post("/api/service/request", {
            "service": service,
            "location": location.to_wire() if location else None,
            "userId": user_id,
            "timestamp": int(time.time() * 1000),
        })
        log.info("서비스 요청 전송됨", service=service)
        return data
