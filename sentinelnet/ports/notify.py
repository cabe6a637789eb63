"""
Notification sink port interface.

This module defines the protocol for the out-of-process service that
notifies contacts and records SOS and service requests. Calls are
best-effort from the core's perspective.
"""

from typing import Optional, Protocol, Sequence
from sentinelnet.core.models import Alert, Contact, Location, SOSPhase

class NotificationSinkPort(Protocol):
    """알림 싱크 포트 인터페이스"""

    async def notify_contacts(self, contacts: Sequence[Contact],
                              location: Optional[Location], alert: Alert) -> dict:
        """
        비상 연락처에 위치와 경보 요약을 알립니다.

        Args:
            contacts: 알릴 연락처
            location: 사용자 위치
            alert: 경보
        """
        ...

    async def sos_start(self, user_id: str, location: Optional[Location],
                        phase: SOSPhase) -> dict:
        """SOS 활성화(또는 위치 갱신)를 서버에 기록합니다."""
        ...

    async def sos_stop(self, user_id: str) -> dict:
        """SOS 종료를 서버에 기록합니다."""
        ...

    async def request_service(self, service: str, location: Optional[Location],
                              user_id: str) -> dict:
        """긴급 서비스 요청을 전송합니다."""
        ...
