"""
Device port interfaces.

This module defines the protocols for the device capabilities the core
drives: location fixes and emergency dispatch (SMS and calls).
"""

from typing import Protocol, Sequence
from sentinelnet.core.models import Contact, Location

class LocationProviderPort(Protocol):
    """위치 측위 포트 인터페이스"""

    async def get_fix(self, *, timeout_sec: float, high_accuracy: bool) -> Location:
        """
        위치 측위를 한 번 수행합니다.

        Args:
            timeout_sec: 측위 타임아웃 (초)
            high_accuracy: 고정밀 측위 여부

        Returns:
            측위 결과

        Raises:
            LocationUnavailableError: 권한 거부, 타임아웃, 신호 없음
        """
        ...


class EmergencyDispatchPort(Protocol):
    """SMS/전화 발신 포트 인터페이스"""

    async def send_sms(self, contacts: Sequence[Contact], message: str) -> None:
        """연락처에 SMS를 보냅니다."""
        ...

    async def dial(self, number: str, service_name: str) -> None:
        """긴급 번호로 전화를 겁니다."""
        ...
