"""
Alert broadcast port interface.

This module defines the protocol for the inbound alert broadcast channel.
"""

from typing import AsyncIterator, Protocol

class AlertBroadcastPort(Protocol):
    """경보 브로드캐스트 수신 포트 인터페이스"""

    def recv(self) -> AsyncIterator[dict]:
        """
        원시 경보 데이터를 비동기적으로 수신합니다.

        Yields:
            원시 딕셔너리 데이터
        """
        ...
