"""
Error types for SentinelNet.

Errors raised by adapters and normalization. Orchestrators catch these at
their boundaries and report them as events or log entries.
"""


class SentinelError(Exception):
    """SentinelNet 기본 예외"""


class AlertPayloadError(SentinelError):
    """브로드캐스트 경보 페이로드가 올바르지 않음"""


class LocationUnavailableError(SentinelError):
    """위치 측위 실패 (권한 거부, 타임아웃, 신호 없음)"""

    def __init__(self, message: str, *, code: str = "POSITION_UNAVAILABLE"):
        super().__init__(message)
        self.code = code


class DispatchError(SentinelError):
    """SMS/전화 발신 실패"""


class NotificationError(SentinelError):
    """알림 싱크 호출 실패"""

    def __init__(self, endpoint: str, message: str):
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint
