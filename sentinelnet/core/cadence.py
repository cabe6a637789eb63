"""
Location polling cadence for SentinelNet.

Maps a TrackingContext to a polling mode. Low-power mode takes
precedence over an active SOS.
"""

from typing import Literal
from pydantic import BaseModel, ConfigDict
from .models import TrackingContext

TrackingMode = Literal["IDLE", "SOS", "LOW_POWER"]


class Cadence(BaseModel):
    """폴링 주기 설정"""
    model_config = ConfigDict(frozen=True)

    mode: TrackingMode
    interval_sec: float
    high_accuracy: bool
    fix_timeout_sec: float


class CadenceTable(BaseModel):
    """모드별 폴링 주기 표"""
    idle: Cadence = Cadence(mode="IDLE", interval_sec=30.0, high_accuracy=False, fix_timeout_sec=15.0)
    sos: Cadence = Cadence(mode="SOS", interval_sec=5.0, high_accuracy=True, fix_timeout_sec=10.0)
    low_power: Cadence = Cadence(mode="LOW_POWER", interval_sec=120.0, high_accuracy=False, fix_timeout_sec=30.0)


def select_cadence(context: TrackingContext, table: CadenceTable | None = None) -> Cadence:
    """
    컨텍스트에 맞는 폴링 주기를 고릅니다.

    Args:
        context: 추적 컨텍스트
        table: 주기 표 (None이면 기본값)

    Returns:
        선택된 주기
    """
    table = table or CadenceTable()
    # 저전력이 SOS보다 우선 (제품 확인 필요)
    if context.is_low_power_mode:
        return table.low_power
    if context.is_sos_active:
        return table.sos
    return table.idle
