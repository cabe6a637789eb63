"""
Simulated device adapters for SentinelNet.

This module provides stand-ins for GPS and for SMS/call delivery.
Real delivery is out of scope: dispatches are logged and recorded only.
"""

import asyncio
import math
import random
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from sentinelnet.core.errors import DispatchError, LocationUnavailableError
from sentinelnet.core.models import Contact, Location
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.device")

# 미터 → 위도 변환 계수 (근사)
_M_PER_DEG_LAT = 111_320.0


class SimulatedLocationProvider:
    """기준 좌표 주변을 흔들리는 측위 시뮬레이터"""

    def __init__(self,
                 latitude: float,
                 longitude: float,
                 *,
                 jitter_m: float = 15.0,
                 accuracy_m: float = 20.0,
                 latency_sec: float = 0.2,
                 failure_rate: float = 0.0,
                 rng: Optional[random.Random] = None):
        """
        초기화합니다.

        Args:
            latitude: 기준 위도
            longitude: 기준 경도
            jitter_m: 측위마다 더해지는 최대 흔들림 (미터)
            accuracy_m: 보고할 정확도 (미터)
            latency_sec: 측위 지연 (초)
            failure_rate: 측위 실패 확률 (0.0 ~ 1.0)
            rng: 난수 생성기
        """
        self.latitude = latitude
        self.longitude = longitude
        self.jitter_m = jitter_m
        self.accuracy_m = accuracy_m
        self.latency_sec = latency_sec
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()

    def move_to(self, latitude: float, longitude: float) -> None:
        self.latitude = latitude
        self.longitude = longitude

    async def get_fix(self, *, timeout_sec: float, high_accuracy: bool) -> Location:
        if self.latency_sec > timeout_sec:
            await asyncio.sleep(timeout_sec)
            raise LocationUnavailableError("location fix timed out", code="TIMEOUT")
        await asyncio.sleep(self.latency_sec)

        if self.rng.random() < self.failure_rate:
            raise LocationUnavailableError("no GPS signal", code="POSITION_UNAVAILABLE")

        # 고정밀 모드는 흔들림을 줄임
        jitter = self.jitter_m / 3 if high_accuracy else self.jitter_m
        dlat = self.rng.uniform(-jitter, jitter) / _M_PER_DEG_LAT
        cos_lat = max(math.cos(math.radians(self.latitude)), 1e-6)
        dlng = self.rng.uniform(-jitter, jitter) / (_M_PER_DEG_LAT * cos_lat)

        return Location(
            latitude=self.latitude + dlat,
            longitude=self.longitude + dlng,
            accuracy=self.accuracy_m / 2 if high_accuracy else self.accuracy_m,
            captured_at=time.time(),
        )


@dataclass
class SimulatedDispatcher:
    """SMS/전화 발신 시뮬레이터 (기록과 로그만 남김)"""
    sms: List[Tuple[List[str], str]] = field(default_factory=list)
    calls: List[Tuple[str, str]] = field(default_factory=list)

    async def send_sms(self, contacts: Sequence[Contact], message: str) -> None:
        if not message:
            raise DispatchError("empty SOS message")
        phones = [c.phone for c in contacts]
        self.sms.append((phones, message))
        log.info("SMS 발송 (시뮬레이션)", recipients=len(phones))

    async def dial(self, number: str, service_name: str) -> None:
        if not number:
            raise DispatchError(f"no number to dial for {service_name}")
        self.calls.append((number, service_name))
        log.warning("긴급 전화 발신 (시뮬레이션)", number=number, service=service_name)
