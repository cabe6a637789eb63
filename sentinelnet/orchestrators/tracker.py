"""
Adaptive location tracker for SentinelNet.

This module keeps a single polling subscription against the location
provider, with a cadence chosen from the tracking context. Fix failures
are reported and polling continues at the same cadence.
"""

import asyncio
import time
from typing import Callable, Optional
from sentinelnet.core.cadence import Cadence, CadenceTable, select_cadence
from sentinelnet.core.events import EventStream
from sentinelnet.core.models import Location, TrackingContext, TrackingStatus
from sentinelnet.ports.device import LocationProviderPort
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.tracker")

LocationCallback = Callable[[Location], None]
ErrorCallback = Callable[[Exception], None]


class AdaptiveLocationTracker:
    """상황 적응형 위치 추적기"""

    def __init__(self,
                 provider: LocationProviderPort,
                 *,
                 cadence_table: Optional[CadenceTable] = None):
        """
        초기화합니다.

        Args:
            provider: 위치 측위 포트
            cadence_table: 모드별 폴링 주기 표
        """
        self.provider = provider
        self.cadence_table = cadence_table or CadenceTable()
        # 최신 위치를 필요로 하는 소비자는 콜백 대신 구독 가능
        self.locations: EventStream[Location] = EventStream("locations")

        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._cadence: Optional[Cadence] = None
        self._context: Optional[TrackingContext] = None
        self._last_fix_at: Optional[float] = None
        self._fix_count = 0
        self._error_count = 0

    def start(self,
              on_location: LocationCallback,
              on_error: ErrorCallback,
              context: TrackingContext) -> Cadence:
        """
        추적을 시작합니다. 이미 실행 중이면 기존 구독을 교체합니다.

        Args:
            on_location: 측위 성공 콜백
            on_error: 측위 실패 콜백
            context: 추적 컨텍스트

        Returns:
            적용된 폴링 주기
        """
        # 기존 구독을 먼저 끊어 중복 콜백을 막음
        self._cancel_task()

        cadence = select_cadence(context, self.cadence_table)
        self._generation += 1
        self._cadence = cadence
        self._context = context
        self._task = asyncio.get_running_loop().create_task(
            self._poll(self._generation, cadence, on_location, on_error)
        )
        metrics.tracking_interval_seconds.set(cadence.interval_sec)

        log.info("위치 추적 시작",
                 mode=cadence.mode,
                 interval_sec=cadence.interval_sec,
                 high_accuracy=cadence.high_accuracy,
                 battery_level=context.battery_level)
        return cadence

    def stop(self) -> None:
        """추적을 중지합니다. 실행 중이 아니면 아무것도 하지 않습니다."""
        if self._task is None:
            return
        self._cancel_task()
        self._generation += 1
        self._cadence = None
        log.info("위치 추적 중지")

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _poll(self,
                    generation: int,
                    cadence: Cadence,
                    on_location: LocationCallback,
                    on_error: ErrorCallback) -> None:
        """폴링 루프 (취소될 때까지)"""
        while generation == self._generation:
            t0 = time.perf_counter()
            try:
                location = await self.provider.get_fix(
                    timeout_sec=cadence.fix_timeout_sec,
                    high_accuracy=cadence.high_accuracy,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if generation != self._generation:
                    return
                self._error_count += 1
                metrics.location_errors.labels(mode=cadence.mode).inc()
                log.warning("위치 측위 실패", mode=cadence.mode, error=str(e))
                self._deliver(on_error, e)
            else:
                if generation != self._generation:
                    return
                metrics.fix_seconds.observe(time.perf_counter() - t0)
                metrics.location_fixes.labels(mode=cadence.mode).inc()
                self._fix_count += 1
                self._last_fix_at = location.captured_at
                self.locations.publish(location)
                self._deliver(on_location, location)

            await asyncio.sleep(cadence.interval_sec)

    @staticmethod
    def _deliver(callback: Callable, value) -> None:
        try:
            callback(value)
        except Exception as e:
            # 소비자 오류가 추적 루프를 멈추지 않도록
            log.error("위치 콜백 처리 오류", error=str(e))

    def status(self) -> TrackingStatus:
        """현재 추적 상태를 반환합니다."""
        cadence = self._cadence
        return TrackingStatus(
            is_tracking=self._task is not None and not self._task.done(),
            mode=cadence.mode if cadence else None,
            interval_sec=cadence.interval_sec if cadence else None,
            high_accuracy=cadence.high_accuracy if cadence else False,
            last_fix_at=self._last_fix_at,
            fix_count=self._fix_count,
            error_count=self._error_count,
        )

    @property
    def context(self) -> Optional[TrackingContext]:
        return self._context
