"""
Scheduling utilities for SentinelNet.

This module provides the timer seam used for cancellable deferred
actions, plus a helper for tracking fire-and-forget tasks.
"""

import asyncio
from typing import Awaitable, Callable, Protocol, Set
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.scheduling")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """지연 실행 스케줄러 인터페이스"""

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerHandle:
        """
        delay_sec 후에 callback을 실행하도록 예약합니다.

        Returns:
            취소 가능한 핸들
        """
        ...


class LoopScheduler:
    """실행 중인 asyncio 이벤트 루프 기반 스케줄러"""

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay_sec, callback)


class TaskGroup:
    """fire-and-forget 태스크 보관소 (GC로 사라지지 않도록 참조 유지)"""

    def __init__(self, name: str):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, *, label: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._guard(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Awaitable, label: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # 부수 효과 실패는 호출자에게 전파하지 않음
            log.error("백그라운드 작업 실패", group=self.name, task=label, error=str(e))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """남은 태스크가 끝날 때까지 기다립니다."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
