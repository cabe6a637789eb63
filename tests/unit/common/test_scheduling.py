"""
Scheduling 유틸리티 단위 테스트
"""

import asyncio
import pytest

from sentinelnet.common import LoopScheduler, TaskGroup


class TestLoopScheduler:
    """이벤트 루프 스케줄러 테스트"""

    @pytest.mark.asyncio
    async def test_call_later_fires(self):
        fired = asyncio.Event()
        LoopScheduler().call_later(0.01, fired.set)
        await asyncio.wait_for(fired.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancelled_timer_does_not_fire(self):
        calls = []
        handle = LoopScheduler().call_later(0.01, lambda: calls.append(1))
        handle.cancel()
        await asyncio.sleep(0.03)
        assert calls == []


class TestTaskGroup:
    """fire-and-forget 태스크 보관소 테스트"""

    @pytest.mark.asyncio
    async def test_join_waits_for_all(self):
        group = TaskGroup("test")
        done = []

        async def work(i):
            await asyncio.sleep(0.001 * i)
            done.append(i)

        for i in range(3):
            group.spawn(work(i), label=f"work-{i}")
        assert group.pending == 3

        await group.join()
        assert sorted(done) == [0, 1, 2]
        assert group.pending == 0

    @pytest.mark.asyncio
    async def test_failures_are_contained(self):
        """실패한 태스크는 로그만 남기고 전파하지 않음"""
        group = TaskGroup("test")

        async def boom():
            raise RuntimeError("boom")

        task = group.spawn(boom(), label="boom")
        await group.join()

        assert task.done()
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        group = TaskGroup("test")
        task = group.spawn(asyncio.sleep(10), label="sleep")
        await asyncio.sleep(0)
        group.cancel_all()
        await group.join()
        assert task.cancelled()
