"""
EventStream 모듈 단위 테스트
"""

import asyncio
import pytest

from sentinelnet.core.events import EventStream


class TestEventStream:
    """다중 구독자 이벤트 스트림 테스트"""

    @pytest.mark.asyncio
    async def test_each_subscriber_gets_every_event(self):
        stream = EventStream("test")
        a = stream.subscribe()
        b = stream.subscribe()

        stream.publish(1)
        stream.publish(2)

        assert a.drain() == [1, 2]
        assert b.drain() == [1, 2]
        assert stream.subscriber_count == 2

    @pytest.mark.asyncio
    async def test_full_queue_drops_without_blocking(self):
        """느린 구독자 때문에 발행이 막히지 않음"""
        stream = EventStream("test", maxsize=2)
        sub = stream.subscribe()

        for i in range(5):
            stream.publish(i)

        assert sub.drain() == [0, 1]

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self):
        stream = EventStream("test")
        sub = stream.subscribe()
        sub.close()

        stream.publish("ignored")

        assert stream.subscriber_count == 0
        assert sub.get_nowait() is None

    @pytest.mark.asyncio
    async def test_async_iteration(self):
        stream = EventStream("test")
        sub = stream.subscribe()

        async def consume():
            items = []
            async for item in sub:
                items.append(item)
                if len(items) == 3:
                    break
            return items

        task = asyncio.create_task(consume())
        for i in range(3):
            stream.publish(i)

        assert await asyncio.wait_for(task, timeout=1.0) == [0, 1, 2]
