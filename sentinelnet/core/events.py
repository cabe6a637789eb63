"""
In-process event stream for SentinelNet.

Publishers push events; each subscriber gets its own asyncio queue so
UI, audit and notification consumers stay independent of each other.
"""

import asyncio
from typing import AsyncIterator, Generic, List, Optional, TypeVar
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.events")

T = TypeVar("T")


class Subscription(Generic[T]):
    """이벤트 구독 (비동기 이터레이터)"""

    def __init__(self, stream: "EventStream[T]", maxsize: int):
        self._stream = stream
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        return await self.queue.get()

    def get_nowait(self) -> Optional[T]:
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def drain(self) -> List[T]:
        """큐에 쌓인 이벤트를 모두 꺼냅니다."""
        items = []
        while not self.queue.empty():
            items.append(self.queue.get_nowait())
        return items

    def close(self) -> None:
        self.closed = True
        self._stream.unsubscribe(self)


class EventStream(Generic[T]):
    """다중 구독자 이벤트 스트림"""

    def __init__(self, name: str, *, maxsize: int = 1000):
        self.name = name
        self.maxsize = maxsize
        self._subscribers: List[Subscription[T]] = []

    def subscribe(self) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, self.maxsize)
        self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription[T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def publish(self, event: T) -> None:
        """모든 구독자 큐에 이벤트를 넣습니다 (블록하지 않음)."""
        for sub in list(self._subscribers):
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                # 느린 구독자가 발행자를 막지 않도록 드롭
                log.warning("구독자 큐가 가득 찼습니다. 이벤트를 드롭합니다.", stream=self.name)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
