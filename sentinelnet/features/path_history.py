"""
Location path history for SentinelNet.

This module records where the user has been, skipping fixes that moved
less than a minimum distance, and keeps the most recent points in the
device-local key-value store.
"""

import json
from typing import List, Optional, Tuple
from pydantic import ValidationError
from sentinelnet.core.geofence import haversine_m
from sentinelnet.core.models import Location, PathPoint
from sentinelnet.ports.kvstore import KVStorePort
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.path")


class PathHistory:
    """위치 이동 경로 기록"""

    def __init__(self, store: KVStorePort, *, key: str = "sentinelnet_path_history",
                 min_move_m: float = 10.0, max_points: int = 500):
        """
        초기화합니다.

        Args:
            store: 키-값 저장소
            key: 저장 키
            min_move_m: 기록할 최소 이동 거리 (미터)
            max_points: 보관할 최대 포인트 수
        """
        self.store = store
        self.key = key
        self.min_move_m = min_move_m
        self.max_points = max_points
        self._points: List[PathPoint] = []

    async def load(self) -> int:
        try:
            raw = await self.store.get(self.key)
        except Exception as e:
            log.error("경로 불러오기 실패", error=str(e))
            return 0
        if not raw:
            return 0
        try:
            items = json.loads(raw)
            points = [PathPoint.model_validate(p) for p in items] if isinstance(items, list) else []
        except (json.JSONDecodeError, ValidationError) as e:
            log.error("경로 데이터 파싱 실패", error=str(e))
            return 0
        self._points = points[-self.max_points:]
        return len(self._points)

    async def record(self, location: Location) -> bool:
        """
        위치를 경로에 추가합니다.

        Returns:
            추가되었으면 True (이동 거리가 짧으면 False)
        """
        last = self._points[-1] if self._points else None
        if last is not None:
            moved = haversine_m(last.lat, last.lng, location.latitude, location.longitude)
            # NaN 이동거리도 기록하지 않음
            if not moved >= self.min_move_m:
                return False

        self._points.append(PathPoint(
            lat=location.latitude,
            lng=location.longitude,
            accuracy=location.accuracy,
            timestamp=location.captured_at,
        ))
        self._points = self._points[-self.max_points:]

        try:
            await self.store.put(self.key, json.dumps([p.model_dump() for p in self._points]))
        except Exception as e:
            log.error("경로 저장 실패", error=str(e))
        log.debug("경로 갱신", points=len(self._points))
        return True

    async def clear(self) -> None:
        self._points = []
        try:
            await self.store.delete(self.key)
        except Exception as e:
            log.error("경로 삭제 실패", error=str(e))
        log.info("경로 초기화")

    def last_location(self) -> Optional[Location]:
        """마지막으로 기록된 위치"""
        if not self._points:
            return None
        p = self._points[-1]
        return Location(latitude=p.lat, longitude=p.lng, accuracy=p.accuracy, captured_at=p.timestamp)

    def coordinates(self) -> List[Tuple[float, float]]:
        return [(p.lat, p.lng) for p in self._points]

    @property
    def points(self) -> List[PathPoint]:
        return list(self._points)
