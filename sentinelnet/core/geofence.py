"""
Geofence evaluation for SentinelNet.

This module provides great-circle distance and circular zone
containment. Functions are pure and never raise on bad input:
non-finite coordinates produce NaN distances and False containment.
"""

import math
from .models import AlertZone, GeoPoint

# 지구 반지름 (미터)
EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터), 입력이 유한하지 않으면 NaN
    """
    if not all(math.isfinite(v) for v in (lat1, lon1, lat2, lon2)):
        return math.nan

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 부동소수점 오차로 1을 넘는 경우
    if a > 1.0:
        a = 1.0
    c = 2 * math.asin(math.sqrt(a))

    return EARTH_RADIUS_M * c


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """두 좌표 사이의 거리 (미터)"""
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def contains(zone: AlertZone, point: GeoPoint) -> bool:
    """
    점이 원형 영역 안에 있는지 확인합니다. 경계(거리 == 반경)는 포함입니다.

    Args:
        zone: 경보 영역
        point: 확인할 좌표

    Returns:
        영역 안이면 True, NaN 입력이면 False
    """
    return distance_m(zone.center, point) <= zone.radius_m


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """좌표가 유효한지 확인합니다."""
    return (math.isfinite(lat) and math.isfinite(lon)
            and -90 <= lat <= 90 and -180 <= lon <= 180)
