"""
Normalization functions for SentinelNet.

This module converts raw broadcast payloads into internal
Alert models.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict
from dateutil import parser as date_parser
from jsonschema import validate
from jsonschema.exceptions import ValidationError
from .errors import AlertPayloadError
from .models import Alert, AlertZone, GeoPoint
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.normalize")

SCHEMA = json.loads((Path(__file__).parent / "alert_schema.json").read_text(encoding="utf-8"))

# 재난 유형 매핑 (대소문자/표기 변형 허용)
TYPE_MAP = {
    "fire": "Fire",
    "flood": "Flood",
    "earthquake": "Earthquake",
    "toxic gas leak": "Toxic Gas Leak",
    "toxicgasleak": "Toxic Gas Leak",
    "toxic_gas_leak": "Toxic Gas Leak",
    "gas leak": "Toxic Gas Leak",
}

SEVERITY_MAP = {
    "low": "LOW",
    "medium": "MEDIUM",
    "moderate": "MEDIUM",
    "high": "HIGH",
    "severe": "HIGH",
}


def _parse_timestamp(value: Any) -> float:
    """ISO 문자열 또는 epoch (초/밀리초)를 Unix timestamp로 변환"""
    if value is None or value == "":
        return time.time()
    if isinstance(value, (int, float)):
        # 밀리초 단위 (Date.now()) 보정
        return float(value) / 1000.0 if value > 1e11 else float(value)
    try:
        return date_parser.isoparse(str(value)).timestamp()
    except (ValueError, OverflowError) as e:
        raise AlertPayloadError(f"invalid timestamp: {value!r}") from e


def to_alert(raw: Dict[str, Any]) -> Alert:
    """
    브로드캐스트 페이로드를 Alert 모델로 변환합니다.

    Args:
        raw: 원시 경보 딕셔너리

    Returns:
        Alert 모델

    Raises:
        AlertPayloadError: 스키마 검증 또는 매핑 실패
    """
    if not isinstance(raw, dict):
        raise AlertPayloadError(f"unsupported payload type: {type(raw).__name__}")

    try:
        validate(instance=raw, schema=SCHEMA)
    except ValidationError as e:
        log.error("경보 스키마 검증 실패", error=e.message)
        raise AlertPayloadError(f"schema validation failed: {e.message}") from e

    alert_type = TYPE_MAP.get(str(raw["type"]).strip().lower())
    if alert_type is None:
        raise AlertPayloadError(f"unknown alert type: {raw['type']!r}")

    severity = SEVERITY_MAP.get(str(raw["severity"]).strip().lower())
    if severity is None:
        raise AlertPayloadError(f"unknown severity: {raw['severity']!r}")

    zone = raw["zone"]
    center = zone["center"]

    return Alert(
        id=str(raw["id"]),
        type=alert_type,
        severity=severity,
        zone=AlertZone(
            name=zone.get("name") or alert_type,
            center=GeoPoint(latitude=float(center["lat"]), longitude=float(center["lng"])),
            radius_m=float(zone["radius"]),
        ),
        instructions=raw.get("instructions") or "",
        timestamp=_parse_timestamp(raw.get("timestamp")),
    )
