"""
Alert Decision 모듈 단위 테스트

이 모듈은 경보 평가 함수와 결정 감사 로그를 테스트합니다.
"""

import math
import pytest
from hypothesis import given, strategies as st

from sentinelnet.core.decision import AlertDecisionEngine, evaluate_alert
from conftest import BANGALORE, make_alert, make_location


class TestEvaluateAlert:
    """evaluate_alert 함수 테스트"""

    def test_no_location_never_triggers(self):
        """위치가 없으면 트리거하지 않음"""
        decision = evaluate_alert(None, make_alert(), now=1.0)

        assert decision.should_trigger is False
        assert decision.reason == "NO_LOCATION"
        assert decision.distance_m is None
        assert decision.evaluated_at == 1.0

    def test_bangalore_fire_in_zone(self):
        """방갈로르 중심 5km 화재 경보, 사용자 약 1.5km 거리 → 트리거"""
        alert = make_alert(center=BANGALORE, radius_m=5000)
        user = make_location(12.9850, 77.5946)

        decision = evaluate_alert(user, alert)

        assert decision.should_trigger is True
        assert decision.reason == "IN_ZONE"
        assert decision.distance_m == pytest.approx(1490, rel=0.02)
        assert decision.severity == "HIGH"

    def test_bangalore_user_at_zone_center(self):
        """사용자가 반경 50km 영역의 중심에 있음 → 트리거, 거리 약 0"""
        alert = make_alert(center=BANGALORE, radius_m=50000)

        decision = evaluate_alert(make_location(*BANGALORE), alert)

        assert decision.should_trigger is True
        assert decision.distance_m == pytest.approx(0.0, abs=1e-6)

    def test_out_of_zone(self):
        """영역 밖이면 거리와 함께 OUT_OF_ZONE"""
        alert = make_alert(center=BANGALORE, radius_m=1000)
        user = make_location(13.0500, 77.5946)

        decision = evaluate_alert(user, alert)

        assert decision.should_trigger is False
        assert decision.reason == "OUT_OF_ZONE"
        assert decision.distance_m > 1000

    def test_invalid_location_fails_closed(self):
        """잘못된 좌표는 트리거하지 않음"""
        decision = evaluate_alert(make_location(math.nan, 77.0), make_alert())

        assert decision.should_trigger is False
        assert decision.reason == "INVALID_LOCATION"

    def test_last_known_location_is_used_and_flagged(self):
        """현재 위치가 없으면 마지막 위치를 사용하고 표시"""
        decision = evaluate_alert(None, make_alert(), last_known=make_location(*BANGALORE))

        assert decision.should_trigger is True
        assert decision.used_last_known is True

    def test_current_location_preferred_over_last_known(self):
        """현재 위치가 있으면 마지막 위치는 무시"""
        decision = evaluate_alert(
            make_location(*BANGALORE), make_alert(),
            last_known=make_location(40.0, -70.0),
        )

        assert decision.should_trigger is True
        assert decision.used_last_known is False

    @given(severity=st.sampled_from(["LOW", "MEDIUM", "HIGH"]),
           alert_type=st.sampled_from(["Fire", "Flood", "Earthquake", "Toxic Gas Leak"]))
    def test_trigger_is_independent_of_severity(self, severity, alert_type):
        """심각도/유형은 트리거 여부에 영향을 주지 않음"""
        alert = make_alert(alert_type=alert_type, severity=severity)
        decision = evaluate_alert(make_location(*BANGALORE), alert)

        assert decision.should_trigger is True
        assert decision.severity == severity


class TestAlertDecisionEngine:
    """결정 엔진 감사 로그 테스트"""

    def test_every_decision_is_logged(self):
        """트리거 여부와 무관하게 모두 기록"""
        engine = AlertDecisionEngine()
        engine.evaluate(None, make_alert("a"))
        engine.evaluate(make_location(*BANGALORE), make_alert("b"))

        assert [d.alert_id for d in engine.decisions] == ["a", "b"]
        assert [d.should_trigger for d in engine.decisions] == [False, True]

    def test_log_is_bounded_fifo(self):
        """51번째 결정이 가장 오래된 것을 밀어냄"""
        engine = AlertDecisionEngine(capacity=50)
        for i in range(51):
            engine.evaluate(None, make_alert(f"alert-{i}"))

        decisions = engine.decisions
        assert len(decisions) == 50
        assert decisions[0].alert_id == "alert-1"
        assert decisions[-1].alert_id == "alert-50"
        assert engine.capacity == 50

    def test_clock_is_injected(self):
        engine = AlertDecisionEngine(clock=lambda: 42.0)
        decision = engine.evaluate(None, make_alert())
        assert decision.evaluated_at == 42.0
