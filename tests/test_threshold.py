"""Tests for the breach rule."""

import pytest

from zonealert.errors import ValidationError
from zonealert.models import ReadingStatus, Severity
from zonealert.services.threshold import breach_severity, evaluate, sensor_threshold


class TestEvaluate:

    @pytest.mark.parametrize("distance, status, severity", [
        (60, ReadingStatus.NORMAL, None),
        (50, ReadingStatus.NORMAL, None),
        (49.9, ReadingStatus.ALERT, Severity.HIGH),
        (30, ReadingStatus.ALERT, Severity.HIGH),
        (25, ReadingStatus.ALERT, Severity.HIGH),
        (24.9, ReadingStatus.ALERT, Severity.CRITICAL),
        (0, ReadingStatus.ALERT, Severity.CRITICAL),
    ])
    def test_default_threshold(self, distance, status, severity):
        result = evaluate(distance)
        assert result.status == status
        assert result.severity == severity

    def test_alert_iff_below_threshold(self):
        for threshold in (10, 50, 120.5):
            for distance in (0, 5, 9.99, 10, 24, 25, 50, 80, 120.5, 200):
                result = evaluate(distance, threshold)
                assert result.is_breach == (distance < threshold)
                if not result.is_breach:
                    assert result.severity is None

    def test_critical_only_below_critical_distance(self):
        assert evaluate(20, threshold=100).severity == Severity.CRITICAL
        assert evaluate(70, threshold=100).severity == Severity.HIGH

    def test_same_input_same_output(self):
        assert evaluate(33.3, 50) == evaluate(33.3, 50)

    @pytest.mark.parametrize("threshold", [0, -5, None])
    def test_rejects_non_positive_threshold(self, threshold):
        with pytest.raises(ValidationError):
            evaluate(10, threshold)


def test_breach_severity_boundary():
    assert breach_severity(25) == Severity.HIGH
    assert breach_severity(24.99) == Severity.CRITICAL


def test_sensor_threshold_falls_back_to_default():
    assert sensor_threshold({"boundary_threshold": 80}) == 80
    assert sensor_threshold({}) == 50
    assert sensor_threshold({"boundary_threshold": 0}, default=40) == 40
