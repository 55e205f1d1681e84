"""
Threshold Evaluator
===================

Decides whether a distance reading is a boundary breach.

RULE:
    status   = alert    if distance < threshold   else normal
    severity = critical if distance < 25          else high     (alerts only)

A reading exactly at the threshold is normal. The function is pure: the same
inputs always give the same output, so every write path (single readings,
batches, device-reported alerts) calls it instead of comparing inline.
"""

from dataclasses import dataclass
from typing import Optional

from zonealert.errors import ValidationError
from zonealert.models import ReadingStatus, Severity


DEFAULT_THRESHOLD = 50.0
CRITICAL_DISTANCE = 25.0


@dataclass(frozen=True)
class Evaluation:
    """Result of evaluating one reading."""
    status: ReadingStatus
    severity: Optional[Severity] = None

    @property
    def is_breach(self) -> bool:
        return self.status == ReadingStatus.ALERT


def breach_severity(measured_distance: float, critical_distance: float = CRITICAL_DISTANCE) -> Severity:
    """Severity tier of a breach at the given distance."""
    return Severity.CRITICAL if measured_distance < critical_distance else Severity.HIGH


def evaluate(
    measured_distance: float,
    threshold: float = DEFAULT_THRESHOLD,
    critical_distance: float = CRITICAL_DISTANCE,
) -> Evaluation:
    """
    Evaluate a reading against a sensor's threshold.

    Args:
        measured_distance: Distance reported by the sensor (validated >= 0 upstream)
        threshold: Sensor's breach threshold, must be positive
        critical_distance: Below this a breach is critical

    Returns:
        Evaluation with status and, for breaches, severity

    Raises:
        ValidationError: if threshold is not positive
    """
    if threshold is None or threshold <= 0:
        raise ValidationError(f"Threshold must be positive, got {threshold}")

    if measured_distance < threshold:
        return Evaluation(ReadingStatus.ALERT, breach_severity(measured_distance, critical_distance))
    return Evaluation(ReadingStatus.NORMAL)


def sensor_threshold(sensor: dict, default: float = DEFAULT_THRESHOLD) -> float:
    """Threshold configured on a sensor document, falling back to the default."""
    value = sensor.get("boundary_threshold")
    if value is None or value <= 0:
        return default
    return float(value)
