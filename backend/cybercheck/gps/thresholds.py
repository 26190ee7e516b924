"""
Threshold Profile Resolver
Maps a lesson's detection level (plus lesson adjustments) to numeric thresholds
"""
from enum import Enum
from typing import Optional, Union

from .models import ThresholdProfile


class DetectionLevel(str, Enum):
    MINIMAL = "minimal"
    MEDIUM = "medium"
    MAXIMAL = "maximal"

    @classmethod
    def parse(cls, value: Union["DetectionLevel", str, None]) -> "DetectionLevel":
        """Unknown or missing levels fall back to MEDIUM"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


BASE_PROFILES = {
    DetectionLevel.MINIMAL: ThresholdProfile(
        accuracy_floor=1.0,
        accuracy_ceiling=20000.0,
        variance_floor=1e-6,
        timestamp_gap_floor_ms=100,
    ),
    DetectionLevel.MEDIUM: ThresholdProfile(
        accuracy_floor=3.0,
        accuracy_ceiling=15000.0,
        variance_floor=1e-5,
        timestamp_gap_floor_ms=200,
    ),
    DetectionLevel.MAXIMAL: ThresholdProfile(
        accuracy_floor=5.0,
        accuracy_ceiling=10000.0,
        variance_floor=1e-4,
        timestamp_gap_floor_ms=500,
    ),
}

LARGE_RADIUS_METERS = 200
SHORT_PIN_SECONDS = 60


def resolve(
    level: Union[DetectionLevel, str, None],
    lesson_radius: Optional[float] = None,
    pin_validity_seconds: Optional[int] = None,
) -> ThresholdProfile:
    """
    Resolve the thresholds for one check-in

    Adjustments are independent:
    - lesson_radius > 200 m multiplies the variance floor by 10
    - pin_validity_seconds < 60 halves the timestamp-gap floor
    """
    base = BASE_PROFILES[DetectionLevel.parse(level)]

    variance_floor = base.variance_floor
    if lesson_radius is not None and lesson_radius > LARGE_RADIUS_METERS:
        variance_floor *= 10

    timestamp_gap_floor_ms = base.timestamp_gap_floor_ms
    if pin_validity_seconds is not None and pin_validity_seconds < SHORT_PIN_SECONDS:
        timestamp_gap_floor_ms //= 2

    return ThresholdProfile(
        accuracy_floor=base.accuracy_floor,
        accuracy_ceiling=base.accuracy_ceiling,
        variance_floor=variance_floor,
        timestamp_gap_floor_ms=timestamp_gap_floor_ms,
    )
