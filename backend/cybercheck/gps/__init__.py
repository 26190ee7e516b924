"""
GPS plausibility engine: distance, threshold profiles, location acquisition,
spoofing heuristics and geofencing
"""
from .distance import distance
from .geofence import evaluate
from .models import (
    CheckinStatus,
    DetectionVerdict,
    GeofenceResult,
    LocationReading,
    ThresholdProfile,
)
from .thresholds import DetectionLevel, resolve

__all__ = [
    "CheckinStatus",
    "DetectionLevel",
    "DetectionVerdict",
    "GeofenceResult",
    "LocationReading",
    "ThresholdProfile",
    "distance",
    "evaluate",
    "resolve",
]
