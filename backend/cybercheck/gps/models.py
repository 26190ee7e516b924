"""
Value types shared by the GPS plausibility engine and the check-in flow
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List


@dataclass(frozen=True)
class LocationReading:
    """A single fix reported by the device's location API"""
    latitude: float
    longitude: float
    accuracy_meters: float
    timestamp_ms: int


@dataclass(frozen=True)
class ThresholdProfile:
    """Concrete numeric thresholds for one check-in"""
    accuracy_floor: float
    accuracy_ceiling: float
    variance_floor: float
    timestamp_gap_floor_ms: int


@dataclass
class DetectionVerdict:
    """Outcome of the spoofing heuristics; reasons keep insertion order"""
    is_suspicious: bool = False
    reasons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GeofenceResult:
    within_radius: bool
    distance_meters: float


class CheckinStatus(str, Enum):
    PRESENT = "present"
    SUSPICIOUS = "suspicious"
    REJECTED = "rejected"


@dataclass
class CheckinDecision:
    """Terminal output of one check-in attempt"""
    status: CheckinStatus
    distance_meters: float = 0.0
    is_flagged_gps: bool = False
    reasons: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return ", ".join(self.reasons)
