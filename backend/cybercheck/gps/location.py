"""
Location acquisition

A LocationProvider is the platform boundary (browser geolocation, a device
SDK, or readings replayed from a request). LocationSource wraps a provider
with the two-tier policy: high accuracy first, and on TIMEOUT only, one retry
with relaxed accuracy that accepts a recently cached fix.
"""
from enum import Enum
from typing import Iterable, List, Optional, Protocol

from loguru import logger

from .models import LocationReading


class LocationErrorKind(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


DEFAULT_MESSAGES = {
    LocationErrorKind.PERMISSION_DENIED: "Location permission was denied",
    LocationErrorKind.POSITION_UNAVAILABLE: "Location could not be determined",
    LocationErrorKind.TIMEOUT: "Location request timed out",
    LocationErrorKind.UNKNOWN: "Unknown location error",
}

REMEDIATION_HINTS = {
    LocationErrorKind.PERMISSION_DENIED: (
        "Allow location access for this site in your browser settings, then reload the page."
    ),
    LocationErrorKind.POSITION_UNAVAILABLE: (
        "Check that location services are on and that Wi-Fi or mobile data is connected."
    ),
    LocationErrorKind.TIMEOUT: "Move closer to a window or outdoors and try again.",
    LocationErrorKind.UNKNOWN: "Try again in a moment.",
}


class LocationError(Exception):
    """Raised by providers when no fix can be delivered"""

    def __init__(self, kind: LocationErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        super().__init__(self.message)

    @property
    def hint(self) -> str:
        return REMEDIATION_HINTS[self.kind]

    def user_message(self) -> str:
        return f"{self.message}. {self.hint}"


class LocationProvider(Protocol):
    async def get_position(
        self,
        high_accuracy: bool,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> LocationReading:
        ...


class LocationSource:
    """Two-tier acquisition on top of a LocationProvider"""

    def __init__(
        self,
        provider: LocationProvider,
        high_accuracy_timeout_ms: int = 20000,
        low_accuracy_timeout_ms: int = 15000,
        low_accuracy_max_age_ms: int = 30000,
    ):
        self.provider = provider
        self.high_accuracy_timeout_ms = high_accuracy_timeout_ms
        self.low_accuracy_timeout_ms = low_accuracy_timeout_ms
        self.low_accuracy_max_age_ms = low_accuracy_max_age_ms

    @classmethod
    def from_settings(cls, provider: LocationProvider, settings) -> "LocationSource":
        return cls(
            provider,
            high_accuracy_timeout_ms=settings.GPS_HIGH_ACCURACY_TIMEOUT_MS,
            low_accuracy_timeout_ms=settings.GPS_LOW_ACCURACY_TIMEOUT_MS,
            low_accuracy_max_age_ms=settings.GPS_LOW_ACCURACY_MAX_AGE_MS,
        )

    async def acquire(self) -> LocationReading:
        """
        Get one fix

        Raises:
            LocationError: permission/unavailable errors from the first
                attempt, or any error from the low-accuracy retry
        """
        try:
            return await self.provider.get_position(
                high_accuracy=True,
                timeout_ms=self.high_accuracy_timeout_ms,
                maximum_age_ms=0,
            )
        except LocationError as e:
            if e.kind != LocationErrorKind.TIMEOUT:
                raise
            logger.info("High-accuracy fix timed out, retrying with low accuracy")

        return await self.provider.get_position(
            high_accuracy=False,
            timeout_ms=self.low_accuracy_timeout_ms,
            maximum_age_ms=self.low_accuracy_max_age_ms,
        )


class ReplayLocationProvider:
    """
    Serves readings captured on the student's device, in submission order

    Each call consumes one reading; once exhausted, POSITION_UNAVAILABLE.
    """

    def __init__(self, readings: Iterable[LocationReading]):
        self._pending: List[LocationReading] = list(readings)
        self.calls = 0

    @property
    def remaining(self) -> int:
        return len(self._pending)

    async def get_position(
        self,
        high_accuracy: bool,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> LocationReading:
        self.calls += 1
        if not self._pending:
            raise LocationError(
                LocationErrorKind.POSITION_UNAVAILABLE,
                "No more location readings were submitted",
            )
        return self._pending.pop(0)
