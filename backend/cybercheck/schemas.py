"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from cybercheck.gps.models import LocationReading


class LocationReadingIn(BaseModel):
    """One fix captured by the student's device"""
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy_meters: float = Field(ge=0.0)
    timestamp_ms: int = Field(ge=0)

    def to_reading(self) -> LocationReading:
        return LocationReading(
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy_meters=self.accuracy_meters,
            timestamp_ms=self.timestamp_ms,
        )


class CheckinRequest(BaseModel):
    """
    Check-in submission

    readings are consumed in order: the first is used for the geofence,
    the next three by the plausibility checks.
    """
    pin: str = Field(min_length=4, max_length=10, pattern=r"^\d+$")
    skip_gps: bool = False
    readings: List[LocationReadingIn] = Field(default_factory=list, max_length=4)
    fingerprint: Optional[str] = Field(default=None, max_length=128)


class CheckinResponse(BaseModel):
    status: str
    distance_meters: float
    is_flagged_gps: bool
    reasons: List[str]
    message: str


class PinIssueRequest(BaseModel):
    validity_seconds: Optional[int] = Field(default=None, ge=10, le=86400)


class PinIssueResponse(BaseModel):
    lesson_id: str
    pin: str
    expires_at: datetime
    validity_seconds: int


class AttendanceRow(BaseModel):
    student_id: str
    status: str
    check_in_time: datetime
    distance_meters: float
    is_fake_gps: bool
    suspicious_reason: Optional[str] = None


class LessonAttendanceResponse(BaseModel):
    lesson_id: str
    total_records: int
    present: int
    suspicious: int
    records: List[AttendanceRow]


class LoginRequest(BaseModel):
    login: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=256)


class UserOut(BaseModel):
    id: str
    full_name: Optional[str] = None
    role: str


class LoginResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserOut


class TokenRequest(BaseModel):
    token: str = Field(min_length=1)


class ValidateResponse(BaseModel):
    valid: bool
    expires_at: Optional[datetime] = None
    user: Optional[UserOut] = None


class LessonStatusResponse(BaseModel):
    lesson_id: str
    is_active: bool
    pin_expires_at: Optional[datetime] = None
