"""
Check-in Orchestrator
Turns one PIN entry into one attendance decision
"""
from typing import Any, Dict, Optional

from loguru import logger

from cybercheck.gps.detector import GPSPlausibilityClassifier
from cybercheck.gps.geofence import evaluate
from cybercheck.gps.location import LocationError, LocationSource
from cybercheck.gps.models import (
    CheckinDecision,
    CheckinStatus,
    DetectionVerdict,
    GeofenceResult,
    LocationReading,
)
from cybercheck.gps.thresholds import resolve
from cybercheck.identity import Identity
from cybercheck.stores import AttendanceStore, AuditLog, LessonPolicy, LessonRepository

REASON_INVALID_PIN = "invalid or expired PIN"
REASON_GPS_SKIPPED = "GPS check skipped"


def too_far_reason(distance_meters: float, radius_meters: float) -> str:
    return f"too far: {round(distance_meters)}m (allowed {round(radius_meters)}m)"


class CheckinService:
    """
    Sequence for one attempt:
    PIN lookup -> optional GPS skip -> location -> plausibility -> geofence
    -> single upsert of the (lesson, student) record

    Nothing is written before the final upsert, so an abandoned attempt
    leaves no trace.
    """

    def __init__(
        self,
        lessons: LessonRepository,
        attendance: AttendanceStore,
        audit_log: AuditLog,
        location_source: LocationSource,
        extended_signals: bool = False,
    ):
        self.lessons = lessons
        self.attendance = attendance
        self.audit_log = audit_log
        self.location_source = location_source
        self.extended_signals = extended_signals

    async def attempt(
        self,
        pin: str,
        student: Identity,
        skip_gps: bool = False,
        fingerprint: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> CheckinDecision:
        """
        Run a check-in attempt

        Returns:
            CheckinDecision; rejected decisions are not persisted

        Raises:
            AttendancePersistenceError: the attendance row could not be saved
        """
        capability = student.gps_capability

        lesson = self.lessons.find_active_lesson_by_pin(pin)
        if lesson is None:
            logger.info(f"Check-in rejected for {student.user_id}: no active lesson for PIN")
            decision = CheckinDecision(status=CheckinStatus.REJECTED, reasons=[REASON_INVALID_PIN])
            self._audit(student, "checkin_rejected", {"reason": REASON_INVALID_PIN})
            return decision

        reading: Optional[LocationReading] = None

        if skip_gps and lesson.allow_skip_gps:
            decision = CheckinDecision(
                status=CheckinStatus.PRESENT,
                distance_meters=0.0,
                is_flagged_gps=False,
                reasons=[REASON_GPS_SKIPPED],
            )
        else:
            if skip_gps:
                logger.info(f"GPS skip requested by {student.user_id} but not allowed for lesson {lesson.lesson_id}")

            try:
                reading = await self.location_source.acquire()
            except LocationError as e:
                logger.warning(f"Location unavailable for {student.user_id}: {e.kind.value} - {e.message}")
                decision = CheckinDecision(status=CheckinStatus.REJECTED, reasons=[e.user_message()])
                self._audit(student, "checkin_rejected", {
                    "lesson_id": lesson.lesson_id,
                    "reason": e.kind.value,
                })
                return decision

            thresholds = resolve(lesson.detection_level, lesson.radius_meters, lesson.pin_validity_seconds)
            classifier = GPSPlausibilityClassifier(
                self.location_source,
                user_agent=user_agent,
                extended_signals=self.extended_signals,
            )
            verdict = await classifier.classify(capability, thresholds)
            fence = evaluate(reading, lesson.target_latitude, lesson.target_longitude, lesson.radius_meters)

            decision = self._decide(verdict, fence, lesson)

        self.attendance.upsert_attendance(
            lesson.lesson_id,
            student.user_id,
            decision,
            reading=reading,
            fingerprint=fingerprint,
            user_agent=user_agent,
        )

        self._audit(student, "checkin", {
            "lesson_id": lesson.lesson_id,
            "distance": decision.distance_meters,
            "status": decision.status.value,
            "radius": lesson.radius_meters,
            "is_fake_gps": decision.is_flagged_gps,
        })

        return decision

    @staticmethod
    def _decide(verdict: DetectionVerdict, fence: GeofenceResult, lesson: LessonPolicy) -> CheckinDecision:
        # Spoofing evidence outranks distance
        if verdict.is_suspicious:
            return CheckinDecision(
                status=CheckinStatus.SUSPICIOUS,
                distance_meters=fence.distance_meters,
                is_flagged_gps=True,
                reasons=list(verdict.reasons),
            )

        if not fence.within_radius:
            return CheckinDecision(
                status=CheckinStatus.SUSPICIOUS,
                distance_meters=fence.distance_meters,
                is_flagged_gps=False,
                reasons=[too_far_reason(fence.distance_meters, lesson.radius_meters)],
            )

        return CheckinDecision(
            status=CheckinStatus.PRESENT,
            distance_meters=fence.distance_meters,
            is_flagged_gps=False,
            reasons=list(verdict.reasons),
        )

    def _audit(self, actor: Identity, action: str, details: Dict[str, Any]) -> None:
        self.audit_log.record(actor.user_id, action, details)
