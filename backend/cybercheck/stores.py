"""
Stores used by the check-in flow: lesson lookup, attendance records and the
activity (audit) log
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cybercheck.database import activity_logs, attendance, lessons, users
from cybercheck.exceptions import AttendancePersistenceError, LessonNotFoundError
from cybercheck.gps.models import CheckinDecision, LocationReading
from cybercheck.gps.thresholds import DetectionLevel
from cybercheck.identity import Identity, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LessonPolicy:
    """Read-only view of the lesson settings the check-in depends on"""
    lesson_id: str
    target_latitude: float
    target_longitude: float
    radius_meters: float
    detection_level: DetectionLevel
    allow_skip_gps: bool
    pin_validity_seconds: Optional[int]


class LessonRepository:

    def __init__(self, db: Session, default_radius_meters: float = 120.0):
        self.db = db
        self.default_radius_meters = default_radius_meters

    def find_active_lesson_by_pin(self, pin: str, now: Optional[datetime] = None) -> Optional[LessonPolicy]:
        """Lesson whose PIN matches, is active and has not expired"""
        now = now or utcnow()

        query = (
            select(lessons)
            .where(
                and_(
                    lessons.c.pin_code == pin,
                    lessons.c.is_active.is_(True),
                    lessons.c.pin_expires_at > now,
                )
            )
            .limit(1)
        )
        row = self.db.execute(query).mappings().first()

        if row is None:
            return None

        return LessonPolicy(
            lesson_id=row["id"],
            target_latitude=row["latitude"],
            target_longitude=row["longitude"],
            radius_meters=row["radius_meters"] or self.default_radius_meters,
            detection_level=DetectionLevel.parse(row["fake_detection_level"]),
            allow_skip_gps=bool(row["allow_skip_gps"]),
            pin_validity_seconds=row["pin_validity_seconds"],
        )

    def get_lesson(self, lesson_id: str) -> Dict[str, Any]:
        row = self.db.execute(select(lessons).where(lessons.c.id == lesson_id)).mappings().first()
        if row is None:
            raise LessonNotFoundError(lesson_id)
        return dict(row)

    def set_active(self, lesson_id: str, active: bool, pin_expires_at: Optional[datetime] = None) -> None:
        """Open or close a lesson for check-ins; pin_expires_at replaces the PIN deadline when given"""
        values: Dict[str, Any] = {"is_active": active}
        if pin_expires_at is not None:
            values["pin_expires_at"] = pin_expires_at

        result = self.db.execute(update(lessons).where(lessons.c.id == lesson_id).values(**values))
        if result.rowcount == 0:
            self.db.rollback()
            raise LessonNotFoundError(lesson_id)
        self.db.commit()

    def set_pin(self, lesson_id: str, pin: str, expires_at: datetime, validity_seconds: int) -> None:
        result = self.db.execute(
            update(lessons)
            .where(lessons.c.id == lesson_id)
            .values(
                pin_code=pin,
                pin_expires_at=expires_at,
                pin_validity_seconds=validity_seconds,
                is_active=True,
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise LessonNotFoundError(lesson_id)
        self.db.commit()


class AttendanceStore:
    """One attendance row per (lesson, student); later check-ins overwrite it"""

    def __init__(self, db: Session):
        self.db = db

    def upsert_attendance(
        self,
        lesson_id: str,
        student_id: str,
        decision: CheckinDecision,
        reading: Optional[LocationReading] = None,
        fingerprint: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        values = {
            "status": decision.status.value,
            "check_in_time": utcnow(),
            "latitude": reading.latitude if reading else None,
            "longitude": reading.longitude if reading else None,
            "accuracy_meters": reading.accuracy_meters if reading else None,
            "distance_meters": decision.distance_meters,
            "is_fake_gps": decision.is_flagged_gps,
            "suspicious_reason": decision.message or None,
            "fingerprint": fingerprint,
            "user_agent": user_agent,
        }

        try:
            if not self._update(lesson_id, student_id, values):
                try:
                    self.db.execute(
                        insert(attendance).values(lesson_id=lesson_id, student_id=student_id, **values)
                    )
                except IntegrityError:
                    # A concurrent attempt inserted the row first
                    self.db.rollback()
                    self._update(lesson_id, student_id, values)
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving attendance for {student_id} in {lesson_id}: {e}", exc_info=True)
            raise AttendancePersistenceError(f"Failed to save attendance: {e}") from e

        logger.info(f"Attendance {decision.status.value}: {student_id} in {lesson_id}")

    def _update(self, lesson_id: str, student_id: str, values: Dict[str, Any]) -> bool:
        result = self.db.execute(
            update(attendance)
            .where(and_(attendance.c.lesson_id == lesson_id, attendance.c.student_id == student_id))
            .values(**values)
        )
        return result.rowcount > 0

    def list_for_lesson(self, lesson_id: str) -> List[Dict[str, Any]]:
        query = (
            select(attendance)
            .where(attendance.c.lesson_id == lesson_id)
            .order_by(attendance.c.check_in_time)
        )
        return [dict(row) for row in self.db.execute(query).mappings().all()]


class AuditLog:
    """Activity log sink; write failures are logged and never raised"""

    def __init__(self, db: Session):
        self.db = db

    def record(self, actor: Optional[str], action: str, details: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.db.execute(
                insert(activity_logs).values(
                    user_id=actor,
                    action=action,
                    details=details or {},
                    created_at=utcnow(),
                )
            )
            self.db.commit()
        except Exception as e:
            logger.warning(f"Activity log write failed ({action}): {e}")
            try:
                self.db.rollback()
            except SQLAlchemyError as rollback_error:
                logger.debug(f"Rollback after activity log failure also failed: {rollback_error}")


class UserRepository:
    """Accounts that can sign in; passwords are stored as passlib hashes"""

    def __init__(self, db: Session):
        self.db = db

    def find_active_by_login(self, login: str) -> Optional[Dict[str, Any]]:
        query = select(users).where(and_(users.c.login == login, users.c.is_active.is_(True))).limit(1)
        row = self.db.execute(query).mappings().first()
        return dict(row) if row else None

    def create_user(
        self,
        user_id: str,
        login: str,
        password_hash: str,
        role: Role,
        full_name: Optional[str] = None,
    ) -> Identity:
        try:
            self.db.execute(
                insert(users).values(
                    id=user_id,
                    login=login,
                    full_name=full_name,
                    role=role.value,
                    password_hash=password_hash,
                    is_active=True,
                )
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"User created: {login} ({role.value})")
        return Identity(user_id=user_id, role=role, full_name=full_name)
