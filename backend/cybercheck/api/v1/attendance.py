"""
Attendance API Endpoint
Read side of the attendance records written by check-ins
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from loguru import logger

from cybercheck.api.deps import ensure_lesson_owner, require_staff
from cybercheck.database import get_db
from cybercheck.exceptions import LessonNotFoundError
from cybercheck.gps.models import CheckinStatus
from cybercheck.identity import Identity
from cybercheck.schemas import AttendanceRow, LessonAttendanceResponse
from cybercheck.stores import AttendanceStore, LessonRepository

router = APIRouter()


@router.get("/attendance/lesson/{lesson_id}", response_model=LessonAttendanceResponse)
async def get_lesson_attendance(
    lesson_id: str,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """
    Attendance summary for one lesson (its teacher, or an admin)
    """

    try:
        lesson = LessonRepository(db).get_lesson(lesson_id)
    except LessonNotFoundError:
        raise HTTPException(status_code=404, detail="Lesson not found")

    ensure_lesson_owner(identity, lesson)

    try:
        rows = AttendanceStore(db).list_for_lesson(lesson_id)

    except Exception as e:
        logger.error(f"Error fetching lesson attendance: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch lesson attendance")

    records = [
        AttendanceRow(
            student_id=row["student_id"],
            status=row["status"],
            check_in_time=row["check_in_time"],
            distance_meters=row["distance_meters"],
            is_fake_gps=row["is_fake_gps"],
            suspicious_reason=row["suspicious_reason"],
        )
        for row in rows
    ]

    present_count = sum(1 for r in records if r.status == CheckinStatus.PRESENT.value)
    suspicious_count = sum(1 for r in records if r.status == CheckinStatus.SUSPICIOUS.value)

    return LessonAttendanceResponse(
        lesson_id=lesson_id,
        total_records=len(records),
        present=present_count,
        suspicious=suspicious_count,
        records=records,
    )
