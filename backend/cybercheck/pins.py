"""
Lesson PIN issuance
"""
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from loguru import logger

from cybercheck.stores import LessonRepository, utcnow


def generate_pin(length: int = 6) -> str:
    """Uniformly random numeric PIN, zero-padded"""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def issue_pin(
    lessons: LessonRepository,
    lesson_id: str,
    validity_seconds: int,
    length: int = 6,
    now: Optional[datetime] = None,
) -> Tuple[str, datetime]:
    """Give a lesson a fresh PIN and reopen it for check-ins

    Returns:
        (pin, expires_at)

    Raises:
        LessonNotFoundError: no lesson with that id
    """
    pin = generate_pin(length)
    expires_at = (now or utcnow()) + timedelta(seconds=validity_seconds)

    lessons.set_pin(lesson_id, pin, expires_at, validity_seconds)
    logger.info(f"PIN issued for lesson {lesson_id} (valid {validity_seconds}s)")

    return pin, expires_at
