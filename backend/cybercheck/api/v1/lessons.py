"""
Lesson API Endpoint
Teachers open a lesson for check-ins by issuing a PIN and close it when done
"""
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from loguru import logger

from cybercheck.api.deps import ensure_lesson_owner, require_staff
from cybercheck.config import Settings, get_settings
from cybercheck.database import get_db
from cybercheck.exceptions import LessonNotFoundError
from cybercheck.identity import Identity
from cybercheck.pins import issue_pin
from cybercheck.schemas import LessonStatusResponse, PinIssueRequest, PinIssueResponse
from cybercheck.stores import AuditLog, LessonRepository, utcnow

router = APIRouter()


def _owned_lesson(repo: LessonRepository, lesson_id: str, identity: Identity) -> dict:
    try:
        lesson = repo.get_lesson(lesson_id)
    except LessonNotFoundError:
        raise HTTPException(status_code=404, detail="Lesson not found")

    ensure_lesson_owner(identity, lesson)
    return lesson


@router.post("/lessons/{lesson_id}/pin", response_model=PinIssueResponse, status_code=201)
async def create_lesson_pin(
    lesson_id: str,
    request: PinIssueRequest,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Issue a fresh PIN for a lesson

    The previous PIN stops working immediately. validity_seconds defaults
    to DEFAULT_PIN_VALIDITY_SECONDS; windows under a minute also relax the
    timing heuristics for that lesson.
    """
    validity_seconds = request.validity_seconds or settings.DEFAULT_PIN_VALIDITY_SECONDS
    repo = LessonRepository(db)
    _owned_lesson(repo, lesson_id, identity)

    try:
        pin, expires_at = issue_pin(
            repo,
            lesson_id,
            validity_seconds,
            length=settings.PIN_LENGTH,
        )

    except LessonNotFoundError:
        raise HTTPException(status_code=404, detail="Lesson not found")

    except Exception as e:
        logger.error(f"Error issuing PIN: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to issue PIN")

    AuditLog(db).record(identity.user_id, "pin_issued", {
        "lesson_id": lesson_id,
        "validity_seconds": validity_seconds,
    })

    return PinIssueResponse(
        lesson_id=lesson_id,
        pin=pin,
        expires_at=expires_at,
        validity_seconds=validity_seconds,
    )


@router.post("/lessons/{lesson_id}/close", response_model=LessonStatusResponse)
async def close_lesson(
    lesson_id: str,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """
    Stop accepting check-ins for a lesson

    The PIN is kept but no longer matches; recorded attendance is untouched.
    """
    repo = LessonRepository(db)
    lesson = _owned_lesson(repo, lesson_id, identity)

    try:
        repo.set_active(lesson_id, False)

    except LessonNotFoundError:
        raise HTTPException(status_code=404, detail="Lesson not found")

    except Exception as e:
        logger.error(f"Error closing lesson: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to close lesson")

    logger.info(f"Lesson {lesson_id} closed by {identity.user_id}")
    AuditLog(db).record(identity.user_id, "lesson_closed", {"lesson_id": lesson_id})

    return LessonStatusResponse(lesson_id=lesson_id, is_active=False, pin_expires_at=lesson["pin_expires_at"])


@router.post("/lessons/{lesson_id}/reopen", response_model=LessonStatusResponse)
async def reopen_lesson(
    lesson_id: str,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Accept check-ins again with the existing PIN

    The PIN deadline is pushed out by DEFAULT_PIN_VALIDITY_SECONDS.
    """
    repo = LessonRepository(db)
    _owned_lesson(repo, lesson_id, identity)
    expires_at = utcnow() + timedelta(seconds=settings.DEFAULT_PIN_VALIDITY_SECONDS)

    try:
        repo.set_active(lesson_id, True, pin_expires_at=expires_at)

    except LessonNotFoundError:
        raise HTTPException(status_code=404, detail="Lesson not found")

    except Exception as e:
        logger.error(f"Error reopening lesson: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reopen lesson")

    logger.info(f"Lesson {lesson_id} reopened by {identity.user_id}")
    AuditLog(db).record(identity.user_id, "lesson_reopened", {"lesson_id": lesson_id})

    return LessonStatusResponse(lesson_id=lesson_id, is_active=True, pin_expires_at=expires_at)
