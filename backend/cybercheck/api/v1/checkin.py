"""
Check-in API Endpoint
Students submit a lesson PIN together with the location readings their
device captured
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
from loguru import logger

from cybercheck.api.deps import get_current_identity
from cybercheck.checkin import CheckinService
from cybercheck.config import Settings, get_settings
from cybercheck.database import get_db
from cybercheck.exceptions import AttendancePersistenceError
from cybercheck.gps.location import LocationSource, ReplayLocationProvider
from cybercheck.identity import Identity
from cybercheck.schemas import CheckinRequest, CheckinResponse
from cybercheck.stores import AttendanceStore, AuditLog, LessonRepository

router = APIRouter()


@router.post("/checkin", response_model=CheckinResponse)
async def submit_checkin(
    request: CheckinRequest,
    identity: Identity = Depends(get_current_identity),
    user_agent: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Check in to the lesson that currently owns this PIN

    Readings are replayed in submission order wherever the flow asks the
    device for a fix, so a full GPS check needs four of them.

    A rejected or suspicious outcome is still a 200 response; only a
    failure to store the attendance record returns 500.
    """
    provider = ReplayLocationProvider(r.to_reading() for r in request.readings)
    service = CheckinService(
        lessons=LessonRepository(db, default_radius_meters=settings.DEFAULT_RADIUS_METERS),
        attendance=AttendanceStore(db),
        audit_log=AuditLog(db),
        location_source=LocationSource.from_settings(provider, settings),
        extended_signals=settings.GPS_EXTENDED_SIGNALS,
    )

    try:
        decision = await service.attempt(
            request.pin,
            identity,
            skip_gps=request.skip_gps,
            fingerprint=request.fingerprint,
            user_agent=user_agent,
        )

    except AttendancePersistenceError:
        raise HTTPException(status_code=500, detail="Failed to save attendance")

    except Exception as e:
        logger.error(f"Error processing check-in: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process check-in")

    logger.info(
        f"Check-in {decision.status.value} for {identity.user_id} "
        f"({decision.distance_meters:.0f}m, readings used: {provider.calls}/{len(request.readings)})"
    )

    return CheckinResponse(
        status=decision.status.value,
        distance_meters=round(decision.distance_meters, 2),
        is_flagged_gps=decision.is_flagged_gps,
        reasons=decision.reasons,
        message=decision.message,
    )
