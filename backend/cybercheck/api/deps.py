"""
Shared FastAPI dependencies
"""
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request

from cybercheck.identity import Identity, Role, SessionStore


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_current_identity(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
) -> Identity:
    auth = request.headers.get("Authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")

    token = auth.split(" ", 1)[1].strip()
    identity = sessions.resolve(token)
    if identity is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")

    return identity


def require_staff(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.role.can_manage_lessons:
        raise HTTPException(status_code=403, detail="Teacher or admin role required")
    return identity


def ensure_lesson_owner(identity: Identity, lesson: Dict[str, Any]) -> None:
    """Teachers may only manage their own lessons; admins manage all of them"""
    if identity.role is Role.ADMIN:
        return
    if lesson["teacher_id"] != identity.user_id:
        raise HTTPException(status_code=403, detail="Lesson belongs to another teacher")
