"""
Auth API Endpoint
Password login issuing bearer sessions, session validation and logout
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from loguru import logger

from cybercheck.api.deps import get_session_store
from cybercheck.database import get_db
from cybercheck.identity import Identity, Role, SessionStore
from cybercheck.schemas import LoginRequest, LoginResponse, TokenRequest, UserOut, ValidateResponse
from cybercheck.security import verify_password
from cybercheck.stores import AuditLog, UserRepository

router = APIRouter()


def _user_out(identity: Identity) -> UserOut:
    return UserOut(id=identity.user_id, full_name=identity.full_name, role=identity.role.value)


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
):
    """
    Exchange login and password for a bearer token

    Unknown logins, disabled accounts and wrong passwords all get the same
    401 so callers cannot tell which one failed.
    """
    try:
        user = UserRepository(db).find_active_by_login(request.login)
    except Exception as e:
        logger.error(f"Error loading user {request.login}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Login failed")

    if user is None or not verify_password(request.password, user["password_hash"]):
        logger.info(f"Failed login for {request.login}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    try:
        role = Role(user["role"])
    except ValueError:
        logger.error(f"User {user['id']} has unknown role {user['role']!r}")
        raise HTTPException(status_code=500, detail="Login failed")

    identity = Identity(user_id=user["id"], role=role, full_name=user["full_name"])
    token = sessions.issue(identity)
    _, expires_at = sessions.lookup(token)

    AuditLog(db).record(identity.user_id, "login", {"role": role.value})

    return LoginResponse(token=token, expires_at=expires_at, user=_user_out(identity))


@router.post("/auth/validate", response_model=ValidateResponse)
async def validate(
    request: TokenRequest,
    sessions: SessionStore = Depends(get_session_store),
):
    """Report whether a token still belongs to a live session"""
    entry = sessions.lookup(request.token)
    if entry is None:
        return ValidateResponse(valid=False)

    identity, expires_at = entry
    return ValidateResponse(valid=True, expires_at=expires_at, user=_user_out(identity))


@router.post("/auth/logout")
async def logout(
    request: TokenRequest,
    sessions: SessionStore = Depends(get_session_store),
):
    """End a session; unknown tokens are accepted silently"""
    if sessions.revoke(request.token):
        logger.debug("Session revoked")
    return {"success": True}
