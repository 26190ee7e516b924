"""
Identity context and session store

Roles are turned into a GPS capability once, at the edge of the check-in
flow, so the plausibility checks never branch on role names.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from loguru import logger


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

    @property
    def gps_capability(self) -> "GPSCapability":
        if self is Role.STUDENT:
            return GPSCapability.SUBJECT
        return GPSCapability.EXEMPT

    @property
    def can_manage_lessons(self) -> bool:
        return self in (Role.ADMIN, Role.TEACHER)


class GPSCapability(str, Enum):
    EXEMPT = "exempt"
    SUBJECT = "subject"


@dataclass(frozen=True)
class Identity:
    """The authenticated actor behind a request"""
    user_id: str
    role: Role
    full_name: Optional[str] = None

    @property
    def gps_capability(self) -> GPSCapability:
        return self.role.gps_capability


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """
    Bearer-token sessions held in memory

    One store is created per application at start-up and injected where it
    is needed. Every entry carries its own expiry; expired entries are
    dropped when looked up or when purge_expired() runs. Nothing survives a
    process restart.
    """

    def __init__(self, ttl_seconds: int = 12 * 60 * 60, clock: Callable[[], datetime] = _utcnow):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self._sessions: Dict[str, Tuple[Identity, datetime]] = {}

    def issue(self, identity: Identity) -> str:
        """Create a session for identity and return its token"""
        token = secrets.token_hex(32)
        self._sessions[token] = (identity, self.clock() + self.ttl)
        logger.debug(f"Session issued for {identity.user_id} ({identity.role.value})")
        return token

    def lookup(self, token: str) -> Optional[Tuple[Identity, datetime]]:
        """(identity, expires_at) for a live session, else None"""
        entry = self._sessions.get(token)
        if entry is None:
            return None

        identity, expires_at = entry
        if self.clock() >= expires_at:
            del self._sessions[token]
            logger.debug(f"Session expired for {identity.user_id}")
            return None

        return entry

    def resolve(self, token: str) -> Optional[Identity]:
        entry = self.lookup(token)
        return entry[0] if entry else None

    def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [token for token, (_, expires_at) in self._sessions.items() if now >= expires_at]

        for token in expired:
            del self._sessions[token]

        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
