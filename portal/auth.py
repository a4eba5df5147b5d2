from __future__ import annotations

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Optional, Tuple

from portal.config import Settings, get_settings

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_PARTNER = "partner"

INVALID_CREDENTIALS = "Invalid Partner ID or Password"


class AuthError(Exception):
    """Raised for failed logins and missing/unknown sessions."""


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    role: str
    display_name: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_partner(self) -> bool:
        return self.role == ROLE_PARTNER

    @property
    def owner(self) -> Optional[str]:
        """Owner name used to scope records; admins see everything."""
        return None if self.is_admin else self.user_id


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
    display_name: str


def authenticate(partner_id: str, password: str, settings: Optional[Settings] = None) -> Identity:
    settings = settings or get_settings()
    partner_id = (partner_id or "").strip()
    password = password or ""

    if partner_id == settings.admin_user:
        if hmac.compare_digest(password.encode("utf-8"), settings.admin_password.encode("utf-8")):
            return Identity(user_id=partner_id, role=ROLE_ADMIN, display_name="Administrator")
        raise AuthError(INVALID_CREDENTIALS)

    # Demo behaviour: any non-empty partner id/password pair signs in.
    if partner_id and password:
        return Identity(user_id=partner_id, role=ROLE_PARTNER, display_name=f"Partner {partner_id.upper()}")
    raise AuthError(INVALID_CREDENTIALS)


class SessionStore:
    """Token -> session map; sessions expire ``ttl_seconds`` after login."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Tuple[Session, float]] = {}

    def _expired(self, issued_at: float, now: float) -> bool:
        return self._ttl is not None and now - issued_at >= self._ttl

    def _purge(self, now: float) -> None:
        stale = [token for token, (_, issued_at) in self._sessions.items() if self._expired(issued_at, now)]
        for token in stale:
            del self._sessions[token]
        if stale:
            logger.info("Expired %d session(s)", len(stale))

    def create(self, identity: Identity) -> Session:
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=identity.user_id,
            role=identity.role,
            display_name=identity.display_name,
        )
        now = self._clock()
        with self._lock:
            self._purge(now)
            self._sessions[session.token] = (session, now)
        logger.info("Session started for %s (%s)", identity.user_id, identity.role)
        return session

    def get(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        now = self._clock()
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            session, issued_at = entry
            if self._expired(issued_at, now):
                del self._sessions[token]
                logger.info("Session expired for %s", session.user_id)
                return None
            return session

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def require(self, token: Optional[str]) -> Session:
        session = self.get(token)
        if session is None:
            raise AuthError("Not authenticated")
        return session

    def revoke(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            entry = self._sessions.pop(token, None)
        session = entry[0] if entry else None
        if session is not None:
            logger.info("Session ended for %s", session.user_id)
        return session is not None

    def login(self, partner_id: str, password: str, settings: Optional[Settings] = None) -> Session:
        try:
            identity = authenticate(partner_id, password, settings)
        except AuthError:
            logger.warning("Failed login for %r", partner_id)
            raise
        return self.create(identity)


@lru_cache(maxsize=1)
def get_sessions() -> SessionStore:
    return SessionStore(ttl_seconds=get_settings().session_ttl_seconds)
