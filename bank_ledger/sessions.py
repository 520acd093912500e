"""
Session Authority

Issues signed session tokens backed by a persisted session row and resolves
bearer tokens back to a user id. A session is treated as expired slightly
before its recorded expiry (the expiry buffer) so a token cannot be used at
the very edge of its lifetime.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt

from .errors import Unauthenticated
from .logging_config import get_logger
from .schema import SESSIONS
from .storage import StorageInterface


DEFAULT_SESSION_TTL = timedelta(days=7)
DEFAULT_EXPIRY_BUFFER = timedelta(seconds=60)


@dataclass(frozen=True)
class SessionIdentity:
    """Caller identity resolved from a valid session"""
    user_id: int


@dataclass(frozen=True)
class IssuedSession:
    token: str
    user_id: int
    expires_at: datetime


class SessionAuthority:
    """Creates, validates and revokes sessions"""

    def __init__(
        self,
        storage: StorageInterface,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_SESSION_TTL,
        expiry_buffer: timedelta = DEFAULT_EXPIRY_BUFFER,
        clock=None
    ):
        self.storage = storage
        self.table = SESSIONS.name
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self.expiry_buffer = expiry_buffer
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("bank_ledger.sessions")

    def issue(self, user_id: int) -> IssuedSession:
        """Sign a token for ``user_id`` and persist its session row"""
        now = self._clock()
        expires_at = now + self.ttl
        token = jwt.encode(
            {
                "user_id": user_id,
                "jti": secrets.token_hex(16),
                "iat": int(now.timestamp()),
                "exp": int(expires_at.timestamp()),
            },
            self.secret,
            algorithm=self.algorithm
        )
        self.storage.insert(self.table, {
            "user_id": user_id,
            "token": token,
            "expires_at": expires_at.isoformat(),
        })
        return IssuedSession(token=token, user_id=user_id, expires_at=expires_at)

    def validate(self, token: Optional[str]) -> SessionIdentity:
        """
        Resolve a bearer token to the caller's identity.

        Raises:
            Unauthenticated: missing, forged, unknown, revoked or (nearly) expired
        """
        if not token:
            raise Unauthenticated("Authentication required")

        now = self._clock()
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                # Lifetime is governed by the session row and the expiry buffer
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError:
            raise Unauthenticated("Invalid session")

        session = self.storage.find_one(self.table, {"token": token})
        if session is None or session["user_id"] != claims.get("user_id"):
            raise Unauthenticated("Invalid session")

        expires_at = datetime.fromisoformat(session["expires_at"])
        if expires_at - now < self.expiry_buffer:
            raise Unauthenticated("Session expired")

        return SessionIdentity(user_id=session["user_id"])

    def revoke(self, token: str) -> bool:
        """
        Delete the session for ``token``.

        Returns True only when the row existed and is verifiably gone.
        """
        if self.storage.find_one(self.table, {"token": token}) is None:
            return False
        self.storage.delete_where(self.table, {"token": token})
        return self.storage.find_one(self.table, {"token": token}) is None

    def revoke_all(self, user_id: int) -> int:
        """Delete every session of ``user_id``; returns how many were removed"""
        removed = self.storage.delete_where(self.table, {"user_id": user_id})
        if removed:
            self.logger.info(
                "Previous sessions revoked",
                extra={"user_id": str(user_id), "action": "revoke_sessions", "extra": {"count": removed}}
            )
        return removed
