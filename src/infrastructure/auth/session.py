"""Guest session tokens (HS256 JWT carrying party and uploader ids)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

SESSION_COOKIE_NAME = "photobooze_session"
SESSION_EXPIRY_HOURS = 12
ALGORITHM = "HS256"


@dataclass(slots=True)
class SessionInfo:
    party_id: str
    uploader_id: str


def _secret_key() -> str:
    secret = (os.getenv("SESSION_SECRET") or "").strip()
    if len(secret) < 32:
        raise RuntimeError("SESSION_SECRET must be set and at least 32 characters")
    return secret


def create_session(party_id: str, uploader_id: str, expires_in: timedelta | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "partyId": party_id,
        "uploaderId": uploader_id,
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=SESSION_EXPIRY_HOURS)),
    }
    return jwt.encode(payload, _secret_key(), algorithm=ALGORITHM)


class SessionValidator:
    """Verifies guest session tokens; returns None for anything invalid or expired."""

    def __init__(self, secret: str | None = None) -> None:
        self.secret = secret or _secret_key()

    def verify(self, token: str | None) -> SessionInfo | None:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError:
            return None
        party_id = payload.get("partyId")
        uploader_id = payload.get("uploaderId")
        if not isinstance(party_id, str) or not isinstance(uploader_id, str):
            return None
        return SessionInfo(party_id=party_id, uploader_id=uploader_id)
