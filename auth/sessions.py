"""
auth/sessions.py -- Turn an authenticated user into a session.

Every successful signup, login, reset and password update ends here: sign a
token, describe the cookie that carries it, and build the redacted user
representation that goes back in the response body.

The cookie is described, not set. SessionCookie is transport-neutral; the
api/ layer copies it onto the FastAPI response.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from auth.models import Session, SessionCookie, User
from auth.tokens import TokenSigner
from core.config import Settings

logger = logging.getLogger("wayfarer.auth.sessions")

SESSION_COOKIE_NAME = "jwt"


@dataclass(frozen=True)
class CookiePolicy:
    """Immutable session cookie attributes. HttpOnly is always on."""

    max_age_days: int
    secure: bool
    name: str = SESSION_COOKIE_NAME

    @classmethod
    def from_settings(cls, settings: Settings) -> CookiePolicy:
        return cls(max_age_days=settings.jwt_cookie_expires_in_days, secure=settings.is_production)


def public_user(user: User) -> dict:
    """Return the client-safe view of a user.

    Allow-list, not deny-list: new fields on User stay private until added
    here. The password hash, staged plaintext and reset fields never appear.
    """
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "password_changed_at": user.password_changed_at.isoformat() if user.password_changed_at else None,
        "created_at": user.created_at,
    }


class SessionIssuer:
    def __init__(self, signer: TokenSigner, cookie_policy: CookiePolicy) -> None:
        self.signer = signer
        self.cookie_policy = cookie_policy

    def issue(self, user: User, status: int = 200, now: datetime | None = None) -> Session:
        """Sign a token for ``user`` and package it with cookie and public user."""
        current = now or datetime.now(timezone.utc)
        token, _claims = self.signer.sign(user.id, now=current)
        cookie = SessionCookie(
            name=self.cookie_policy.name,
            value=token,
            expires=current + timedelta(days=self.cookie_policy.max_age_days),
            http_only=True,
            secure=self.cookie_policy.secure,
        )
        logger.debug("Issued session for user id=%s", user.id)
        return Session(token=token, user=public_user(user), cookie=cookie, status=status)
