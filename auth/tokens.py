"""
auth/tokens.py -- Signed session tokens (JWT).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the user id (sub), the issue
       time (iat) and the expiry (exp). Nothing else -- role and email are
       re-read from the store on every request so a demoted or deleted user
       loses access immediately.

  iat precision: iat is written as a float epoch, not truncated to whole
       seconds. The gate compares it against password_changed_at, and a
       session issued a few milliseconds after a password change must not
       look older than the change.

  Configuration: TokenConfig is a frozen dataclass built once at startup
       and handed to TokenSigner. Nothing in this module reads settings at
       request time and nothing can mutate the secret after construction.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredToken, InvalidToken
from auth.models import SessionClaims
from core.config import Settings


@dataclass(frozen=True)
class TokenConfig:
    """Immutable signing configuration for session tokens."""

    secret_key: str = field(repr=False)
    expire_seconds: int
    algorithm: str = "HS256"

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(secret_key=settings.jwt_secret, expire_seconds=settings.jwt_expires_in_seconds)


class TokenSigner:
    """Issue and verify session tokens bound to a user id.

    Usage:
        signer = TokenSigner(TokenConfig.from_settings(get_settings()))
        token, claims = signer.sign(user.id)
        claims = signer.verify(token)   # raises InvalidToken / ExpiredToken
    """

    def __init__(self, config: TokenConfig) -> None:
        self.config = config

    def sign(self, user_id: int, now: datetime | None = None) -> tuple[str, SessionClaims]:
        """Encode a signed token for user_id. Returns (token, claims)."""
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(seconds=self.config.expire_seconds)
        payload = {
            "sub": str(user_id),
            "iat": issued_at.timestamp(),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)
        return token, SessionClaims(user_id=user_id, issued_at=issued_at, expires_at=expires_at)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a token.

        Raises:
            ExpiredToken: signature is valid but exp is in the past.
            InvalidToken: bad signature, malformed token, or missing claims.
        """
        try:
            payload = jwt.decode(token, self.config.secret_key, algorithms=[self.config.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredToken("Token has expired.") from exc
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        try:
            user_id = int(payload["sub"])
            issued_at = datetime.fromtimestamp(float(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(float(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("Token is missing required claims.") from exc

        return SessionClaims(user_id=user_id, issued_at=issued_at, expires_at=expires_at)
