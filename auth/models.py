"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; the only behaviour here keeps the reset-token pair
consistent and stages plaintext passwords for the next save.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

ROLES: tuple[str, ...] = ("user", "guide", "lead-guide", "admin")
DEFAULT_ROLE = "user"


@dataclass
class User:
    """A Wayfarer account.

    hashed_password is only populated when the store is asked for it
    (include_secret=True); default reads leave it None so a careless
    serializer cannot leak it.

    password / confirm_password are transient: set them and call
    UserStore.save() to rotate the password. The store validates, hashes,
    stamps password_changed_at and clears both fields. They are never
    persisted.

    password_reset_token holds the SHA-256 digest of the reset secret, never
    the secret itself. It and password_reset_expires are set and cleared
    together.
    """

    name: str
    email: str
    role: str = DEFAULT_ROLE
    id: int | None = None
    hashed_password: str | None = None
    password_changed_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_expires: datetime | None = None
    created_at: str | None = None
    password: str | None = field(default=None, repr=False)
    confirm_password: str | None = field(default=None, repr=False)

    def set_reset_token(self, token_hash: str, expires_at: datetime) -> None:
        self.password_reset_token = token_hash
        self.password_reset_expires = expires_at

    def clear_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    def stage_password(self, password: str | None, confirm_password: str | None) -> None:
        self.password = password
        self.confirm_password = confirm_password

    def changed_password_after(self, issued_at: datetime) -> bool:
        """True when the password was rotated after a token was issued."""
        if self.password_changed_at is None:
            return False
        return self.password_changed_at > issued_at


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    user_id: int
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ResetSecret:
    """A freshly generated password reset secret.

    ``secret`` goes into the email exactly once; only ``token_hash`` and
    ``expires_at`` are stored.
    """

    secret: str = field(repr=False)
    token_hash: str
    expires_at: datetime


@dataclass(frozen=True)
class AuthContext:
    """Request-scoped identity established by AuthGate.authenticate()."""

    user: User
    claims: SessionClaims


@dataclass(frozen=True)
class SessionCookie:
    """Transport-neutral description of the session cookie to set."""

    name: str
    value: str = field(repr=False)
    expires: datetime
    http_only: bool
    secure: bool


@dataclass(frozen=True)
class Session:
    """Result of a successful signup, login, reset or password update.

    ``user`` is the redacted public representation (see sessions.public_user).
    ``status`` is the HTTP-level status hint the transport should use.
    """

    token: str = field(repr=False)
    user: dict
    cookie: SessionCookie
    status: int = 200
