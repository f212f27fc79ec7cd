"""
auth/service.py -- Signup, login and password update flows.

AuthService orchestrates the store, the password hasher and the session
issuer. It raises typed AuthError subclasses and returns Session objects;
it has no idea what HTTP is.

Signup field allow-list:
  The client may set name, email, password and confirm_password, plus
  whatever Settings.signup_fields lists (by default role and
  password_changed_at). Everything else is dropped before the store sees
  it. Narrow the list in configuration to stop clients choosing their own
  role.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from auth.errors import InvalidCredentials, MissingCredentials, UserNotFound, WrongPassword
from auth.models import AuthContext, Session
from auth.passwords import verify_password, verify_password_timing_safe
from auth.sessions import SessionIssuer
from auth.store import UserStore

logger = logging.getLogger("wayfarer.auth")

_BASE_SIGNUP_FIELDS = frozenset({"name", "email", "password", "confirm_password"})


class AuthService:
    def __init__(
        self,
        store: UserStore,
        issuer: SessionIssuer,
        signup_fields: Iterable[str] = ("role", "password_changed_at"),
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.signup_fields: frozenset[str] = _BASE_SIGNUP_FIELDS | frozenset(signup_fields)

    def signup(self, data: dict) -> Session:
        """Create an account and open a session for it (status 201)."""
        fields = {k: v for k, v in data.items() if k in self.signup_fields and v is not None}
        dropped = sorted(k for k in data if k not in self.signup_fields and data[k] is not None)
        if dropped:
            logger.info("Signup ignored fields: %s", ", ".join(dropped))
        user = self.store.create(fields)
        logger.info("Signup: user id=%s", user.id)
        return self.issuer.issue(user, status=201)

    def login(self, email: str | None, password: str | None) -> Session:
        """Check credentials and open a session.

        Unknown email and wrong password raise the same InvalidCredentials,
        and both pay the bcrypt cost.
        """
        if not email or not email.strip() or not password:
            raise MissingCredentials()

        user = self.store.find_by_email(email, include_secret=True)
        matched = verify_password_timing_safe(password, user.hashed_password if user is not None else None)
        if user is None or not matched:
            logger.warning("Failed login for email=%s", email.strip().lower())
            raise InvalidCredentials()

        logger.info("Login: user id=%s", user.id)
        return self.issuer.issue(user)

    def update_password(
        self,
        context: AuthContext,
        current_password: str | None,
        password: str | None,
        confirm_password: str | None,
        now: datetime | None = None,
    ) -> Session:
        """Rotate the caller's password after re-checking the current one.

        Every session issued before the change stops passing the gate; the
        returned session is the caller's replacement.
        """
        user = self.store.find_by_id(context.user.id, include_secret=True)
        if user is None:
            raise UserNotFound()

        if not current_password or not user.hashed_password or not verify_password(current_password, user.hashed_password):
            logger.warning("Wrong current password for user id=%s", user.id)
            raise WrongPassword()

        user.stage_password(password, confirm_password)
        self.store.save(user, validate=True, now=now)
        logger.info("Password updated for user id=%s", user.id)
        return self.issuer.issue(user, now=now)
