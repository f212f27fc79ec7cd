"""
auth/recovery.py -- Forgot-password and reset-password orchestration.

forgot_password:
    find user by email            -> UnknownEmail, nothing written
    generate secret, store digest + expiry (unvalidated save)
    mail the reset link           -> on DeliveryError: clear the reset
                                     fields (best effort) and raise
                                     NotificationDeliveryError

reset_password:
    digest the presented secret, look up the user holding that digest,
    then confirm it with reset_tokens.matches (constant-time digest
    compare, expiry still ahead)     -> InvalidOrExpiredToken
    stage the new password, clear the reset fields, validated save
    (a ValidationError leaves the stored record untouched, token included)
    issue a fresh session

The compensation clear is a second write without a transaction. If it
fails, the failure is logged and the delivery error is still raised; the
stranded token dies at its expiry.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from auth import reset_tokens
from auth.errors import InvalidOrExpiredToken, NotificationDeliveryError, UnknownEmail
from auth.models import Session
from auth.sessions import SessionIssuer
from auth.store import UserStore
from core.mailer import DeliveryError

logger = logging.getLogger("wayfarer.auth.recovery")

RESET_SUBJECT = "Your password reset token (valid for 10 minutes)"


class Mailer(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None: ...


def reset_message(reset_url: str) -> str:
    return (
        "Forgot your password? Submit a PATCH request with your new password and "
        f"confirmPassword to: {reset_url}\n"
        "If you didn't forget your password, please ignore this email!"
    )


class PasswordRecovery:
    def __init__(self, store: UserStore, issuer: SessionIssuer, mailer: Mailer) -> None:
        self.store = store
        self.issuer = issuer
        self.mailer = mailer

    def forgot_password(self, email: str, reset_url_base: str, now: datetime | None = None) -> None:
        """Mail a one-time reset link to the owner of ``email``."""
        user = self.store.find_by_email(email)
        if user is None:
            raise UnknownEmail()

        issued = reset_tokens.generate(now=now)
        user.set_reset_token(issued.token_hash, issued.expires_at)
        self.store.save(user, validate=False)
        logger.info("Reset token issued for user id=%s, expires %s", user.id, issued.expires_at.isoformat())

        reset_url = f"{reset_url_base.rstrip('/')}/{issued.secret}"
        try:
            self.mailer.send(user.email, RESET_SUBJECT, reset_message(reset_url))
        except DeliveryError as exc:
            logger.error("Reset email to user id=%s failed: %s", user.id, exc)
            user.clear_reset_token()
            try:
                self.store.save(user, validate=False)
            except Exception:
                logger.exception("Could not clear reset token for user id=%s", user.id)
            raise NotificationDeliveryError() from exc

    def reset_password(
        self,
        secret: str,
        password: str | None,
        confirm_password: str | None,
        now: datetime | None = None,
    ) -> Session:
        """Consume a reset secret and set a new password. Returns a new session."""
        current = now or datetime.now(timezone.utc)
        user = self.store.find_by_reset_token(reset_tokens.digest(secret), now=current)
        if user is None or not reset_tokens.matches(
            secret, user.password_reset_token, user.password_reset_expires, now=current
        ):
            raise InvalidOrExpiredToken()

        user.stage_password(password, confirm_password)
        user.clear_reset_token()
        self.store.save(user, validate=True, now=current)
        logger.info("Password reset completed for user id=%s", user.id)
        return self.issuer.issue(user, now=current)
