"""
auth/errors.py -- Typed failures raised by the authentication core.

Every flow in auth/ reports failure by raising one of these. None of them
knows about HTTP: the api/ layer owns the mapping to status codes
(api/errors.py). Each class carries a stable machine-readable ``code`` and a
default user-facing message so callers can raise them without arguments.

Messages must never include password hashes, raw reset secrets or tokens.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all authentication and authorization failures."""

    code = "auth_error"
    default_message = "Authentication failed."

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class MissingCredentials(AuthError):
    code = "missing_credentials"
    default_message = "Please provide an email and password."


class InvalidCredentials(AuthError):
    """Unknown email and wrong password share this error on purpose."""

    code = "invalid_credentials"
    default_message = "Incorrect email or password."


class WrongPassword(AuthError):
    code = "wrong_password"
    default_message = "Your current password is wrong."


class UserNotFound(AuthError):
    code = "user_not_found"
    default_message = "User not found."


class ValidationError(AuthError):
    """Raised by the credential store when a record fails its constraints."""

    code = "validation_error"
    default_message = "Invalid user data."


# ---------------------------------------------------------------------------
# Route protection
# ---------------------------------------------------------------------------


class NoAccess(AuthError):
    code = "no_access"
    default_message = "You are not logged in. Please log in to get access."


class UserGone(AuthError):
    code = "user_gone"
    default_message = "The user belonging to this token no longer exists."


class StalePassword(AuthError):
    code = "stale_password"
    default_message = "User recently changed password. Please log in again."


class Forbidden(AuthError):
    code = "forbidden"
    default_message = "You do not have permission to perform this action."


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


class UnknownEmail(AuthError):
    code = "unknown_email"
    default_message = "There is no user with that email address."


class NotificationDeliveryError(AuthError):
    code = "notification_failed"
    default_message = "There was an error sending the email. Please try again later."


class InvalidOrExpiredToken(AuthError):
    code = "invalid_or_expired_token"
    default_message = "Token is invalid or has expired."


# ---------------------------------------------------------------------------
# Session token verification (signer level)
#
# Raised by TokenSigner.verify(). The gate converts both into NoAccess, so
# they deliberately do not inherit from AuthError.
# ---------------------------------------------------------------------------


class InvalidToken(Exception):
    """Signature mismatch, malformed token, or missing claims."""


class ExpiredToken(InvalidToken):
    """Well-formed and correctly signed, but past its expiry."""
