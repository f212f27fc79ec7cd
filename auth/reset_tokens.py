"""
auth/reset_tokens.py -- One-time password reset secrets.

The secret is secrets.token_hex(32): 256 bits of entropy, 64 hex chars. It
is mailed to the user once and never stored. The store keeps a SHA-256 hex
digest plus an absolute expiry ten minutes out.

A fast digest is enough here. bcrypt's slowness protects low-entropy
passwords; a 256-bit random value that dies after ten minutes or one use
cannot be brute-forced, and a deterministic digest lets the store find the
owning user by an indexed equality lookup.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from auth.models import ResetSecret

RESET_TOKEN_TTL = timedelta(minutes=10)


def digest(secret: str) -> str:
    """Return the SHA-256 hex digest stored in place of ``secret``."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def generate(now: datetime | None = None) -> ResetSecret:
    """Create a new reset secret with its digest and expiry."""
    current = now or datetime.now(timezone.utc)
    secret = secrets.token_hex(32)
    return ResetSecret(secret=secret, token_hash=digest(secret), expires_at=current + RESET_TOKEN_TTL)


def matches(
    presented: str,
    stored_hash: str | None,
    stored_expires: datetime | None,
    now: datetime | None = None,
) -> bool:
    """Return True if ``presented`` hashes to ``stored_hash`` and has not expired."""
    if stored_hash is None or stored_expires is None:
        return False
    current = now or datetime.now(timezone.utc)
    if not hmac.compare_digest(digest(presented), stored_hash):
        return False
    return current < stored_expires
