"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

The cost factor comes from Settings.bcrypt_rounds (12 in production, tests
drop it to 4). bcrypt only reads 72 bytes of input; the API request
models cap password length at 72.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed hash counts as a
    mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at import so the first unknown-email login is not measurably
# faster than later ones.
_DUMMY_HASH: str = hash_password("wayfarer_timing_dummy")


def verify_password_timing_safe(plain: str, hashed: str | None) -> bool:
    """verify_password() that still pays the bcrypt cost when there is no hash.

    Login calls this for unknown emails too, so response time does not reveal
    whether an account exists.
    """
    if hashed is None:
        verify_password(plain, _DUMMY_HASH)
        return False
    return verify_password(plain, hashed)
