"""
auth/gate.py -- Route protection: who is calling, and are they allowed.

AuthGate runs four steps in order and stops at the first failure:

    extract   Authorization: Bearer <token> (cookie token as fallback)  -> NoAccess
    verify    TokenSigner.verify()                                      -> NoAccess
    load      UserStore.find_by_id(claims.user_id)                      -> UserGone
    recency   password_changed_at > issued_at                           -> StalePassword

The result is an AuthContext handed explicitly to RoleGate and to the
handler. Nothing is stashed on a global or on the request.

RoleGate holds its allow-list as a frozenset fixed at construction. An
empty allow-list rejects everyone.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.errors import ExpiredToken, Forbidden, InvalidToken, NoAccess, StalePassword, UserGone
from auth.models import AuthContext
from auth.store import UserStore
from auth.tokens import TokenSigner

logger = logging.getLogger("wayfarer.auth.gate")

_BEARER_PREFIX = "Bearer "


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from a ``Bearer <token>`` header value, else None.

    The scheme is matched case-sensitively and the token must be a single
    non-empty word.
    """
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :]
    if not token or " " in token:
        return None
    return token


class AuthGate:
    def __init__(self, store: UserStore, signer: TokenSigner) -> None:
        self.store = store
        self.signer = signer

    def authenticate(self, authorization: str | None, token_from_cookie: str | None = None) -> AuthContext:
        """Resolve the caller's identity or raise an AuthError subclass.

        The cookie token is consulted only when no Authorization header was
        sent at all. A malformed header is rejected, not silently replaced.
        """
        if authorization is None:
            token = token_from_cookie or None
        else:
            token = extract_bearer(authorization)
        if token is None:
            raise NoAccess()

        try:
            claims = self.signer.verify(token)
        except ExpiredToken:
            logger.info("Rejected expired session token")
            raise NoAccess("Your token has expired. Please log in again.") from None
        except InvalidToken:
            logger.info("Rejected invalid session token")
            raise NoAccess("Invalid token. Please log in again.") from None

        user = self.store.find_by_id(claims.user_id)
        if user is None:
            logger.info("Session token for missing user id=%s", claims.user_id)
            raise UserGone()

        if user.changed_password_after(claims.issued_at):
            logger.info("Stale session token for user id=%s", user.id)
            raise StalePassword()

        return AuthContext(user=user, claims=claims)


class RoleGate:
    """Allow only the roles named at construction.

    Usage:
        admins_only = RoleGate("admin")
        admins_only.check(context)   # raises Forbidden
    """

    def __init__(self, *roles: str) -> None:
        self.roles: frozenset[str] = frozenset(roles)

    def check(self, context: AuthContext) -> AuthContext:
        if context.user.role not in self.roles:
            logger.info("Forbidden: user id=%s role=%s", context.user.id, context.user.role)
            raise Forbidden()
        return context
