"""
api/dependencies.py -- FastAPI Depends() helpers for authentication.

Thin adapters over auth.gate: pull the Authorization header and the "jwt"
cookie off the request, hand them to AuthGate, and return the AuthContext.
Failures propagate as AuthError and are rendered by api/errors.py.

    get_auth_context()     -> AuthContext or 401
    require_role("admin")  -> dependency that also enforces the role (403)

Role dependencies are built once at route registration, so the allow-list
is fixed when the router module is imported.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.gate import AuthGate, RoleGate
from auth.models import AuthContext
from auth.sessions import SESSION_COOKIE_NAME


def get_auth_context(request: Request) -> AuthContext:
    """Require an authenticated caller.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(context: AuthContext = Depends(get_auth_context)): ...
    """
    gate: AuthGate = request.app.state.auth_gate
    return gate.authenticate(
        request.headers.get("Authorization"),
        token_from_cookie=request.cookies.get(SESSION_COOKIE_NAME),
    )


def require_role(*roles: str) -> Callable[[AuthContext], AuthContext]:
    """Build a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(context: AuthContext = Depends(require_role("admin"))): ...
    """
    role_gate = RoleGate(*roles)

    def dependency(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        return role_gate.check(context)

    return dependency
