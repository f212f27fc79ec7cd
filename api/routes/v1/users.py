"""
api/routes/v1/users.py -- Account and session REST endpoints.

Routes:
  POST  /api/v1/users/signup                 -- create account; 201 + session
  POST  /api/v1/users/login                  -- password login; session (rate limited)
  POST  /api/v1/users/logout                 -- clears the jwt cookie
  POST  /api/v1/users/forgotPassword         -- mail a reset link (rate limited)
  PATCH /api/v1/users/resetPassword/{token}  -- consume reset secret; session
  PATCH /api/v1/users/updateMyPassword       -- rotate password (requires auth); session
  GET   /api/v1/users/me                     -- current user (requires auth)
  GET   /api/v1/users                        -- list users (admin only)

Handlers only translate between HTTP and the auth core. Every failure is an
AuthError raised from auth/ and rendered by api/errors.py.

Security:
  Cache-Control: no-store on every response that carries a session token.
  The session cookie is HttpOnly; Secure follows ENVIRONMENT=production.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_auth_context, require_role
from api.limiter import limiter
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
    UpdatePasswordRequest,
    UserData,
    UserListData,
    UserListResponse,
    UserOut,
    UserResponse,
)
from auth.models import AuthContext, Session
from auth.recovery import PasswordRecovery
from auth.service import AuthService
from auth.sessions import SESSION_COOKIE_NAME, public_user
from core.config import get_settings

# Auth policy:
# - POST  /users/signup, /users/login, /users/logout:  public
# - POST  /users/forgotPassword:                       public
# - PATCH /users/resetPassword/{token}:                public; the secret is the credential
# - PATCH /users/updateMyPassword, GET /users/me:      requires auth (get_auth_context)
# - GET   /users:                                      requires admin (require_role("admin"))
router = APIRouter()


def _login_limit() -> str:
    return get_settings().login_rate_limit


def _forgot_password_limit() -> str:
    return get_settings().forgot_password_rate_limit


def _session_response(session: Session) -> JSONResponse:
    body = SessionResponse(token=session.token, data=UserData(user=UserOut(**session.user)))
    resp = JSONResponse(status_code=session.status, content=body.model_dump())
    cookie = session.cookie
    resp.set_cookie(
        key=cookie.name,
        value=cookie.value,
        expires=cookie.expires,
        httponly=cookie.http_only,
        secure=cookie.secure,
        samesite="lax",
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _reset_url_base(request: Request) -> str:
    return f"{str(request.base_url).rstrip('/')}/api/v1/users/resetPassword"


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users/signup", status_code=201, response_model=SessionResponse)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account and log it in."""
    service: AuthService = request.app.state.auth_service
    session = service.signup(body.model_dump(exclude_none=True))
    return _session_response(session)


@router.post("/users/login", response_model=SessionResponse)
@limiter.limit(_login_limit)  # must sit BELOW @router so the registered endpoint is the limited one
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password return the same 401 so the endpoint
    cannot be used to discover which emails have accounts.
    """
    service: AuthService = request.app.state.auth_service
    return _session_response(service.login(body.email, body.password))


@router.post("/users/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Clear the session cookie. Tokens already handed out stay valid until they expire."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.delete_cookie(SESSION_COOKIE_NAME)
    return resp


@router.post("/users/forgotPassword", response_model=MessageResponse)
@limiter.limit(_forgot_password_limit)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Mail a ten-minute reset link to the account owner."""
    recovery: PasswordRecovery = request.app.state.password_recovery
    recovery.forgot_password(body.email or "", _reset_url_base(request))
    return MessageResponse(message="Token sent to email!")


@router.patch("/users/resetPassword/{token}", response_model=SessionResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> JSONResponse:
    """Set a new password with a mailed reset secret and log in."""
    recovery: PasswordRecovery = request.app.state.password_recovery
    session = recovery.reset_password(token, body.password, body.confirm_password)
    return _session_response(session)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.patch("/users/updateMyPassword", response_model=SessionResponse)
def update_my_password(
    request: Request,
    body: UpdatePasswordRequest,
    context: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    """Rotate the caller's password. Older sessions stop working; the new one is returned."""
    service: AuthService = request.app.state.auth_service
    session = service.update_password(context, body.current_password, body.password, body.confirm_password)
    return _session_response(session)


@router.get("/users/me", response_model=UserResponse)
def me(context: AuthContext = Depends(get_auth_context)) -> UserResponse:
    return UserResponse(data=UserData(user=UserOut(**public_user(context.user))))


@router.get("/users", response_model=UserListResponse)
def list_users(request: Request, context: AuthContext = Depends(require_role("admin"))) -> UserListResponse:
    """List every account. Admin only."""
    users = [UserOut(**public_user(u)) for u in request.app.state.user_store.list_users()]
    return UserListResponse(results=len(users), data=UserListData(users=users))
