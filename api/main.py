"""
api/main.py -- FastAPI application entry point for Wayfarer accounts.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the auth object graph once (store, signer, issuer, mailer,
gate, services) and parks it on app.state. Route handlers and dependencies
read from app.state and never construct these themselves.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api.errors import auth_error_handler
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.users import router as users_router
from auth.errors import AuthError
from auth.gate import AuthGate
from auth.recovery import Mailer, PasswordRecovery
from auth.service import AuthService
from auth.sessions import CookiePolicy, SessionIssuer
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenSigner
from core.config import get_settings
from core.mailer import SMTPMailer, SMTPSettings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("wayfarer.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def wire_auth(app: FastAPI, store: UserStore, mailer: Mailer) -> None:
    """Build the auth services around ``store`` and ``mailer`` and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both run the same
    object graph.
    """
    settings = get_settings()
    signer = TokenSigner(TokenConfig.from_settings(settings))
    issuer = SessionIssuer(signer, CookiePolicy.from_settings(settings))
    app.state.user_store = store
    app.state.auth_gate = AuthGate(store, signer)
    app.state.auth_service = AuthService(store, issuer, signup_fields=settings.signup_fields)
    app.state.password_recovery = PasswordRecovery(store, issuer, mailer)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the user store and wire the auth services; close the store on shutdown."""
    logger.info("Wayfarer API starting up (environment=%s)", _settings.environment)
    store = UserStore(db_url=_settings.database_url)
    wire_auth(app, store, SMTPMailer(SMTPSettings.from_settings(_settings)))
    if not _settings.email_host:
        logger.warning("EMAIL_HOST is not set -- password reset emails will fail")
    logger.info("Auth initialized (users present=%s)", store.has_users())

    yield

    store.close()
    logger.info("Wayfarer API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Wayfarer Accounts API",
    description="Signup, login, sessions and password recovery for Wayfarer.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    # Reset secrets travel in the path; log the route prefix only.
    path = request.url.path
    if path.startswith("/api/v1/users/resetPassword/"):
        path = "/api/v1/users/resetPassword/<token>"
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

app.add_exception_handler(AuthError, auth_error_handler)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only; the client gets a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a database round-trip check."""
    database = "ok"
    try:
        request.app.state.user_store.has_users()
    except SQLAlchemyError:
        logger.exception("Health check: database unavailable")
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})
