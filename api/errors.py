"""
api/errors.py -- Map authentication failures onto HTTP.

The auth core raises typed AuthError subclasses and never mentions status
codes. This module is the single place that decides what each failure means
on the wire. error_status() is a pure function so the table can be tested
without a running app; auth_error_handler() is the FastAPI exception handler
registered in api/main.py.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from auth.errors import (
    AuthError,
    Forbidden,
    InvalidCredentials,
    InvalidOrExpiredToken,
    MissingCredentials,
    NoAccess,
    NotificationDeliveryError,
    StalePassword,
    UnknownEmail,
    UserGone,
    UserNotFound,
    ValidationError,
    WrongPassword,
)

STATUS_BY_ERROR: dict[type[AuthError], int] = {
    MissingCredentials: 400,
    InvalidCredentials: 401,
    NoAccess: 401,
    UserGone: 401,
    StalePassword: 401,
    Forbidden: 403,
    UnknownEmail: 404,
    UserNotFound: 404,
    InvalidOrExpiredToken: 400,
    WrongPassword: 401,
    ValidationError: 400,
    NotificationDeliveryError: 500,
}


def error_status(exc: AuthError) -> tuple[int, str]:
    """Return (status, message) for an auth failure.

    Walks the MRO so subclasses inherit their parent's status. Anything not
    in the table is a server fault.
    """
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls], exc.message
    return 500, exc.message


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    status, message = error_status(exc)
    detail = "; ".join(f"{k}: {v}" for k, v in exc.details.items()) or None
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message, detail=detail)).model_dump(),
    )
