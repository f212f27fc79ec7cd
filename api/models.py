"""
API request and response models for the Wayfarer REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request bodies accept both the camelCase names the web client sends
(confirmPassword, currentPassword, passwordChangedAt) and snake_case.
Account constraints (email format, password length, confirmation) are
enforced by the store, not here, so they surface as 400 validation errors
rather than 422 schema errors.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# bcrypt only reads the first 72 bytes.
_MAX_PASSWORD = 72


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/users/signup."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword", max_length=_MAX_PASSWORD)
    role: Optional[str] = None
    password_changed_at: Optional[datetime] = Field(default=None, alias="passwordChangedAt")


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login. Blank fields are a 400, not a 422."""

    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=320)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword", max_length=_MAX_PASSWORD)


class UpdatePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: Optional[str] = Field(default=None, alias="currentPassword", max_length=_MAX_PASSWORD)
    password: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD)
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword", max_length=_MAX_PASSWORD)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a user. Never carries the password hash or reset fields."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    password_changed_at: Optional[str] = None
    created_at: Optional[str] = None


class UserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserOut


class SessionResponse(BaseModel):
    """Body returned by every flow that opens a session."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    token: str
    data: UserData


class UserResponse(BaseModel):
    """Response for GET /api/v1/users/me."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    data: UserData


class UserListData(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[UserOut]


class UserListResponse(BaseModel):
    """Response for GET /api/v1/users (admin only)."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    results: int
    data: UserListData


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
