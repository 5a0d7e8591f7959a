"""Pydantic request/response schemas."""

from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    LoginUser,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RoleResponse,
    SignupRequest,
    SignupResponse,
    UserProfile,
)
from app.schemas.health import HealthResponse
from app.schemas.password import (
    PasswordResetConsumeRequest,
    PasswordResetRequest,
    PasswordUpdateRequest,
)

__all__ = [
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "LoginUser",
    "LogoutRequest",
    "MessageResponse",
    "PasswordResetConsumeRequest",
    "PasswordResetRequest",
    "PasswordUpdateRequest",
    "RefreshRequest",
    "RefreshResponse",
    "RoleResponse",
    "SignupRequest",
    "SignupResponse",
    "UserProfile",
]
