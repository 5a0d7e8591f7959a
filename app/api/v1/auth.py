"""Signup, login, refresh, logout, and the bearer-token dependencies other routers use."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.exceptions import (
    AccountValidationError,
    ConfigurationError,
    EmailConflictError,
    InvalidCredentialsError,
    TokenError,
)
from app.core.tokens import TokenIssuer
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RoleResponse,
    SignupRequest,
    SignupResponse,
    UserProfile,
)
from app.services.auth import AuthService, ResetNotifier, log_reset_notifier

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

INVALID_TOKEN_DETAIL = "Invalid or expired token"


def get_token_issuer(request: Request) -> TokenIssuer:
    """Dependency: the issuer built once at startup (see app.main lifespan)."""
    issuer = getattr(request.app.state, "token_issuer", None)
    if issuer is None:
        raise ConfigurationError("Token issuer is not initialised")
    return issuer


def get_reset_notifier() -> ResetNotifier:
    """Dependency: delivery hook for password reset tokens."""
    return log_reset_notifier


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    notifier: Annotated[ResetNotifier, Depends(get_reset_notifier)],
) -> AuthService:
    return AuthService.from_settings(db, issuer, get_settings(), notifier=notifier)


def _validation_error(e: AccountValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=e.message,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    body: SignupRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> SignupResponse:
    """Create an account. The user must log in afterwards to get tokens."""
    try:
        profile = service.signup(body.email, body.password, body.first_name, body.last_name)
    except AccountValidationError as e:
        raise _validation_error(e) from e
    except EmailConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    return SignupResponse(user=profile)


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """
    Authenticate with email and password; returns an access token and a refresh token.
    Include the access token in the Authorization header as: Bearer <access_token>
    """
    try:
        result = service.login(body.email, body.password)
    except AccountValidationError as e:
        raise _validation_error(e) from e
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    return LoginResponse(
        user=result.user,
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )


@router.post("/refresh", response_model=RefreshResponse, response_model_exclude_none=True)
def refresh(
    body: RefreshRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> RefreshResponse:
    """Exchange a live refresh token for a new access token."""
    try:
        result = service.refresh(body.refresh_token)
    except TokenError as e:
        logger.info("Refresh rejected", extra={"reason": type(e).__name__})
        raise _unauthorized(INVALID_TOKEN_DETAIL) from e
    return RefreshResponse(access_token=result.access_token, refresh_token=result.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    body: LogoutRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Revoke the refresh token. Succeeds whether or not the token was still valid."""
    service.logout(body.refresh_token)
    return MessageResponse(message="Logged out successfully")


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> CurrentUser:
    """Dependency: require a valid Bearer access token. Raises 401 if missing or invalid."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        identity = service.authenticate(credentials.credentials)
    except TokenError as e:
        raise _unauthorized(INVALID_TOKEN_DETAIL) from e
    return CurrentUser(id=identity.user_id, role=identity.role)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> CurrentUser:
    """Dependency: require the stored role to be 'admin'. Raises 403 otherwise."""
    if not service.is_admin(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.get("/profile", response_model=UserProfile | None)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> UserProfile | None:
    """Profile of the current user, or null if the account no longer exists."""
    return service.get_profile(current_user.id)


@router.get("/role", response_model=RoleResponse)
def get_role(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> RoleResponse:
    """Stored role of the current user (may differ from the token's role after a change)."""
    return RoleResponse(role=service.get_role(current_user.id))
