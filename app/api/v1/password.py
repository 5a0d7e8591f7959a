"""Password reset (request + consume) and authenticated password change."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.v1.auth import get_auth_service, get_current_user
from app.core.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
)
from app.schemas.auth import CurrentUser, MessageResponse
from app.schemas.password import (
    PasswordResetConsumeRequest,
    PasswordResetRequest,
    PasswordUpdateRequest,
)
from app.services.auth import AuthService

router = APIRouter()


@router.post("/reset-request", response_model=MessageResponse)
def request_reset(
    body: PasswordResetRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Same response whether or not the email belongs to an account."""
    return MessageResponse(message=service.request_password_reset(body.email))


@router.post("/reset", response_model=MessageResponse)
def reset_password(
    body: PasswordResetConsumeRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Set a new password using a single-use reset token."""
    try:
        service.consume_password_reset(body.token, body.new_password)
    except AccountValidationError as e:
        raise HTTPException(status_code=422, detail=e.message) from e
    except InvalidOrExpiredTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    return MessageResponse(message="Password reset successfully")


@router.post("/update", response_model=MessageResponse)
def update_password(
    body: PasswordUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Change the current user's password; requires the current password."""
    try:
        service.change_password(current_user.id, body.current_password, body.new_password)
    except AccountValidationError as e:
        raise HTTPException(status_code=422, detail=e.message) from e
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except InvalidCredentialsError as e:
        # No WWW-Authenticate challenge: the bearer token was accepted.
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    return MessageResponse(message="Password updated successfully")
