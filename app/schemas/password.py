"""Request schemas for password reset and password change."""

from pydantic import AliasChoices, BaseModel, Field

from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN


class PasswordResetRequest(BaseModel):
    """Email to send a reset link to (if such an account exists)."""

    email: str = Field(..., min_length=1, max_length=EMAIL_MAX_LEN)


class PasswordResetConsumeRequest(BaseModel):
    """Reset token from the emailed link plus the new password."""

    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(
        ...,
        min_length=PASSWORD_MIN_LEN,
        max_length=PASSWORD_MAX_LEN,
        validation_alias=AliasChoices("new_password", "newPassword"),
    )


class PasswordUpdateRequest(BaseModel):
    """Authenticated password change."""

    current_password: str = Field(
        ...,
        min_length=1,
        max_length=PASSWORD_MAX_LEN,
        validation_alias=AliasChoices("current_password", "currentPassword"),
    )
    new_password: str = Field(
        ...,
        min_length=PASSWORD_MIN_LEN,
        max_length=PASSWORD_MAX_LEN,
        validation_alias=AliasChoices("new_password", "newPassword"),
    )
