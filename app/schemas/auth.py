"""Request/response schemas for auth endpoints."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.core.security import EMAIL_MAX_LEN, NAME_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN


class SignupRequest(BaseModel):
    """New account details. camelCase names are accepted for older clients."""

    email: str = Field(..., min_length=3, max_length=EMAIL_MAX_LEN, description="Email")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )
    first_name: str | None = Field(
        default=None,
        max_length=NAME_MAX_LEN,
        validation_alias=AliasChoices("first_name", "firstName"),
    )
    last_name: str | None = Field(
        default=None,
        max_length=NAME_MAX_LEN,
        validation_alias=AliasChoices("last_name", "lastName"),
    )


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=3, max_length=EMAIL_MAX_LEN, description="Email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class RefreshRequest(BaseModel):
    """Refresh token to exchange for a new access token."""

    refresh_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


class LogoutRequest(BaseModel):
    """Refresh token to revoke."""

    refresh_token: str = Field(
        ...,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


class UserProfile(BaseModel):
    """Public profile of an account (no password, no role)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None


class LoginUser(UserProfile):
    """Profile returned by login, including the role the client gates UI on."""

    role: str


class SignupResponse(BaseModel):
    """Response for POST /auth/signup. No tokens: the user logs in afterwards."""

    message: str = "User created successfully"
    user: UserProfile


class LoginResponse(BaseModel):
    """Access and refresh tokens returned after successful login."""

    message: str = "Login successful"
    user: LoginUser
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")


class RefreshResponse(BaseModel):
    """New access token; refresh_token is present only when rotation is enabled."""

    access_token: str
    token_type: str = "bearer"
    refresh_token: str | None = None


class MessageResponse(BaseModel):
    """Acknowledgement with a human-readable message."""

    message: str


class RoleResponse(BaseModel):
    """Role of the current user."""

    role: str | None


class CurrentUser(BaseModel):
    """Authenticated identity (id, role) resolved from the bearer token."""

    id: str
    role: str
