"""Exceptions raised by the auth core. Routers translate them to generic HTTP errors."""


class AuthError(Exception):
    """Base class for auth core failures. `message` is safe to log, not always safe to return."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(AuthError):
    """Fatal: the process is missing configuration it cannot run without (e.g. JWT_SECRET)."""


class AccountValidationError(AuthError):
    """Malformed input (email format, password length, name length)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class EmailConflictError(AuthError):
    """An account with this email already exists."""


class InvalidCredentialsError(AuthError):
    """Bad login or bad current password. Never says which part was wrong."""


class AccountNotFoundError(AuthError):
    """The authenticated user has no account or credential row."""


class PermissionDeniedError(AuthError):
    """The user exists but lacks the required role."""


class TokenError(AuthError):
    """Access or refresh token rejected (expired, invalid, or revoked)."""


class TokenExpiredError(TokenError):
    """Token signature is valid but its exp has passed."""


class TokenInvalidError(TokenError):
    """Bad signature, malformed token, wrong token type, or missing claims."""


class ResetTokenError(AuthError):
    """Password reset token cannot be consumed."""


class ResetTokenNotFoundError(ResetTokenError):
    """No reset token with this value exists."""


class ResetTokenExpiredError(ResetTokenError):
    """Reset token exists and is unused but its window has passed."""


class ResetTokenUsedError(ResetTokenError):
    """Reset token was already consumed."""


class InvalidOrExpiredTokenError(AuthError):
    """Generic reset failure returned to callers for any ResetTokenError."""
