"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.token import PasswordResetToken, RefreshToken
from app.models.user import Credential, Role, User, UserPreferences

__all__ = [
    "Base",
    "Credential",
    "PasswordResetToken",
    "RefreshToken",
    "Role",
    "User",
    "UserPreferences",
]
