"""Settings, database session, and the token/credential primitives the services build on."""

from app.core.config import get_settings, settings
from app.core.database import get_db
from app.core.exceptions import AuthError, ConfigurationError
from app.core.tokens import TokenIssuer

__all__ = ["AuthError", "ConfigurationError", "TokenIssuer", "get_db", "get_settings", "settings"]
