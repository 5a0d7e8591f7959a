"""JWT access/refresh token issuance and verification."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt

from app.core.exceptions import ConfigurationError, TokenExpiredError, TokenInvalidError

if TYPE_CHECKING:
    from app.core.config import Settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

DEFAULT_ACCESS_TTL = timedelta(minutes=15)
DEFAULT_REFRESH_TTL = timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token and the instant it stops being valid."""

    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Verified token payload."""

    user_id: str
    token_type: str
    expires_at: datetime
    role: str | None = None


class TokenIssuer:
    """
    Signs and verifies short-lived access tokens and long-lived refresh tokens.

    The signing configuration is fixed at construction; a missing secret is a
    ConfigurationError so the application refuses to start rather than sign with
    an empty key.
    """

    def __init__(
        self,
        secret: str | None,
        algorithm: str = "HS256",
        access_ttl: timedelta = DEFAULT_ACCESS_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not secret or not secret.strip():
            raise ConfigurationError("JWT_SECRET must be set and non-empty")
        if access_ttl <= timedelta(0) or refresh_ttl <= timedelta(0):
            raise ConfigurationError("Token lifetimes must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        secret = settings.JWT_SECRET.get_secret_value() if settings.JWT_SECRET else None
        return cls(
            secret,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS),
        )

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh_ttl

    def _encode(self, payload: dict[str, Any], ttl: timedelta) -> IssuedToken:
        now = self._clock()
        expires_at = now + ttl
        payload = {
            **payload,
            "iat": now,
            "exp": expires_at,
            # jti keeps two tokens minted in the same second for the same user distinct.
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def issue_access_token(self, user_id: str, role: str) -> str:
        """Create an access token carrying sub (user id), role, and exp."""
        payload = {"sub": str(user_id), "role": role, "type": ACCESS_TOKEN_TYPE}
        return self._encode(payload, self._access_ttl).token

    def issue_refresh_token(self, user_id: str) -> IssuedToken:
        """Create a refresh token carrying sub and exp; the caller persists it."""
        payload = {"sub": str(user_id), "type": REFRESH_TOKEN_TYPE}
        return self._encode(payload, self._refresh_ttl)

    def verify(self, token: str, expected_type: str | None = None) -> TokenClaims:
        """
        Check signature and expiry and return the claims.

        Raises TokenExpiredError when exp has passed, TokenInvalidError for anything
        else (bad signature, malformed token, missing claims, wrong token type).
        """
        if not token:
            raise TokenInvalidError("Token is empty")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.PyJWTError as e:
            raise TokenInvalidError(f"Token rejected: {type(e).__name__}") from e

        token_type = payload.get("type")
        if expected_type is not None and token_type != expected_type:
            raise TokenInvalidError(f"Expected {expected_type} token, got {token_type!r}")
        sub = payload.get("sub")
        if not isinstance(sub, str) or not sub:
            raise TokenInvalidError("Token has no subject")
        role = payload.get("role")
        if token_type == ACCESS_TOKEN_TYPE and not role:
            raise TokenInvalidError("Access token has no role")
        return TokenClaims(
            user_id=sub,
            token_type=token_type,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            role=role,
        )
