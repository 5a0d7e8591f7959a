"""
Auth orchestrator: signup, login, refresh, logout, password reset, and password change.

Each public method is one unit of work: it commits on success and rolls back on any
exception, so callers never observe partial state (e.g. a user without a credential).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    ResetTokenError,
    TokenInvalidError,
)
from app.core.security import (
    BCRYPT_ROUNDS,
    EMAIL_MAX_LEN,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    hash_password,
    verify_against_dummy,
    verify_password,
)
from app.core.tokens import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, TokenIssuer, utc_now
from app.schemas.auth import LoginUser, UserProfile
from app.services.accounts import AccountDirectory
from app.services.password_resets import DEFAULT_RESET_TTL, PasswordResetLedger
from app.services.sessions import SessionIdentity, SessionRegistry

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
CURRENT_PASSWORD_MESSAGE = "Current password is incorrect."
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token."
RESET_REQUESTED_MESSAGE = (
    "If a user with that email exists, a password reset link has been sent"
)


class ResetNotifier(Protocol):
    """Delivers a reset token to the account owner (email delivery lives outside this core)."""

    def __call__(self, email: str, token: str) -> None: ...


def log_reset_notifier(email: str, token: str) -> None:
    """Default notifier: records that a token was issued. Never logs the token itself."""
    logger.info("Password reset token issued; no delivery channel configured")


@dataclass(frozen=True)
class LoginResult:
    user: LoginUser
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    # Set only when refresh token rotation is enabled.
    refresh_token: str | None = None


def _validate_email(email: str) -> str:
    if not email or len(email) > EMAIL_MAX_LEN:
        raise AccountValidationError("Invalid email format", field="email")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise AccountValidationError("Invalid email format", field="email") from e
    return email


def _validate_password(password: str, field: str = "password") -> None:
    if not (PASSWORD_MIN_LEN <= len(password or "") <= PASSWORD_MAX_LEN):
        raise AccountValidationError(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters",
            field=field,
        )


def _clean_name(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if len(value) > NAME_MAX_LEN:
        raise AccountValidationError(f"{field} must be at most {NAME_MAX_LEN} characters", field=field)
    return value or None


class AuthService:
    """Public auth contract. Composes the account directory, token issuer, and both ledgers."""

    def __init__(
        self,
        db: Session,
        token_issuer: TokenIssuer,
        *,
        notifier: ResetNotifier = log_reset_notifier,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
        reset_ttl: timedelta = DEFAULT_RESET_TTL,
        rotate_refresh_tokens: bool = False,
        revoke_sessions_on_reset: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._tokens = token_issuer
        self._notifier = notifier
        self._bcrypt_rounds = bcrypt_rounds
        self._rotate_refresh_tokens = rotate_refresh_tokens
        self._revoke_sessions_on_reset = revoke_sessions_on_reset
        self.accounts = AccountDirectory(db)
        self.sessions = SessionRegistry(db, clock=clock)
        self.resets = PasswordResetLedger(db, ttl=reset_ttl, clock=clock)

    @classmethod
    def from_settings(
        cls,
        db: Session,
        token_issuer: TokenIssuer,
        settings: Settings,
        notifier: ResetNotifier = log_reset_notifier,
    ) -> AuthService:
        return cls(
            db,
            token_issuer,
            notifier=notifier,
            bcrypt_rounds=settings.BCRYPT_ROUNDS,
            reset_ttl=timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
            rotate_refresh_tokens=settings.JWT_REFRESH_ROTATION,
            revoke_sessions_on_reset=settings.REVOKE_SESSIONS_ON_PASSWORD_RESET,
        )

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

    def _hash(self, password: str) -> str:
        return hash_password(password, rounds=self._bcrypt_rounds)

    def signup(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserProfile:
        """Create an account with role 'user'. Returns the profile; no tokens are issued."""
        _validate_email(email)
        _validate_password(password)
        first_name = _clean_name(first_name, "first_name")
        last_name = _clean_name(last_name, "last_name")
        with self._unit_of_work():
            profile = self.accounts.create(
                email, self._hash(password), first_name=first_name, last_name=last_name
            )
        logger.info("User signed up", extra={"user_id": profile.id})
        return profile

    def login(self, email: str, password: str) -> LoginResult:
        """
        Verify credentials and start a session.

        Unknown email and wrong password raise the same InvalidCredentialsError after
        the same bcrypt work.
        """
        _validate_email(email)
        account = self.accounts.find_by_email(email)
        if account is None:
            verify_against_dummy(password, rounds=self._bcrypt_rounds)
            logger.info("Login failed", extra={"reason": "invalid_credentials"})
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)
        if not verify_password(password, account.password_hash):
            logger.info("Login failed", extra={"reason": "invalid_credentials"})
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        with self._unit_of_work():
            access_token = self._tokens.issue_access_token(account.user_id, account.role)
            refresh = self._tokens.issue_refresh_token(account.user_id)
            self.sessions.record(account.user_id, refresh.token, refresh.expires_at)
        logger.info("User logged in", extra={"user_id": account.user_id})
        return LoginResult(
            user=LoginUser(**account.profile.model_dump(), role=account.role),
            access_token=access_token,
            refresh_token=refresh.token,
        )

    def refresh(self, refresh_token: str) -> RefreshResult:
        """
        Exchange a refresh token for a new access token.

        The token must pass signature/expiry verification and be live in the session
        registry. With rotation enabled the presented token is revoked and a new one
        is returned alongside the access token.
        """
        claims = self._tokens.verify(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        with self._unit_of_work():
            identity = self.sessions.is_active(refresh_token)
            if identity is None or identity.user_id != claims.user_id:
                raise TokenInvalidError("Refresh token not found, expired, or revoked")
            access_token = self._tokens.issue_access_token(identity.user_id, identity.role)
            if not self._rotate_refresh_tokens:
                return RefreshResult(access_token=access_token)
            # Losing a concurrent rotation means another request already spent this token.
            if not self.sessions.revoke(refresh_token):
                raise TokenInvalidError("Refresh token was already rotated")
            new_refresh = self._tokens.issue_refresh_token(identity.user_id)
            self.sessions.record(identity.user_id, new_refresh.token, new_refresh.expires_at)
        logger.info("Refresh token rotated", extra={"user_id": identity.user_id})
        return RefreshResult(access_token=access_token, refresh_token=new_refresh.token)

    def logout(self, refresh_token: str) -> None:
        """Revoke the refresh token. Unknown, expired, or already revoked tokens are a no-op."""
        if not refresh_token:
            return
        with self._unit_of_work():
            revoked = self.sessions.revoke(refresh_token)
        logger.info("Logout", extra={"revoked": revoked})

    def request_password_reset(self, email: str) -> str:
        """
        Issue a reset token if the account exists; always return the same message.

        Delivery failures are logged and not reported, since a different response
        would reveal that the account exists.
        """
        account = self.accounts.find_by_email(email) if email else None
        if account is None:
            return RESET_REQUESTED_MESSAGE
        with self._unit_of_work():
            token = self.resets.issue(account.user_id)
        try:
            self._notifier(email, token)
        except Exception:
            logger.exception(
                "Password reset delivery failed", extra={"user_id": account.user_id}
            )
        return RESET_REQUESTED_MESSAGE

    def consume_password_reset(self, token: str, new_password: str) -> None:
        """
        Spend a reset token and set the new password.

        Not found, expired, and already used all surface as InvalidOrExpiredTokenError.
        """
        _validate_password(new_password, field="new_password")
        with self._unit_of_work():
            try:
                user_id = self.resets.consume(token)
            except ResetTokenError as e:
                logger.info(
                    "Password reset rejected", extra={"reason": type(e).__name__}
                )
                raise InvalidOrExpiredTokenError(INVALID_RESET_TOKEN_MESSAGE) from e
            self.accounts.update_password(user_id, self._hash(new_password))
            if self._revoke_sessions_on_reset:
                self.sessions.revoke_all_for_user(user_id)
        logger.info("Password reset completed", extra={"user_id": user_id})

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Replace the password of an authenticated user after checking the current one."""
        _validate_password(new_password, field="new_password")
        current_hash = self.accounts.get_password_hash(user_id)
        if current_hash is None:
            raise AccountNotFoundError("User not found")
        if not verify_password(current_password, current_hash):
            logger.info("Password change rejected", extra={"user_id": user_id})
            raise InvalidCredentialsError(CURRENT_PASSWORD_MESSAGE)
        with self._unit_of_work():
            self.accounts.update_password(user_id, self._hash(new_password))
        logger.info("Password changed", extra={"user_id": user_id})

    def authenticate(self, access_token: str) -> SessionIdentity:
        """Verify a bearer access token without touching the database. Raises TokenError."""
        claims = self._tokens.verify(access_token, expected_type=ACCESS_TOKEN_TYPE)
        return SessionIdentity(user_id=claims.user_id, role=claims.role or "")

    def is_admin(self, user_id: str) -> bool:
        return self.accounts.is_admin(user_id)

    def get_profile(self, user_id: str) -> UserProfile | None:
        return self.accounts.get_profile(user_id)

    def get_role(self, user_id: str) -> str | None:
        return self.accounts.get_role(user_id)
