"""Password reset ledger: single-use, time-boxed reset tokens."""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ResetTokenExpiredError,
    ResetTokenNotFoundError,
    ResetTokenUsedError,
)
from app.core.tokens import utc_now
from app.models import PasswordResetToken

logger = logging.getLogger(__name__)

DEFAULT_RESET_TTL = timedelta(hours=1)
# 32 random bytes, hex encoded (64 chars).
RESET_TOKEN_BYTES = 32


class PasswordResetLedger:
    """Issues and consumes reset tokens. Methods flush but never commit."""

    def __init__(
        self,
        db: Session,
        ttl: timedelta = DEFAULT_RESET_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._ttl = ttl
        self._clock = clock

    def issue(self, user_id: str) -> str:
        """
        Persist and return a new random token for user_id.

        The token is opaque random bytes: nothing about the user can be derived from
        it and it cannot be forged from guessable inputs.
        """
        token = secrets.token_hex(RESET_TOKEN_BYTES)
        self._db.add(
            PasswordResetToken(
                user_id=user_id,
                token=token,
                expires_at=self._clock() + self._ttl,
            )
        )
        self._db.flush()
        return token

    def consume(self, token: str) -> str:
        """
        Mark the token used and return its owner's user id.

        The usability check and the write are one conditional UPDATE, so of two
        concurrent consumers exactly one sees an affected row. When nothing was
        updated the row is read only to report why.

        Raises ResetTokenNotFoundError, ResetTokenUsedError, or ResetTokenExpiredError.
        """
        now = self._clock()
        result = self._db.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.token == token,
                PasswordResetToken.used_at.is_(None),
                PasswordResetToken.expires_at > now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        record = (
            self._db.query(PasswordResetToken.user_id, PasswordResetToken.used_at)
            .filter(PasswordResetToken.token == token)
            .first()
        )
        if result.rowcount == 1 and record is not None:
            return record.user_id
        if record is None:
            raise ResetTokenNotFoundError("Invalid reset token")
        if record.used_at is not None:
            raise ResetTokenUsedError("Reset token has already been used")
        raise ResetTokenExpiredError("Reset token has expired")

    def purge_expired(self, cutoff: datetime) -> int:
        """Delete tokens that expired or were used before cutoff."""
        return (
            self._db.query(PasswordResetToken)
            .filter(
                or_(
                    PasswordResetToken.expires_at < cutoff,
                    PasswordResetToken.used_at < cutoff,
                )
            )
            .delete(synchronize_session=False)
        )
