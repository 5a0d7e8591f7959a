"""Session registry: server-side state of issued refresh tokens."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.tokens import utc_now
from app.models import RefreshToken, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionIdentity:
    """Owner of a live session (or of a verified access token) and their current role."""

    user_id: str
    role: str


class SessionRegistry:
    """
    One row per issued refresh token.

    A token is active while expires_at is in the future and revoked_at is null.
    All time checks run in SQL so they are evaluated against the stored row at
    statement time.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now) -> None:
        self._db = db
        self._clock = clock

    def record(self, user_id: str, refresh_token: str, expires_at: datetime) -> None:
        self._db.add(RefreshToken(user_id=user_id, token=refresh_token, expires_at=expires_at))
        self._db.flush()

    def is_active(self, refresh_token: str) -> SessionIdentity | None:
        """Return the owner and current role if the token is unexpired and unrevoked, else None."""
        now = self._clock()
        row = (
            self._db.query(RefreshToken.user_id, Role.role)
            .join(Role, Role.user_id == RefreshToken.user_id)
            .filter(
                RefreshToken.token == refresh_token,
                RefreshToken.expires_at > now,
                RefreshToken.revoked_at.is_(None),
            )
            .first()
        )
        if row is None:
            return None
        return SessionIdentity(user_id=row.user_id, role=row.role)

    def revoke(self, refresh_token: str) -> bool:
        """
        Set revoked_at if not already set. Idempotent: unknown or already revoked
        tokens are a no-op. Returns True when this call revoked the token.
        """
        result = self._db.execute(
            update(RefreshToken)
            .where(RefreshToken.token == refresh_token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def revoke_all_for_user(self, user_id: str) -> int:
        """Revoke every live session of a user. Returns the number revoked."""
        now = self._clock()
        result = self._db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(
                "Revoked user sessions",
                extra={"user_id": user_id, "revoked_count": result.rowcount},
            )
        return result.rowcount

    def purge_expired(self, cutoff: datetime) -> int:
        """Delete rows that expired or were revoked before cutoff."""
        return (
            self._db.query(RefreshToken)
            .filter(
                or_(
                    RefreshToken.expires_at < cutoff,
                    RefreshToken.revoked_at < cutoff,
                )
            )
            .delete(synchronize_session=False)
        )
