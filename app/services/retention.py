"""Token retention: delete refresh and reset tokens that have been dead for RETENTION_HOURS."""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, NamedTuple

from sqlalchemy.orm import Session

from app.core.tokens import utc_now
from app.services.password_resets import PasswordResetLedger
from app.services.sessions import SessionRegistry

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class RetentionResult(NamedTuple):
    refresh_tokens_deleted: int
    reset_tokens_deleted: int


def run_retention(
    session: Session,
    settings: "Settings",
    now: datetime | None = None,
) -> RetentionResult:
    """
    Delete refresh tokens expired or revoked, and reset tokens expired or used,
    more than RETENTION_HOURS ago. Live tokens are never touched.

    Idempotent: safe to run repeatedly.
    """
    if not settings.RETENTION_ENABLED:
        logger.info("Retention is disabled (RETENTION_ENABLED=false); skipping.")
        return RetentionResult(0, 0)

    cutoff = (now or utc_now()) - timedelta(hours=settings.RETENTION_HOURS)
    try:
        refresh_deleted = SessionRegistry(session).purge_expired(cutoff)
        reset_deleted = PasswordResetLedger(session).purge_expired(cutoff)
        session.commit()
    except Exception:
        session.rollback()
        raise

    if refresh_deleted or reset_deleted:
        logger.info(
            "Retention run: cutoff=%s, refresh_tokens_deleted=%s, reset_tokens_deleted=%s",
            cutoff.isoformat(),
            refresh_deleted,
            reset_deleted,
        )
    return RetentionResult(refresh_deleted, reset_deleted)
