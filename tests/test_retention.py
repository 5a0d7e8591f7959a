"""Unit and integration tests for token retention: delete-only run_retention."""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, PasswordResetToken, RefreshToken
from app.retention import main as retention_main
from app.services.accounts import AccountDirectory
from app.services.retention import RetentionResult, run_retention


class TestRetentionDisabled(unittest.TestCase):
    """When RETENTION_ENABLED is False, run_retention does nothing."""

    def test_returns_zero_and_does_not_query(self) -> None:
        settings = MagicMock()
        settings.RETENTION_ENABLED = False
        settings.RETENTION_HOURS = 48
        session = MagicMock()
        result = run_retention(session, settings)
        self.assertEqual(result, RetentionResult(0, 0))
        session.query.assert_not_called()
        session.commit.assert_not_called()


class TestRetentionNothingToDelete(unittest.TestCase):
    """When no tokens are past the cutoff, run_retention returns (0, 0) and still commits."""

    def test_returns_zero(self) -> None:
        settings = MagicMock()
        settings.RETENTION_ENABLED = True
        settings.RETENTION_HOURS = 48
        session = MagicMock()
        session.query.return_value.filter.return_value.delete.return_value = 0
        result = run_retention(session, settings)
        self.assertEqual(result, RetentionResult(0, 0))
        session.commit.assert_called_once()


class TestRetentionRollsBackOnError(unittest.TestCase):
    def test_rolls_back_and_reraises(self) -> None:
        settings = MagicMock()
        settings.RETENTION_ENABLED = True
        settings.RETENTION_HOURS = 48
        session = MagicMock()
        session.query.return_value.filter.return_value.delete.side_effect = RuntimeError("boom")
        with self.assertRaises(RuntimeError):
            run_retention(session, settings)
        session.rollback.assert_called_once()
        session.commit.assert_not_called()


class TestRetentionIntegration(unittest.TestCase):
    """Integration test with real SQLite: insert dead and live tokens, run retention, assert."""

    def setUp(self) -> None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        self.SessionTesting = sessionmaker(bind=engine, autoflush=False)
        self.db = self.SessionTesting()
        self.user_id = AccountDirectory(self.db).create("a@x.com", "hash").id
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_purges_only_dead_tokens_past_cutoff(self) -> None:
        now = datetime.now(timezone.utc)
        long_ago = now - timedelta(hours=72)
        self.db.add_all(
            [
                RefreshToken(user_id=self.user_id, token="live", expires_at=now + timedelta(days=7)),
                RefreshToken(user_id=self.user_id, token="expired", expires_at=long_ago),
                RefreshToken(
                    user_id=self.user_id,
                    token="revoked",
                    expires_at=now + timedelta(days=1),
                    revoked_at=long_ago,
                ),
                RefreshToken(
                    user_id=self.user_id,
                    token="just-revoked",
                    expires_at=now + timedelta(days=1),
                    revoked_at=now - timedelta(hours=1),
                ),
                PasswordResetToken(
                    user_id=self.user_id, token="reset-live", expires_at=now + timedelta(hours=1)
                ),
                PasswordResetToken(user_id=self.user_id, token="reset-expired", expires_at=long_ago),
            ]
        )
        self.db.commit()

        settings = MagicMock()
        settings.RETENTION_ENABLED = True
        settings.RETENTION_HOURS = 48
        result = run_retention(self.db, settings, now=now)

        self.assertEqual(result, RetentionResult(2, 1))
        refresh_left = {r.token for r in self.db.query(RefreshToken).all()}
        reset_left = {r.token for r in self.db.query(PasswordResetToken).all()}
        self.assertEqual(refresh_left, {"live", "just-revoked"})
        self.assertEqual(reset_left, {"reset-live"})

        # Idempotent.
        self.assertEqual(run_retention(self.db, settings, now=now), RetentionResult(0, 0))

    def test_cli_main_uses_configured_session(self) -> None:
        settings = MagicMock()
        settings.RETENTION_ENABLED = True
        settings.RETENTION_HOURS = 48
        with (
            patch("app.retention.SessionLocal", self.SessionTesting),
            patch("app.retention.get_settings", return_value=settings),
        ):
            self.assertEqual(retention_main(), 0)

    def test_cli_main_reports_failure(self) -> None:
        with (
            patch("app.retention.SessionLocal", self.SessionTesting),
            patch("app.retention.run_retention", side_effect=RuntimeError("boom")),
        ):
            self.assertEqual(retention_main(), 1)


if __name__ == "__main__":
    unittest.main()
