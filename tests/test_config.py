"""Unit tests for Settings validation."""

import unittest

from pydantic import ValidationError

from app.core.config import Settings


class TestSettings(unittest.TestCase):
    def _settings(self, **overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    def test_defaults(self) -> None:
        settings = self._settings(JWT_SECRET="s")
        self.assertEqual(settings.JWT_ALGORITHM, "HS256")
        self.assertEqual(settings.JWT_ACCESS_EXPIRE_MINUTES, 15)
        self.assertEqual(settings.JWT_REFRESH_EXPIRE_DAYS, 7)
        self.assertFalse(settings.JWT_REFRESH_ROTATION)
        self.assertEqual(settings.PASSWORD_RESET_EXPIRE_MINUTES, 60)
        self.assertEqual(settings.BCRYPT_ROUNDS, 12)

    def test_blank_jwt_secret_is_unset(self) -> None:
        self.assertIsNone(self._settings(JWT_SECRET="   ").JWT_SECRET)

    def test_jwt_secret_is_not_printed(self) -> None:
        settings = self._settings(JWT_SECRET="super-secret")
        self.assertNotIn("super-secret", repr(settings))
        self.assertEqual(settings.JWT_SECRET.get_secret_value(), "super-secret")

    def test_database_url_scheme(self) -> None:
        self.assertEqual(self._settings(DATABASE_URL="sqlite://").DATABASE_URL, "sqlite://")
        with self.assertRaises(ValidationError):
            self._settings(DATABASE_URL="mysql://localhost/db")

    def test_log_level_is_normalised(self) -> None:
        self.assertEqual(self._settings(LOG_LEVEL="debug").LOG_LEVEL, "DEBUG")
        with self.assertRaises(ValidationError):
            self._settings(LOG_LEVEL="loud")

    def test_lifetime_bounds(self) -> None:
        with self.assertRaises(ValidationError):
            self._settings(JWT_ACCESS_EXPIRE_MINUTES=0)
        with self.assertRaises(ValidationError):
            self._settings(JWT_REFRESH_EXPIRE_DAYS=365)
        with self.assertRaises(ValidationError):
            self._settings(PASSWORD_RESET_EXPIRE_MINUTES=1)
        with self.assertRaises(ValidationError):
            self._settings(BCRYPT_ROUNDS=3)

    def test_cors_origins_split(self) -> None:
        settings = self._settings(CORS_ORIGINS="https://a.example, https://b.example,")
        self.assertEqual(settings.cors_origins, ["https://a.example", "https://b.example"])
