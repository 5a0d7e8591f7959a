"""HTTP tests for /auth, /password, and /health over an in-memory SQLite database."""

import asyncio
import unittest
from datetime import UTC, datetime, timedelta
from typing import Annotated
from unittest.mock import MagicMock, patch

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.v1.auth import (
    get_auth_service,
    get_token_issuer,
    require_admin,
    router as auth_router,
)
from app.core.config import Settings, settings
from app.core.database import get_db
from app.core.exceptions import ConfigurationError
from app.core.tokens import TokenIssuer
from app.main import app, lifespan
from app.models import Base, PasswordResetToken
from app.schemas.auth import CurrentUser
from app.services.auth import RESET_REQUESTED_MESSAGE, AuthService

SECRET = "test-signing-secret"
PREFIX = settings.API_V1_PREFIX


class _ApiTestCase(unittest.TestCase):
    """Runs the real app against SQLite with a fast bcrypt cost and a capturing notifier."""

    rotate_refresh_tokens = False

    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionTesting = sessionmaker(bind=self.engine, autoflush=False)
        self.issuer = TokenIssuer(SECRET)
        self.sent: list[tuple[str, str]] = []

        def override_get_db():
            db = self.SessionTesting()
            try:
                yield db
            finally:
                db.close()

        def override_get_auth_service(
            db: Annotated[Session, Depends(get_db)],
        ) -> AuthService:
            return AuthService(
                db,
                self.issuer,
                notifier=lambda email, token: self.sent.append((email, token)),
                bcrypt_rounds=4,
                rotate_refresh_tokens=self.rotate_refresh_tokens,
            )

        self.app = self._app()
        self.app.dependency_overrides[get_db] = override_get_db
        self.app.dependency_overrides[get_auth_service] = override_get_auth_service
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()
        self.engine.dispose()

    def _app(self) -> FastAPI:
        return app

    def _signup(self, email: str = "a@x.com", password: str = "Passw0rd!"):
        return self.client.post(
            f"{PREFIX}/auth/signup", json={"email": email, "password": password}
        )

    def _login(self, email: str = "a@x.com", password: str = "Passw0rd!"):
        return self.client.post(
            f"{PREFIX}/auth/login", json={"email": email, "password": password}
        )

    def _count(self, model) -> int:
        db = self.SessionTesting()
        try:
            return db.query(model).count()
        finally:
            db.close()


class TestSessionScenario(_ApiTestCase):
    def test_signup_login_refresh_logout(self) -> None:
        r = self._signup()
        self.assertEqual(r.status_code, 201)
        body = r.json()
        self.assertEqual(body["user"]["email"], "a@x.com")
        self.assertNotIn("access_token", body)

        r = self._login()
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["token_type"], "bearer")
        self.assertEqual(body["user"]["role"], "user")
        refresh_token = body["refresh_token"]
        self.assertTrue(body["access_token"])

        r = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": refresh_token})
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["access_token"])
        self.assertNotIn("refresh_token", r.json())

        r = self.client.post(f"{PREFIX}/auth/logout", json={"refresh_token": refresh_token})
        self.assertEqual(r.status_code, 200)

        r = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": refresh_token})
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json()["detail"], "Invalid or expired token")

    def test_camel_case_input_accepted(self) -> None:
        r = self.client.post(
            f"{PREFIX}/auth/signup",
            json={"email": "a@x.com", "password": "Passw0rd!", "firstName": "Ada"},
        )
        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.json()["user"]["first_name"], "Ada")
        refresh_token = self._login().json()["refresh_token"]
        r = self.client.post(f"{PREFIX}/auth/refresh", json={"refreshToken": refresh_token})
        self.assertEqual(r.status_code, 200)

    def test_duplicate_signup_is_409(self) -> None:
        self.assertEqual(self._signup().status_code, 201)
        self.assertEqual(self._signup(password="0therPassw0rd").status_code, 409)

    def test_signup_validation_is_422(self) -> None:
        self.assertEqual(self._signup(email="not-an-email").status_code, 422)
        self.assertEqual(self._signup(password="short").status_code, 422)

    def test_login_failures_are_identical(self) -> None:
        self._signup()
        wrong = self._login(password="Passw0rd!x")
        unknown = self._login(email="other@unknown.tld", password="anything")
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.json(), unknown.json())

    def test_logout_never_fails(self) -> None:
        r = self.client.post(f"{PREFIX}/auth/logout", json={"refresh_token": "garbage"})
        self.assertEqual(r.status_code, 200)
        r = self.client.post(f"{PREFIX}/auth/logout", json={"refresh_token": ""})
        self.assertEqual(r.status_code, 200)


class TestRotationOverHttp(_ApiTestCase):
    rotate_refresh_tokens = True

    def test_refresh_returns_new_refresh_token(self) -> None:
        self._signup()
        original = self._login().json()["refresh_token"]
        r = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": original})
        self.assertEqual(r.status_code, 200)
        rotated = r.json()["refresh_token"]
        self.assertNotEqual(rotated, original)
        r = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": original})
        self.assertEqual(r.status_code, 401)


class TestProtectedRoutes(_ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._signup()
        self.tokens = self._login().json()
        self.headers = {"Authorization": f"Bearer {self.tokens['access_token']}"}

    def test_profile_and_role(self) -> None:
        r = self.client.get(f"{PREFIX}/auth/profile", headers=self.headers)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["email"], "a@x.com")
        r = self.client.get(f"{PREFIX}/auth/role", headers=self.headers)
        self.assertEqual(r.json(), {"role": "user"})

    def test_missing_bearer_is_401(self) -> None:
        r = self.client.get(f"{PREFIX}/auth/profile")
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json()["detail"], "Not authenticated")

    def test_refresh_token_is_not_a_bearer(self) -> None:
        r = self.client.get(
            f"{PREFIX}/auth/profile",
            headers={"Authorization": f"Bearer {self.tokens['refresh_token']}"},
        )
        self.assertEqual(r.status_code, 401)

    def test_expired_access_token_is_401(self) -> None:
        an_hour_ago = datetime.now(UTC) - timedelta(hours=1)
        past_issuer = TokenIssuer(SECRET, clock=lambda: an_hour_ago)
        token = past_issuer.issue_access_token(self.tokens["user"]["id"], "user")
        r = self.client.get(
            f"{PREFIX}/auth/profile", headers={"Authorization": f"Bearer {token}"}
        )
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.headers["www-authenticate"], "Bearer")

    def test_change_password(self) -> None:
        r = self.client.post(
            f"{PREFIX}/password/update",
            headers=self.headers,
            json={"currentPassword": "wrong-password", "newPassword": "NewPassw0rd!"},
        )
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json()["detail"], "Current password is incorrect.")
        self.assertNotIn("www-authenticate", r.headers)
        r = self.client.post(
            f"{PREFIX}/password/update",
            headers=self.headers,
            json={"current_password": "Passw0rd!", "new_password": "NewPassw0rd!"},
        )
        self.assertEqual(r.status_code, 200)
        self.assertEqual(self._login(password="NewPassw0rd!").status_code, 200)

    def test_change_password_requires_bearer(self) -> None:
        r = self.client.post(
            f"{PREFIX}/password/update",
            json={"current_password": "Passw0rd!", "new_password": "NewPassw0rd!"},
        )
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.headers["www-authenticate"], "Bearer")


class TestPasswordResetScenario(_ApiTestCase):
    def test_request_then_consume(self) -> None:
        self._signup()
        r = self.client.post(f"{PREFIX}/password/reset-request", json={"email": "a@x.com"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["message"], RESET_REQUESTED_MESSAGE)
        self.assertEqual(self._count(PasswordResetToken), 1)
        token = self.sent[-1][1]

        r = self.client.post(
            f"{PREFIX}/password/reset", json={"token": token, "newPassword": "NewPassw0rd!"}
        )
        self.assertEqual(r.status_code, 200)

        self.assertEqual(self._login(password="Passw0rd!").status_code, 401)
        self.assertEqual(self._login(password="NewPassw0rd!").status_code, 200)

        r = self.client.post(
            f"{PREFIX}/password/reset", json={"token": token, "new_password": "Another0ne!"}
        )
        self.assertEqual(r.status_code, 400)

    def test_unknown_email_gets_same_response(self) -> None:
        self._signup()
        known = self.client.post(f"{PREFIX}/password/reset-request", json={"email": "a@x.com"})
        unknown = self.client.post(
            f"{PREFIX}/password/reset-request", json={"email": "ghost@x.com"}
        )
        self.assertEqual(known.status_code, unknown.status_code)
        self.assertEqual(known.json(), unknown.json())
        self.assertEqual(len(self.sent), 1)

    def test_unknown_token_is_400(self) -> None:
        r = self.client.post(
            f"{PREFIX}/password/reset", json={"token": "f" * 64, "new_password": "NewPassw0rd!"}
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["detail"], "Invalid or expired reset token.")

    def test_reset_revokes_sessions(self) -> None:
        self._signup()
        refresh_token = self._login().json()["refresh_token"]
        self.client.post(f"{PREFIX}/password/reset-request", json={"email": "a@x.com"})
        self.client.post(
            f"{PREFIX}/password/reset",
            json={"token": self.sent[-1][1], "new_password": "NewPassw0rd!"},
        )
        r = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": refresh_token})
        self.assertEqual(r.status_code, 401)


class TestRequireAdmin(_ApiTestCase):
    def _app(self) -> FastAPI:
        admin_app = FastAPI()
        admin_app.include_router(auth_router, prefix=f"{PREFIX}/auth")

        @admin_app.get("/admin-only")
        def admin_only(user: Annotated[CurrentUser, Depends(require_admin)]) -> dict[str, str]:
            return {"id": user.id}

        return admin_app

    def _bearer(self, email: str) -> dict[str, str]:
        self._signup(email=email)
        token = self._login(email=email).json()["access_token"]
        return {"Authorization": f"Bearer {token}"}

    def test_user_is_forbidden(self) -> None:
        r = self.client.get("/admin-only", headers=self._bearer("a@x.com"))
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.json()["detail"], "Admin access required")

    def test_admin_is_allowed(self) -> None:
        headers = self._bearer("root@x.com")
        db = self.SessionTesting()
        try:
            service = AuthService(db, self.issuer, bcrypt_rounds=4)
            account = service.accounts.find_by_email("root@x.com")
            service.accounts.set_role(account.user_id, "admin")
            db.commit()
        finally:
            db.close()
        r = self.client.get("/admin-only", headers=headers)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["id"], account.user_id)

    def test_anonymous_is_401(self) -> None:
        self.assertEqual(self.client.get("/admin-only").status_code, 401)


class TestHealth(_ApiTestCase):
    def test_health_reports_database(self) -> None:
        r = self.client.get(f"{PREFIX}/health/")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["database"], "connected")

    def test_root(self) -> None:
        self.assertEqual(self.client.get("/").json(), {"message": "HomeLedger API"})


class TestStartupWiring(unittest.TestCase):
    """The lifespan builds the token issuer once; a missing secret aborts startup."""

    def test_missing_secret_aborts_startup(self) -> None:
        async def start() -> None:
            async with lifespan(FastAPI()):
                pass

        with patch("app.main.settings", Settings(_env_file=None, JWT_SECRET=None)):
            with self.assertRaises(ConfigurationError):
                asyncio.run(start())

    def test_issuer_stored_on_app_state(self) -> None:
        target = FastAPI()
        seen: list[TokenIssuer] = []

        async def start() -> None:
            async with lifespan(target):
                seen.append(target.state.token_issuer)

        with patch("app.main.TokenIssuer.from_settings", return_value=TokenIssuer(SECRET)):
            asyncio.run(start())
        self.assertEqual(len(seen), 1)

        request = MagicMock()
        request.app = target
        self.assertIs(get_token_issuer(request), seen[0])

    def test_get_token_issuer_without_startup(self) -> None:
        request = MagicMock()
        request.app = FastAPI()
        with self.assertRaises(ConfigurationError):
            get_token_issuer(request)
