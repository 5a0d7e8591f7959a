"""
Async API client that keeps the user's session alive.

Attaches the access token to every request. On a 401 that challenges the bearer
token (`WWW-Authenticate: Bearer`) it refreshes once, sharing a
single refresh call among all requests that failed with the same token, then retries
the original request once. If the refresh is refused, stored tokens are cleared and
SessionExpiredError is raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

import httpx

from app.client.activity import DEFAULT_INACTIVITY_TIMEOUT_SEC, InactivityMonitor
from app.client.storage import MemoryTokenStore, StoredSession, TokenStore
from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SessionExpiredError(ApiError):
    """The access token was rejected and the refresh token could not renew it."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        super().__init__(message, status_code=401)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str):
            return detail
    return f"Request failed with status {response.status_code}"


def _token_rejected(response: httpx.Response) -> bool:
    """True for a 401 that challenges the bearer token itself."""
    if response.status_code != 401:
        return False
    challenge = response.headers.get("WWW-Authenticate", "")
    return challenge.strip().lower().startswith("bearer")


class SessionManager:
    """
    Client session for the HomeLedger API.

    `base_url` includes the API prefix, e.g. "http://localhost:8000/api/v1".
    Pass `http_client` to reuse a configured httpx.AsyncClient (its base_url is used).
    """

    def __init__(
        self,
        base_url: str = "",
        store: TokenStore | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        inactivity_timeout: float | None = DEFAULT_INACTIVITY_TIMEOUT_SEC,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._store = store or MemoryTokenStore()
        self._session = self._store.load()
        self._refresh_lock = asyncio.Lock()
        self._monitor = (
            InactivityMonitor(self._on_inactive, inactivity_timeout)
            if inactivity_timeout
            else None
        )

    @classmethod
    def from_settings(
        cls,
        base_url: str,
        store: TokenStore | None = None,
        settings: Settings | None = None,
    ) -> SessionManager:
        """Build a manager whose inactivity timeout comes from CLIENT_INACTIVITY_TIMEOUT_SEC."""
        settings = settings or get_settings()
        return cls(base_url, store, inactivity_timeout=settings.CLIENT_INACTIVITY_TIMEOUT_SEC)

    async def __aenter__(self) -> SessionManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def session(self) -> StoredSession:
        return self._session

    @property
    def authenticated(self) -> bool:
        return self._session.authenticated

    @property
    def inactivity_monitor(self) -> InactivityMonitor | None:
        return self._monitor

    def touch(self) -> None:
        """Report user activity (keypress, click, scroll); restarts the inactivity countdown."""
        if self._monitor is not None and self.authenticated:
            self._monitor.touch()

    async def aclose(self) -> None:
        if self._monitor is not None:
            self._monitor.stop()
        if self._owns_client:
            await self._client.aclose()

    def _save(self, session: StoredSession) -> None:
        self._session = session
        self._store.save(session)

    def _clear(self) -> None:
        self._session = StoredSession()
        self._store.clear()
        if self._monitor is not None:
            self._monitor.stop()

    async def _send(
        self, method: str, path: str, token: str | None, kwargs: dict[str, Any]
    ) -> httpx.Response:
        headers = dict(kwargs.get("headers") or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        options = {k: v for k, v in kwargs.items() if k != "headers"}
        return await self._client.request(method, path, headers=headers, **options)

    async def _refresh(self, failed_token: str | None) -> bool:
        """
        Renew the access token once for everyone who failed with `failed_token`.

        Callers queue on the lock; whoever gets it second sees the token already
        replaced (or cleared) and does not issue another refresh.
        """
        async with self._refresh_lock:
            current = self._session.access_token
            if current is not None and current != failed_token:
                return True
            refresh_token = self._session.refresh_token
            if not refresh_token:
                return False
            try:
                response = await self._client.post(
                    "/auth/refresh", json={"refresh_token": refresh_token}
                )
            except httpx.HTTPError as e:
                logger.warning("Token refresh failed: %s", e)
                self._clear()
                return False
            if response.status_code != 200:
                logger.info("Token refresh refused with status %s", response.status_code)
                self._clear()
                return False
            try:
                data = response.json()
            except ValueError:
                data = None
            access_token = data.get("access_token") if isinstance(data, dict) else None
            if not access_token:
                logger.warning("Token refresh response carried no access token")
                self._clear()
                return False
            self._save(
                replace(
                    self._session,
                    access_token=access_token,
                    # Present only when the server rotates refresh tokens.
                    refresh_token=data.get("refresh_token") or refresh_token,
                )
            )
            return True

    async def request(
        self, method: str, path: str, *, authenticated: bool = True, **kwargs: Any
    ) -> httpx.Response:
        """
        Send a request; on a Bearer-challenged 401 refresh at most once and retry exactly once.

        A 401 without `WWW-Authenticate: Bearer` (e.g. a wrong current password) is
        returned as is: the access token was accepted.
        """
        token = self._session.access_token if authenticated else None
        response = await self._send(method, path, token, kwargs)
        if not authenticated or not self._session.refresh_token or not _token_rejected(response):
            return response
        if not await self._refresh(token):
            raise SessionExpiredError()
        return await self._send(method, path, self._session.access_token, kwargs)

    async def request_json(
        self, method: str, path: str, *, authenticated: bool = True, **kwargs: Any
    ) -> Any:
        """Like request() but raises ApiError on non-2xx and returns the decoded body."""
        response = await self.request(method, path, authenticated=authenticated, **kwargs)
        if response.is_error:
            raise ApiError(_error_message(response), response.status_code)
        return response.json()

    async def signup(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> dict[str, Any]:
        body = {"email": email, "password": password, "first_name": first_name, "last_name": last_name}
        return await self.request_json("POST", "/auth/signup", authenticated=False, json=body)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in, persist both tokens, and start the inactivity countdown."""
        data = await self.request_json(
            "POST",
            "/auth/login",
            authenticated=False,
            json={"email": email, "password": password},
        )
        user = data.get("user") or {}
        self._save(
            StoredSession(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                user_id=user.get("id"),
                email=user.get("email"),
                role=user.get("role"),
            )
        )
        self.touch()
        return data

    async def logout(self) -> None:
        """
        Clear local tokens and ask the server to revoke the refresh token.

        The local clear happens even if the server cannot be reached.
        """
        refresh_token = self._session.refresh_token
        try:
            if refresh_token:
                await self._client.post("/auth/logout", json={"refresh_token": refresh_token})
        except httpx.HTTPError as e:
            logger.warning("Server-side logout failed; tokens cleared locally: %s", e)
        finally:
            self._clear()

    async def _on_inactive(self) -> None:
        if self.authenticated:
            logger.info("Logging out after inactivity")
            await self.logout()

    async def request_password_reset(self, email: str) -> dict[str, Any]:
        return await self.request_json(
            "POST", "/password/reset-request", authenticated=False, json={"email": email}
        )

    async def reset_password(self, token: str, new_password: str) -> dict[str, Any]:
        return await self.request_json(
            "POST",
            "/password/reset",
            authenticated=False,
            json={"token": token, "new_password": new_password},
        )

    async def update_password(self, current_password: str, new_password: str) -> dict[str, Any]:
        return await self.request_json(
            "POST",
            "/password/update",
            json={"current_password": current_password, "new_password": new_password},
        )

    async def get_profile(self) -> dict[str, Any] | None:
        return await self.request_json("GET", "/auth/profile")

    async def get_role(self) -> str | None:
        data = await self.request_json("GET", "/auth/role")
        return data.get("role")
