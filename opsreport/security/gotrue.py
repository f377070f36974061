"""
GoTrue identity backend (hosted auth service in front of the REST store).

Endpoints:
    POST /auth/v1/token?grant_type=password        sign in
    POST /auth/v1/token?grant_type=refresh_token   refresh an expired session
    POST /auth/v1/logout                           sign out
    GET  /auth/v1/health                           health check
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from opsreport.engine.errors import SessionError
from opsreport.engine.logging import log, log_session_event
from opsreport.security.identity import AuthSession, IdentityProvider

logger = logging.getLogger("opsreport.security.gotrue")


class GoTrueIdentityProvider(IdentityProvider):
    """Password sign-in against a GoTrue server using ``httpx.AsyncClient``."""

    backend_name = "gotrue"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/auth/v1",
            timeout=httpx.Timeout(timeout, connect=10.0),
            headers={"apikey": api_key},
            transport=transport,
        )

    @staticmethod
    def _session_from(body: Dict[str, Any]) -> AuthSession:
        user = body.get("user") or {}
        expires_in = body.get("expires_in")
        now = datetime.now(timezone.utc)
        return AuthSession(
            user_id=str(user.get("id", "")),
            email=user.get("email", ""),
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_at=now + timedelta(seconds=int(expires_in)) if expires_in else None,
            issued_at=now,
        )

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if not isinstance(body, dict):
            return f"HTTP {response.status_code}"
        return (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or body.get("error")
            or f"HTTP {response.status_code}"
        )

    async def get_session(self) -> Optional[AuthSession]:
        current = self._current
        if current is None or not current.is_expired:
            return current
        if not current.refresh_token:
            self._set_session(None, "session_expired")
            return None

        try:
            response = await self._client.post(
                "/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": current.refresh_token},
            )
        except httpx.HTTPError as e:
            raise SessionError(f"Session refresh failed: {e}", backend=self.backend_name) from e

        if response.status_code != 200:
            logger.info("Refresh rejected (%s); treating session as ended", response.status_code)
            self._set_session(None, "session_expired")
            return None

        self._set_session(self._session_from(response.json()), "session_refreshed")
        return self._current

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        try:
            response = await self._client.post(
                "/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as e:
            logger.error("Sign-in request failed: %s", e)
            log(log_session_event("sign_in_failed", self.backend_name, email, error=str(e)))
            return "Could not reach the sign-in service"

        if response.status_code != 200:
            message = self._error_text(response)
            log(log_session_event("sign_in_failed", self.backend_name, email, error=message))
            return message

        try:
            session = self._session_from(response.json())
        except (KeyError, ValueError) as e:
            logger.error("Malformed sign-in response: %s", e)
            return "Unexpected response from the sign-in service"

        self._set_session(session, "signed_in")
        return None

    async def sign_out(self) -> None:
        token = self.access_token
        # local state is cleared whether or not the server call succeeds
        self._set_session(None, "signed_out")
        if token is None:
            return
        try:
            response = await self._client.post(
                "/logout", headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as e:
            raise SessionError(f"Sign-out request failed: {e}", backend=self.backend_name) from e
        if response.status_code >= 400 and response.status_code != 401:
            raise SessionError(
                f"Sign-out rejected: {self._error_text(response)}",
                backend=self.backend_name,
                status_code=response.status_code,
            )

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("GoTrue health check failed: %s", e)
            return False

    async def close(self) -> None:
        await super().close()
        await self._client.aclose()
