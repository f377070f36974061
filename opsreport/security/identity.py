"""
OpsReport Identity — session provider contract and the local (bcrypt) backend.

Consumers use four operations:
    get_session()            -> AuthSession | None
    subscribe(callback)      -> Subscription   (callback(AuthSession | None) on every change)
    sign_in(email, password) -> None on success, error message string on failure
    sign_out()

Subscriptions are released explicitly (``unsubscribe()``) or by leaving the
``with`` block; releasing twice is a no-op.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import bcrypt

from opsreport.engine.logging import log, log_session_event

logger = logging.getLogger("opsreport.security.identity")

SessionCallback = Callable[[Optional["AuthSession"]], None]


@dataclass(frozen=True)
class AuthSession:
    """An authenticated identity."""
    user_id: str
    email: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and datetime.now(timezone.utc) >= self.expires_at


class Subscription:
    """Handle for a session-change listener."""

    def __init__(self, provider: "IdentityProvider", callback: SessionCallback):
        self._provider = provider
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._provider._remove_listener(self._callback)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class IdentityProvider(ABC):
    """Base class for session providers. Holds the listener list and current session."""

    backend_name: str = "abstract"

    def __init__(self) -> None:
        self._listeners: List[SessionCallback] = []
        self._current: Optional[AuthSession] = None

    # -----------------------------------------------------------------------
    # Subscription management
    # -----------------------------------------------------------------------

    def subscribe(self, callback: SessionCallback) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self, callback)

    def _remove_listener(self, callback: SessionCallback) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _set_session(self, session: Optional[AuthSession], event: str) -> None:
        """Replace the current session and tell every listener."""
        self._current = session
        log(log_session_event(
            event,
            backend=self.backend_name,
            user_email=session.email if session else None,
        ))
        for callback in list(self._listeners):
            try:
                callback(session)
            except Exception as e:
                logger.error("Session listener %r failed: %s", callback, e, exc_info=True)

    @property
    def access_token(self) -> Optional[str]:
        return self._current.access_token if self._current else None

    async def current_token(self) -> Optional[str]:
        """Bearer token for outbound calls; goes through ``get_session`` so expired sessions refresh."""
        session = await self.get_session()
        return session.access_token if session else None

    # -----------------------------------------------------------------------
    # Provider operations
    # -----------------------------------------------------------------------

    @abstractmethod
    async def get_session(self) -> Optional[AuthSession]:
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Optional[str]:
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self._listeners.clear()


# ---------------------------------------------------------------------------
# Local backend
# ---------------------------------------------------------------------------

class LocalIdentityProvider(IdentityProvider):
    """
    Email + password accounts from ``auth.users`` in opsreport.yaml.
    Sessions live in process memory only.
    """

    backend_name = "local"

    def __init__(self, users: Dict[str, str], session_ttl: int = 8 * 3600):
        super().__init__()
        self._users = {email.strip().lower(): pw_hash for email, pw_hash in users.items()}
        self._session_ttl = session_ttl

    async def get_session(self) -> Optional[AuthSession]:
        if self._current is not None and self._current.is_expired:
            self._set_session(None, "session_expired")
        return self._current

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        key = (email or "").strip().lower()
        pw_hash = self._users.get(key)
        if pw_hash is None or not verify_password(password or "", pw_hash):
            log(log_session_event(
                "sign_in_failed", backend=self.backend_name, user_email=key,
                error="invalid_credentials",
            ))
            return "Invalid email or password"

        now = datetime.now(timezone.utc)
        session = AuthSession(
            user_id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"opsreport:{key}")),
            email=key,
            access_token=secrets.token_urlsafe(32),
            expires_at=now + timedelta(seconds=self._session_ttl),
            issued_at=now,
        )
        self._set_session(session, "signed_in")
        logger.info("User '%s' signed in (local)", key)
        return None

    async def sign_out(self) -> None:
        if self._current is not None:
            logger.info("User '%s' signed out (local)", self._current.email)
        self._set_session(None, "signed_out")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
