from __future__ import annotations

import hashlib
import logging
import secrets
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from lecaps.core.errors import AuthError

logger = logging.getLogger(__name__)

SessionEvent = Literal["SIGNED_IN", "SIGNED_OUT"]
SessionListener = Callable[[SessionEvent, "Session | None"], None]

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class User:
    id: str
    email: str


@dataclass(frozen=True)
class Session:
    user_id: str
    email: str
    access_token: str

    @property
    def user(self) -> User:
        return User(id=self.user_id, email=self.email)


class IdentityProvider(Protocol):
    def current_user(self, access_token: str) -> User | None: ...

    def session_for(self, access_token: str) -> Session | None: ...

    def sign_in(self, email: str, password: str) -> Session: ...

    def sign_up(self, email: str, password: str) -> Session: ...

    def sign_out(self, access_token: str) -> None: ...

    def subscribe(self, listener: SessionListener) -> Callable[[], None]: ...


@dataclass(frozen=True)
class _Account:
    user: User
    salt: bytes
    password_hash: bytes


class LocalIdentityProvider:
    """In-process identity provider: PBKDF2 password hashes and opaque bearer tokens."""

    def __init__(self, iterations: int = 200_000):
        self.iterations = int(iterations)
        self._accounts: dict[str, _Account] = {}
        self._sessions: dict[str, Session] = {}
        self._listeners: list[SessionListener] = []
        self._lock = threading.Lock()

    def current_user(self, access_token: str) -> User | None:
        session = self.session_for(access_token)
        return session.user if session else None

    def session_for(self, access_token: str) -> Session | None:
        return self._sessions.get(str(access_token or ""))

    def sign_up(self, email: str, password: str) -> Session:
        email_norm = _normalize_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"password must have at least {MIN_PASSWORD_LENGTH} characters")
        salt = secrets.token_bytes(16)
        account = _Account(
            user=User(id=uuid.uuid4().hex, email=email_norm),
            salt=salt,
            password_hash=self._hash(password, salt),
        )
        with self._lock:
            if email_norm in self._accounts:
                raise AuthError("user already registered")
            self._accounts[email_norm] = account
        logger.info("registered user %s", account.user.id)
        return self._open_session(account.user)

    def sign_in(self, email: str, password: str) -> Session:
        account = self._accounts.get(_normalize_email(email))
        if account is None or not secrets.compare_digest(self._hash(password or "", account.salt), account.password_hash):
            raise AuthError("invalid login credentials")
        return self._open_session(account.user)

    def sign_out(self, access_token: str) -> None:
        with self._lock:
            session = self._sessions.pop(str(access_token or ""), None)
        if session is not None:
            logger.info("signed out user %s", session.user_id)
            self._notify("SIGNED_OUT", None)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _open_session(self, user: User) -> Session:
        session = Session(user_id=user.id, email=user.email, access_token=secrets.token_urlsafe(32))
        with self._lock:
            self._sessions[session.access_token] = session
        self._notify("SIGNED_IN", session)
        return session

    def _notify(self, event: SessionEvent, session: Session | None) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def _hash(self, password: str, salt: bytes) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, self.iterations)


def _normalize_email(email: str) -> str:
    text = str(email or "").strip().lower()
    if "@" not in text or text.startswith("@") or text.endswith("@"):
        raise AuthError("a valid email is required")
    return text
