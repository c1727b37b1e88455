"""
Session lifecycle use cases: login, refresh, logout, revocation and the
per-request authentication guard.

The manager keeps no state between calls. Durable state lives in the stores and
the signing key lives in the codec, both handed in by the application factory.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from accounts.core.errors import Forbidden, InvalidCredentials, NotFound, SessionInvalid, Unauthorized
from accounts.core.tokens import Expired, TokenCodec, TokenError
from accounts.db.models import User, UserSession
from accounts.domain.usernames import normalize_username
from accounts.repositories.session_repository import SessionRepository
from accounts.repositories.user_repository import UserRepository

logger = logging.getLogger("accounts.sessions")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IssuedSession:
    token: str
    session_id: str
    user_id: str
    expires_at: datetime


@dataclass
class AuthContext:
    """Who is calling, and through which session."""

    user: User
    session_id: str

    @property
    def user_id(self) -> str:
        return self.user.id


class SessionManager:
    def __init__(
        self,
        users: UserRepository,
        sessions: SessionRepository,
        codec: TokenCodec,
        *,
        ttl_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.codec = codec
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    # -------------------------------------- helpers --------------------------------------
    def _new_session(self, user_id: str, *, user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> UserSession:
        now = self._clock()
        return UserSession(
            id=secrets.token_urlsafe(32),
            user_id=user_id,
            issued_at=now,
            expires_at=now + self.ttl,
            revoked=False,
            user_agent=(user_agent or "")[:255] or None,
            ip_address=ip_address,
        )

    def _issue(self, entity: UserSession) -> IssuedSession:
        token = self.codec.issue(entity.id, entity.expires_at)
        return IssuedSession(token=token, session_id=entity.id, user_id=entity.user_id, expires_at=entity.expires_at)

    def _load_valid(self, session_id: str) -> UserSession:
        try:
            entity = self.sessions.find_by_id(session_id)
        except NotFound:
            raise SessionInvalid() from None
        if not entity.is_valid(self._clock()):
            raise SessionInvalid()
        return entity

    # -------------------------------------- login --------------------------------------
    def login(
        self,
        username: str,
        password: str,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> IssuedSession:
        try:
            user = self.users.find_by_username(normalize_username(username))
        except NotFound:
            user = None
        # Unknown user and wrong password are indistinguishable, timing included.
        if not self.users.verify_password(user, password or ""):
            logger.info("Login rejected")
            raise InvalidCredentials()
        if self.users.hasher.needs_rehash(user.password_hash):
            self.users.update_user(user.id, password_hash=self.users.hasher.hash(password))

        entity = self.sessions.create(self._new_session(user.id, user_agent=user_agent, ip_address=ip_address))
        logger.info("Session %s opened for user %s", entity.id, user.id)
        return self._issue(entity)

    # -------------------------------------- refresh --------------------------------------
    def refresh(self, token: str) -> IssuedSession:
        """Rotate the session behind ``token``; the old token stops working."""
        try:
            session_id = self.codec.verify(token)
        except Expired:
            raise SessionInvalid() from None
        except TokenError:
            raise Unauthorized() from None

        current = self._load_valid(session_id)
        successor = self._new_session(current.user_id, user_agent=current.user_agent, ip_address=current.ip_address)
        try:
            entity = self.sessions.rotate(current.id, successor)
        except NotFound:
            raise SessionInvalid() from None
        logger.info("Session %s rotated into %s for user %s", current.id, entity.id, entity.user_id)
        return self._issue(entity)

    # -------------------------------------- logout --------------------------------------
    def logout(self, token: str) -> None:
        """Revoke the session behind ``token``. Already revoked or expired is fine."""
        try:
            session_id = self.codec.verify(token)
        except Expired as exc:
            session_id = exc.session_id
        except TokenError:
            raise Unauthorized() from None
        if self.sessions.revoke(session_id):
            logger.info("Session %s closed", session_id)

    # -------------------------------------- revocation --------------------------------------
    def revoke_session(self, acting: User, target_session_id: str) -> None:
        target = self.sessions.find_by_id(target_session_id)
        if target.user_id != acting.id and not acting.is_admin:
            logger.warning("User %s tried to revoke session %s of another user", acting.id, target_session_id)
            raise Forbidden()
        if self.sessions.revoke(target.id):
            logger.info("Session %s revoked by user %s", target.id, acting.id)

    def revoke_all_sessions(self, user_id: str) -> int:
        count = self.sessions.revoke_all(user_id)
        logger.info("Revoked %s session(s) for user %s", count, user_id)
        return count

    def list_sessions(self, user_id: str) -> list[UserSession]:
        return self.sessions.list_for_user(user_id)

    # -------------------------------------- guard --------------------------------------
    def authenticate(self, token: Optional[str]) -> AuthContext:
        """Resolve a bearer token to its live session and owner, or raise Unauthorized."""
        if not token:
            raise Unauthorized()
        try:
            session_id = self.codec.verify(token)
        except TokenError:
            raise Unauthorized() from None
        try:
            entity = self._load_valid(session_id)
            user = self.users.find_by_id(entity.user_id)
        except (SessionInvalid, NotFound):
            raise Unauthorized() from None
        return AuthContext(user=user, session_id=entity.id)
