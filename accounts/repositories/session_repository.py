"""Session store: the server-side revocation ledger.

Rows are never deleted on the request path and only ever move from
``revoked = false`` to ``revoked = true``. Every mutation is a conditional UPDATE
so concurrent revocations of the same row are harmless.

Session creation and revoke-all both lock the owning ``users`` row first. That
lock serialises them: a session inserted while a revoke-all is running is
either covered by it or committed strictly after it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from accounts.core.errors import Internal, NotFound, SessionInvalid
from accounts.db.models import User, UserSession
from accounts.db.session import session_scope

logger = logging.getLogger("accounts.repositories.sessions")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionRepository:
    def __init__(self, factory: sessionmaker, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._factory = factory
        self._clock = clock

    # -------------------------- helpers --------------------------
    def _lock_owner(self, session: Session, user_id: str) -> None:
        # FOR UPDATE on Postgres; SQLite already holds the write lock from BEGIN IMMEDIATE.
        owner = session.execute(select(User.id).where(User.id == user_id).with_for_update()).scalar_one_or_none()
        if owner is None:
            raise NotFound("User not found")

    # -------------------------- reads --------------------------
    def find_by_id(self, session_id: str) -> UserSession:
        try:
            with session_scope(self._factory) as session:
                entity = session.get(UserSession, session_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load session")
            raise Internal() from exc
        if not entity:
            raise NotFound("Session not found")
        return entity

    def list_for_user(self, user_id: str, *, include_inactive: bool = False) -> list[UserSession]:
        stmt = select(UserSession).where(UserSession.user_id == user_id)
        if not include_inactive:
            stmt = stmt.where(UserSession.revoked.is_(False), UserSession.expires_at > self._clock())
        stmt = stmt.order_by(UserSession.issued_at.desc())
        try:
            with session_scope(self._factory) as session:
                return list(session.execute(stmt).scalars())
        except SQLAlchemyError as exc:
            logger.exception("Failed to list sessions for user %s", user_id)
            raise Internal() from exc

    # -------------------------- writes --------------------------
    def create(self, entity: UserSession) -> UserSession:
        try:
            with session_scope(self._factory) as session:
                self._lock_owner(session, entity.user_id)
                session.add(entity)
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to create session for user %s", entity.user_id)
            raise Internal() from exc
        return entity

    def rotate(self, old_id: str, successor: UserSession) -> UserSession:
        """Revoke ``old_id`` and insert ``successor`` in one transaction.

        Only the caller whose conditional UPDATE flips the row wins; everybody
        else gets SessionInvalid and nothing is inserted.
        """
        now = self._clock()
        try:
            with session_scope(self._factory) as session:
                self._lock_owner(session, successor.user_id)
                result = session.execute(
                    update(UserSession)
                    .where(
                        UserSession.id == old_id,
                        UserSession.user_id == successor.user_id,
                        UserSession.revoked.is_(False),
                        UserSession.expires_at > now,
                    )
                    .values(revoked=True, revoked_at=now)
                )
                if result.rowcount != 1:
                    session.rollback()
                    raise SessionInvalid()
                successor.rotated_from = old_id
                session.add(successor)
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to rotate session")
            raise Internal() from exc
        return successor

    def revoke(self, session_id: str) -> bool:
        """Mark one session revoked. Returns False when it already was."""
        now = self._clock()
        try:
            with session_scope(self._factory) as session:
                result = session.execute(
                    update(UserSession)
                    .where(UserSession.id == session_id, UserSession.revoked.is_(False))
                    .values(revoked=True, revoked_at=now)
                )
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to revoke session")
            raise Internal() from exc
        return result.rowcount == 1

    def revoke_all(self, user_id: str) -> int:
        """Revoke every live session of ``user_id``; returns how many flipped."""
        now = self._clock()
        try:
            with session_scope(self._factory) as session:
                self._lock_owner(session, user_id)
                session.execute(update(User).where(User.id == user_id).values(sessions_revoked_at=now))
                result = session.execute(
                    update(UserSession)
                    .where(UserSession.user_id == user_id, UserSession.revoked.is_(False))
                    .values(revoked=True, revoked_at=now)
                )
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to revoke sessions for user %s", user_id)
            raise Internal() from exc
        return result.rowcount

    def purge_expired(self, before: datetime, *, user_id: Optional[str] = None) -> int:
        """Hard-delete sessions that expired before ``before``. Maintenance only."""
        stmt = delete(UserSession).where(UserSession.expires_at < before)
        if user_id:
            stmt = stmt.where(UserSession.user_id == user_id)
        try:
            with session_scope(self._factory) as session:
                result = session.execute(stmt)
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to purge expired sessions")
            raise Internal() from exc
        return result.rowcount
