"""Credential store backed by SQLAlchemy."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from accounts.core.errors import Conflict, Internal, NotFound
from accounts.core.security import PasswordHasher
from accounts.db.models import User, UserSession
from accounts.db.session import session_scope

logger = logging.getLogger("accounts.repositories.users")

UPDATABLE_FIELDS = {"username", "email", "password_hash", "role", "display_name"}


class UserRepository:
    """CRUD helpers for user rows plus password verification."""

    def __init__(self, factory: sessionmaker, hasher: PasswordHasher) -> None:
        self._factory = factory
        self.hasher = hasher

    def find_by_id(self, user_id: str) -> User:
        try:
            with session_scope(self._factory) as session:
                user = session.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load user %s", user_id)
            raise Internal() from exc
        if not user:
            raise NotFound("User not found")
        return user

    def find_by_username(self, username: str) -> User:
        try:
            with session_scope(self._factory) as session:
                stmt = select(User).where(User.username == username)
                user = session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up user by username")
            raise Internal() from exc
        if not user:
            raise NotFound("User not found")
        return user

    def list_users(self) -> list[User]:
        try:
            with session_scope(self._factory) as session:
                return list(session.execute(select(User).order_by(User.created_at, User.username)).scalars())
        except SQLAlchemyError as exc:
            logger.exception("Failed to list users")
            raise Internal() from exc

    def create_user(
        self,
        username: str,
        password: str,
        *,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        role: str = "user",
    ) -> User:
        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            role=role,
            display_name=display_name,
            created_at=now,
            updated_at=now,
        )
        try:
            with session_scope(self._factory) as session:
                session.add(user)
                session.commit()
        except IntegrityError as exc:
            raise Conflict("Username or e-mail already registered") from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to create user %s", username)
            raise Internal() from exc
        return user

    def update_user(self, user_id: str, **fields) -> User:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update {sorted(unknown)}")
        try:
            with session_scope(self._factory) as session:
                user = session.get(User, user_id)
                if not user:
                    raise NotFound("User not found")
                for name, value in fields.items():
                    setattr(user, name, value)
                user.updated_at = datetime.now(timezone.utc)
                session.commit()
                return user
        except IntegrityError as exc:
            raise Conflict("Username or e-mail already registered") from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to update user %s", user_id)
            raise Internal() from exc

    def delete_user(self, user_id: str) -> int:
        """Delete the account and revoke its live sessions in one transaction.

        Session rows are kept for audit. Returns how many sessions were revoked.
        """
        now = datetime.now(timezone.utc)
        try:
            with session_scope(self._factory) as session:
                owner = session.execute(select(User.id).where(User.id == user_id).with_for_update()).scalar_one_or_none()
                if owner is None:
                    raise NotFound("User not found")
                revoked = session.execute(
                    update(UserSession)
                    .where(UserSession.user_id == user_id, UserSession.revoked.is_(False))
                    .values(revoked=True, revoked_at=now)
                )
                session.execute(delete(User).where(User.id == user_id))
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete user %s", user_id)
            raise Internal() from exc
        return revoked.rowcount

    def verify_password(self, user: Optional[User], candidate: str) -> bool:
        """Slow, salted comparison; burns the same work when ``user`` is None."""
        if user is None:
            self.hasher.verify_dummy(candidate)
            return False
        return self.hasher.verify(candidate, user.password_hash)
