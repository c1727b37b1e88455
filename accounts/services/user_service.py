"""Registration and profile use cases."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from accounts.core.errors import Conflict, Forbidden, Malformed, NotFound
from accounts.db.models import User
from accounts.domain.usernames import (
    is_valid_email,
    is_valid_password,
    is_valid_username,
    normalize_email,
    normalize_username,
)
from accounts.repositories.user_repository import UserRepository
from accounts.services.session_manager import SessionManager

logger = logging.getLogger("accounts.users")

ROLES = ("user", "admin")


class UserService:
    def __init__(self, users: UserRepository, sessions: SessionManager, *, admin_usernames: Iterable[str] = ()) -> None:
        self.users = users
        self.sessions = sessions
        self.admin_usernames = frozenset(admin_usernames)

    def _ensure_can_manage(self, acting: User, user_id: str) -> None:
        if acting.id != user_id and not acting.is_admin:
            raise Forbidden()

    def _username_available(self, username: str, *, exclude_id: Optional[str] = None) -> bool:
        try:
            existing = self.users.find_by_username(username)
        except NotFound:
            return True
        return existing.id == exclude_id

    def register(
        self,
        username: str,
        password: str,
        *,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> User:
        name = normalize_username(username)
        if not is_valid_username(name):
            raise Malformed("Invalid username. Use 3-32 characters [a-z0-9_.-]")
        if not is_valid_password(password):
            raise Malformed("Password must be 8-128 characters long")
        address = normalize_email(email)
        if address is not None and not is_valid_email(address):
            raise Malformed("Invalid e-mail address")
        if not self._username_available(name):
            raise Conflict("Username already registered")
        role = "admin" if name in self.admin_usernames else "user"
        user = self.users.create_user(
            name,
            password,
            email=address,
            display_name=(display_name or "").strip() or None,
            role=role,
        )
        logger.info("Registered user %s (%s)", user.id, role)
        return user

    def get(self, user_id: str) -> User:
        return self.users.find_by_id(user_id)

    def list_users(self) -> list[User]:
        return self.users.list_users()

    def update(self, acting: User, user_id: str, changes: dict) -> User:
        self._ensure_can_manage(acting, user_id)
        target = self.users.find_by_id(user_id)
        fields: dict = {}

        if changes.get("username") is not None:
            name = normalize_username(changes["username"])
            if not is_valid_username(name):
                raise Malformed("Invalid username. Use 3-32 characters [a-z0-9_.-]")
            if name != target.username:
                if not self._username_available(name, exclude_id=target.id):
                    raise Conflict("Username already registered")
                fields["username"] = name
        if "email" in changes:
            address = normalize_email(changes["email"])
            if address is not None and not is_valid_email(address):
                raise Malformed("Invalid e-mail address")
            fields["email"] = address
        if "display_name" in changes:
            fields["display_name"] = (changes["display_name"] or "").strip() or None
        if changes.get("role") is not None:
            if not acting.is_admin:
                raise Forbidden("Only administrators can change roles")
            if changes["role"] not in ROLES:
                raise Malformed("Unknown role")
            fields["role"] = changes["role"]

        password = changes.get("password")
        if password is not None:
            if not is_valid_password(password):
                raise Malformed("Password must be 8-128 characters long")
            fields["password_hash"] = self.users.hasher.hash(password)

        updated = self.users.update_user(user_id, **fields) if fields else target
        if password is not None:
            # Credentials changed: every outstanding session goes.
            self.sessions.revoke_all_sessions(user_id)
        logger.info("User %s updated by %s (%s)", user_id, acting.id, ", ".join(sorted(fields)) or "no changes")
        return updated

    def delete(self, acting: User, user_id: str) -> None:
        self._ensure_can_manage(acting, user_id)
        revoked = self.users.delete_user(user_id)
        logger.info("User %s deleted by %s (%s session(s) revoked)", user_id, acting.id, revoked)
