"""SQLAlchemy models for accounts and their sessions."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.types import TypeDecorator

from .session import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that always comes back in UTC (SQLite drops offsets)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(16), nullable=False, default="user")
    display_name = Column(String(128), nullable=True)
    sessions_revoked_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserSession(Base):
    __tablename__ = "sessions"
    __table_args__ = (Index("ix_sessions_user_id_revoked", "user_id", "revoked"),)

    id = Column(String(64), primary_key=True)
    # No FK to users: revoked rows outlive a deleted account.
    user_id = Column(String(36), nullable=False)
    issued_at = Column(UTCDateTime(), nullable=False)
    expires_at = Column(UTCDateTime(), nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(UTCDateTime(), nullable=True)
    rotated_from = Column(String(64), ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True)
    user_agent = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)

    def is_valid(self, now: datetime) -> bool:
        return not self.revoked and now < self.expires_at
