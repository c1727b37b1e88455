from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from argon2 import PasswordHasher as Argon2Hasher

# Make the accounts package importable when the repo is not installed
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accounts.core.config import load_settings  # noqa: E402
from accounts.core.security import PasswordHasher  # noqa: E402
from accounts.core.tokens import TokenCodec  # noqa: E402
from accounts.db import models  # noqa: E402
from accounts.db.create_tables import create_all  # noqa: E402
from accounts.db.session import create_db_engine, make_sessionmaker  # noqa: E402
from accounts.repositories.session_repository import SessionRepository  # noqa: E402
from accounts.repositories.user_repository import UserRepository  # noqa: E402
from accounts.services.session_manager import SessionManager  # noqa: E402

SECRET = "test-secret-key-that-is-long-enough-0123456789"


class FakeClock:
    """Controllable UTC clock shared by the stores, the codec and the manager."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def timestamp(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def settings(tmp_path):
    """Settings pointing at a temporary SQLite file."""
    return load_settings(
        {
            "APP_ENV": "test",
            "DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}",
            "COOKIE_SECRET": SECRET,
            "SESSION_TTL_SECONDS": "3600",
            "ALLOWED_ORIGINS": "http://localhost:3000",
            "RATE_LIMIT_BURST": "1000",
            "ADMIN_USERNAMES": "root-admin",
        }
    )


@pytest.fixture()
def engine(settings):
    engine = create_db_engine(settings.database)
    models.Base.metadata.drop_all(bind=engine)
    create_all(engine)
    yield engine
    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture(scope="session")
def hasher():
    # Cheap parameters; the production defaults are deliberately slow.
    return PasswordHasher(Argon2Hasher(time_cost=1, memory_cost=64, parallelism=1))


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def users(factory, hasher):
    return UserRepository(factory, hasher)


@pytest.fixture()
def session_store(factory, clock):
    return SessionRepository(factory, clock=clock)


@pytest.fixture()
def codec(clock):
    return TokenCodec(SECRET, clock=clock.timestamp)


@pytest.fixture()
def manager(users, session_store, codec, clock):
    return SessionManager(users, session_store, codec, ttl_seconds=3600, clock=clock)


@pytest.fixture()
def alice(users):
    return users.create_user("alice", "correct-horse-battery", email="alice@example.com")


@pytest.fixture()
def bob(users):
    return users.create_user("bob", "hunter2-hunter2")
