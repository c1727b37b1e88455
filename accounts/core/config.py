"""
Configuration helpers for the accounts service.

Settings are read once from the environment by the application factory and then
passed explicitly to the components that need them; routers/services never read
os.environ directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import logging
import os
import secrets
from typing import Mapping

from sqlalchemy.engine import URL, make_url

logger = logging.getLogger("accounts.config")

SSL_MODES = ("disable", "allow", "prefer", "require", "verify-ca", "verify-full")
MIN_SECRET_LENGTH = 32


class ConfigError(RuntimeError):
    """Raised when a required setting is missing or unusable."""


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection parameters and pool bounds for the SQL store."""

    url: str = ""
    host: str = "127.0.0.1"
    port: int = 5432
    name: str = ""
    username: str = ""
    password: str = ""
    ssl_mode: str = "prefer"
    min_connections: int = 1
    max_connections: int = 10
    acquire_timeout_secs: int = 5

    def sqlalchemy_url(self) -> URL:
        if self.url:
            return make_url(self.url)
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
            query={"sslmode": self.ssl_mode},
        )


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str = "dev"
    server_host: str = "127.0.0.1"
    server_port: int = 8000
    cookie_secret: str = ""
    session_ttl_seconds: int = 86400
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    request_timeout_secs: float = 30.0
    rate_limit_burst: int = 100
    rate_limit_per_secs: float = 1.0
    log_level: str = "INFO"
    admin_usernames: frozenset[str] = frozenset()
    database: DatabaseSettings = field(default_factory=DatabaseSettings)

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _int(env: Mapping[str, str], name: str, default: int, *, minimum: int | None = None) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("%s=%r is not an integer. Using default %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("%s=%s is below %s. Using %s", name, value, minimum, minimum)
        return minimum
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("%s=%r is not a number. Using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive. Using default %s", name, default)
        return default
    return value


def _csv(value: str | None) -> tuple[str, ...]:
    return tuple(item.strip() for item in (value or "").split(",") if item.strip())


def _required(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise ConfigError(f"{name} must be set")
    return value


def _database_settings(env: Mapping[str, str]) -> DatabaseSettings:
    min_conn = _int(env, "DATABASE_MIN_CONNECTIONS", 1, minimum=0)
    max_conn = _int(env, "DATABASE_MAX_CONNECTIONS", 10, minimum=1)
    if max_conn < min_conn:
        logger.warning("DATABASE_MAX_CONNECTIONS < DATABASE_MIN_CONNECTIONS, raising max to %s", min_conn)
        max_conn = min_conn
    pool = {
        "min_connections": min_conn,
        "max_connections": max_conn,
        "acquire_timeout_secs": _int(env, "DATABASE_ACQUIRE_TIMEOUT_SECS", 5, minimum=1),
    }
    url = (env.get("DATABASE_URL") or "").strip()
    if url:
        return DatabaseSettings(url=url, **pool)

    ssl_mode = (env.get("DATABASE_SSL_MODE") or "prefer").strip().lower()
    if ssl_mode not in SSL_MODES:
        logger.warning("DATABASE_SSL_MODE=%r is not valid. Using default prefer", ssl_mode)
        ssl_mode = "prefer"
    return DatabaseSettings(
        host=(env.get("DATABASE_HOST") or "127.0.0.1").strip(),
        port=_int(env, "DATABASE_PORT", 5432),
        name=_required(env, "DATABASE_NAME"),
        username=_required(env, "DATABASE_USERNAME"),
        password=_required(env, "DATABASE_PASSWORD"),
        ssl_mode=ssl_mode,
        **pool,
    )


def _cookie_secret(env: Mapping[str, str], app_env: str) -> str:
    secret = (env.get("COOKIE_SECRET") or "").strip()
    if secret and len(secret) >= MIN_SECRET_LENGTH:
        return secret
    if app_env == "prod":
        raise ConfigError(f"COOKIE_SECRET must be set to at least {MIN_SECRET_LENGTH} characters")
    if secret:
        logger.warning("COOKIE_SECRET is shorter than %s characters", MIN_SECRET_LENGTH)
        return secret
    logger.warning("COOKIE_SECRET not set; generated a per-process key, tokens will not survive a restart")
    return secrets.token_urlsafe(48)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build a Settings instance from the given mapping (defaults to os.environ)."""
    env = os.environ if environ is None else environ
    app_env = (env.get("APP_ENV") or "dev").strip().lower()

    log_level = (env.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        logger.warning("LOG_LEVEL=%r is not valid. Using INFO", log_level)
        log_level = "INFO"

    origins = _csv(env.get("ALLOWED_ORIGINS")) if env.get("ALLOWED_ORIGINS") is not None else ("http://localhost:3000",)

    return Settings(
        app_env=app_env,
        server_host=(env.get("SERVER_HOST") or "127.0.0.1").strip(),
        server_port=_int(env, "SERVER_PORT", 8000),
        cookie_secret=_cookie_secret(env, app_env),
        session_ttl_seconds=_int(env, "SESSION_TTL_SECONDS", 86400, minimum=60),
        allowed_origins=origins,
        request_timeout_secs=_float(env, "REQUEST_TIMEOUT_SECS", 30.0),
        rate_limit_burst=_int(env, "RATE_LIMIT_BURST", 100, minimum=1),
        rate_limit_per_secs=_float(env, "RATE_LIMIT_PER_SECS", 1.0),
        log_level=log_level,
        admin_usernames=frozenset(name.lower() for name in _csv(env.get("ADMIN_USERNAMES"))),
        database=_database_settings(env),
    )


@lru_cache
def get_settings() -> Settings:
    """Read the current environment once and cache the result for the process."""
    return load_settings()
