from __future__ import annotations

import pytest

from accounts.core.config import ConfigError, load_settings
from accounts.core.rate_limiter import TokenBucket

BASE_DB = {
    "DATABASE_NAME": "accounts",
    "DATABASE_USERNAME": "svc",
    "DATABASE_PASSWORD": "pw",
}


def test_defaults_with_discrete_database_fields():
    settings = load_settings(dict(BASE_DB))
    assert settings.app_env == "dev"
    assert settings.server_port == 8000
    assert settings.session_ttl_seconds == 86400
    assert settings.allowed_origins == ("http://localhost:3000",)
    assert len(settings.cookie_secret) >= 32
    url = settings.database.sqlalchemy_url()
    assert url.drivername == "postgresql+psycopg2"
    assert url.host == "127.0.0.1" and url.port == 5432 and url.database == "accounts"
    assert url.query["sslmode"] == "prefer"


def test_invalid_optional_values_fall_back_to_defaults():
    settings = load_settings(
        {
            **BASE_DB,
            "DATABASE_PORT": "not-a-port",
            "DATABASE_SSL_MODE": "sometimes",
            "LOG_LEVEL": "chatty",
            "SESSION_TTL_SECONDS": "5",
            "REQUEST_TIMEOUT_SECS": "-1",
        }
    )
    assert settings.database.port == 5432
    assert settings.database.ssl_mode == "prefer"
    assert settings.log_level == "INFO"
    assert settings.session_ttl_seconds == 60
    assert settings.request_timeout_secs == 30.0


def test_missing_required_database_fields_raise():
    with pytest.raises(ConfigError):
        load_settings({"DATABASE_NAME": "accounts"})


def test_database_url_overrides_discrete_fields():
    settings = load_settings({"DATABASE_URL": "sqlite:///tmp.db", "DATABASE_MAX_CONNECTIONS": "3"})
    assert settings.database.sqlalchemy_url().get_backend_name() == "sqlite"
    assert settings.database.max_connections == 3


def test_prod_requires_a_strong_secret():
    with pytest.raises(ConfigError):
        load_settings({**BASE_DB, "APP_ENV": "prod"})
    with pytest.raises(ConfigError):
        load_settings({**BASE_DB, "APP_ENV": "prod", "COOKIE_SECRET": "short"})
    settings = load_settings({**BASE_DB, "APP_ENV": "prod", "COOKIE_SECRET": "s" * 40})
    assert settings.is_prod


def test_origins_and_admins_are_parsed_from_csv():
    settings = load_settings(
        {**BASE_DB, "ALLOWED_ORIGINS": "https://a.example, https://b.example ,", "ADMIN_USERNAMES": "Root,ops"}
    )
    assert settings.allowed_origins == ("https://a.example", "https://b.example")
    assert settings.admin_usernames == frozenset({"root", "ops"})


class _Ticker:
    def __init__(self):
        self.value = 0.0

    def __call__(self):
        return self.value


def test_token_bucket_refills_over_the_period():
    ticker = _Ticker()
    bucket = TokenBucket(2, 10, clock=ticker)
    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()
    ticker.value = 5.0
    assert bucket.try_acquire()
    assert not bucket.try_acquire()
    ticker.value = 100.0
    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_configure_logging_installs_single_handler():
    import logging

    from accounts.core.logging import configure_logging

    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging("DEBUG")
        configure_logging("WARNING")
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
