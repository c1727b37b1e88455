"""Application factory: builds the components once and wires them into FastAPI."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from accounts.core.config import Settings, get_settings
from accounts.core.errors import AppError, Internal, Malformed
from accounts.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware, TimeoutMiddleware
from accounts.core.rate_limiter import RateLimitMiddleware, TokenBucket
from accounts.core.security import PasswordHasher
from accounts.core.tokens import TokenCodec
from accounts.db.session import create_db_engine, make_sessionmaker
from accounts.repositories.session_repository import SessionRepository
from accounts.repositories.user_repository import UserRepository
from accounts.routers import auth as auth_router
from accounts.routers import sessions as sessions_router
from accounts.routers import users as users_router
from accounts.services.session_manager import SessionManager
from accounts.services.user_service import UserService

logger = logging.getLogger("accounts.app")


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.code)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()})
    message = "Invalid request body" + (f": {', '.join(f for f in fields if f)}" if any(fields) else "")
    error = Malformed(message)
    return JSONResponse(error.to_dict(), status_code=error.status_code)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = Internal()
    return JSONResponse(error.to_dict(), status_code=error.status_code)


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """Factory compatible with uvicorn/gunicorn (``--factory``)."""
    settings = settings or get_settings()
    engine = engine or create_db_engine(settings.database)
    factory = make_sessionmaker(engine)

    users = UserRepository(factory, hasher or PasswordHasher())
    session_store = SessionRepository(factory)
    manager = SessionManager(users, session_store, TokenCodec(settings.cookie_secret), ttl_seconds=settings.session_ttl_seconds)

    app = FastAPI(title="Accounts API")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_manager = manager
    app.state.user_service = UserService(users, manager, admin_usernames=settings.admin_usernames)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Last added runs first: logging -> rate limit -> CORS -> timeout -> headers.
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.is_prod)
    app.add_middleware(TimeoutMiddleware, timeout=settings.request_timeout_secs)
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(settings.allowed_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
            allow_headers=["*"],
        )
    app.add_middleware(
        RateLimitMiddleware,
        bucket=TokenBucket(settings.rate_limit_burst, settings.rate_limit_per_secs),
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/", tags=["health"])
    def health_check():
        return {"status": "ok"}

    app.include_router(users_router.router)
    app.include_router(auth_router.router)
    app.include_router(sessions_router.router)
    return app
