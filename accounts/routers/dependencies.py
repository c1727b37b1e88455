"""Transport adapter: pulls tokens out of requests and writes session cookies.

Routers stay thin; everything session-related goes through the SessionManager
stored on ``app.state`` by the application factory.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request, Response

from accounts.core.config import Settings
from accounts.services.session_manager import AuthContext, IssuedSession, SessionManager
from accounts.services.user_service import UserService

SESSION_COOKIE_NAME = "session"


def _state(request: Request, name: str):
    value = getattr(getattr(request.app, "state", None), name, None)
    if value is None:
        raise RuntimeError(f"{name} is not configured on app.state")
    return value


def get_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_session_manager(request: Request) -> SessionManager:
    return _state(request, "session_manager")


def get_user_service(request: Request) -> UserService:
    return _state(request, "user_service")


def cookie_token(request: Request) -> Optional[str]:
    return request.cookies.get(SESSION_COOKIE_NAME) or None


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def request_token(request: Request) -> Optional[str]:
    """Cookie first, then ``Authorization: Bearer``."""
    return cookie_token(request) or bearer_token(request)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return None


def current_auth(request: Request, manager: SessionManager = Depends(get_session_manager)) -> AuthContext:
    """Guard for protected routes."""
    auth = manager.authenticate(request_token(request))
    request.state.auth = auth
    return auth


def set_session_cookie(response: Response, issued: IssuedSession, settings: Settings) -> None:
    max_age = int((issued.expires_at - datetime.now(timezone.utc)).total_seconds())
    response.set_cookie(
        SESSION_COOKIE_NAME,
        issued.token,
        httponly=True,
        secure=settings.is_prod,
        samesite="strict",
        max_age=max(0, max_age),
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/", secure=settings.is_prod, httponly=True, samesite="strict")
