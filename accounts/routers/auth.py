from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from accounts.core.config import Settings
from accounts.core.errors import Unauthorized
from accounts.routers.dependencies import (
    clear_session_cookie,
    client_ip,
    get_session_manager,
    get_settings,
    request_token,
    set_session_cookie,
)
from accounts.routers.schemas import LoginRequest, SessionTokenResponse
from accounts.services.session_manager import SessionManager

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=SessionTokenResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    issued = manager.login(
        body.username,
        body.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    set_session_cookie(response, issued, settings)
    return SessionTokenResponse(**issued.__dict__)


@router.post("/logout", status_code=204)
def logout(
    request: Request,
    manager: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    token = request_token(request)
    if not token:
        raise Unauthorized()
    manager.logout(token)
    response = Response(status_code=204)
    clear_session_cookie(response, settings)
    return response
