"""Session lifecycle endpoints.

Both refresh transports (cookie and JSON body) delegate to the same
``SessionManager.refresh`` call; they only differ in where the token comes from
and whether a cookie is written back.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from accounts.core.config import Settings
from accounts.core.errors import Unauthorized
from accounts.routers.dependencies import (
    cookie_token,
    current_auth,
    get_session_manager,
    get_settings,
    set_session_cookie,
)
from accounts.routers.schemas import (
    RefreshRequest,
    RevokeAllResponse,
    SessionResponse,
    SessionTokenResponse,
)
from accounts.services.session_manager import AuthContext, SessionManager

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/refresh-cookie", response_model=SessionTokenResponse)
def refresh_by_cookie(
    request: Request,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    token = cookie_token(request)
    if not token:
        raise Unauthorized()
    issued = manager.refresh(token)
    set_session_cookie(response, issued, settings)
    return SessionTokenResponse(**issued.__dict__)


@router.post("/refresh", response_model=SessionTokenResponse)
def refresh_by_body(body: RefreshRequest, manager: SessionManager = Depends(get_session_manager)):
    issued = manager.refresh(body.token)
    return SessionTokenResponse(**issued.__dict__)


@router.get("/", response_model=list[SessionResponse])
def list_sessions(
    auth: AuthContext = Depends(current_auth),
    manager: SessionManager = Depends(get_session_manager),
):
    items = []
    for entity in manager.list_sessions(auth.user_id):
        item = SessionResponse.model_validate(entity)
        item.current = entity.id == auth.session_id
        items.append(item)
    return items


@router.patch("/current", status_code=204)
def revoke_current(
    auth: AuthContext = Depends(current_auth),
    manager: SessionManager = Depends(get_session_manager),
):
    manager.revoke_session(auth.user, auth.session_id)
    return Response(status_code=204)


@router.patch("/{session_id}", status_code=204)
def revoke_one(
    session_id: str,
    auth: AuthContext = Depends(current_auth),
    manager: SessionManager = Depends(get_session_manager),
):
    manager.revoke_session(auth.user, session_id)
    return Response(status_code=204)


@router.patch("/", response_model=RevokeAllResponse)
def revoke_all(
    auth: AuthContext = Depends(current_auth),
    manager: SessionManager = Depends(get_session_manager),
):
    return RevokeAllResponse(revoked=manager.revoke_all_sessions(auth.user_id))
