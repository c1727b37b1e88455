from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from accounts.core.config import Settings
from accounts.routers.dependencies import clear_session_cookie, current_auth, get_settings, get_user_service
from accounts.routers.schemas import RegisterRequest, UserResponse, UserUpdateRequest
from accounts.services.session_manager import AuthContext
from accounts.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(body: RegisterRequest, users: UserService = Depends(get_user_service)):
    return users.register(body.username, body.password, email=body.email, display_name=body.display_name)


@router.get("/", response_model=list[UserResponse])
def list_users(_auth: AuthContext = Depends(current_auth), users: UserService = Depends(get_user_service)):
    return users.list_users()


# /me routes are declared before /{user_id} so "me" is never parsed as an id.
@router.get("/me", response_model=UserResponse)
def get_me(auth: AuthContext = Depends(current_auth)):
    return auth.user


@router.patch("/me", response_model=UserResponse)
def update_me(
    body: UserUpdateRequest,
    auth: AuthContext = Depends(current_auth),
    users: UserService = Depends(get_user_service),
):
    return users.update(auth.user, auth.user_id, body.model_dump(exclude_unset=True))


@router.delete("/me", status_code=204)
def delete_me(
    auth: AuthContext = Depends(current_auth),
    users: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    users.delete(auth.user, auth.user_id)
    response = Response(status_code=204)
    clear_session_cookie(response, settings)
    return response


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, _auth: AuthContext = Depends(current_auth), users: UserService = Depends(get_user_service)):
    return users.get(user_id)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    auth: AuthContext = Depends(current_auth),
    users: UserService = Depends(get_user_service),
):
    return users.update(auth.user, user_id, body.model_dump(exclude_unset=True))


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: str,
    auth: AuthContext = Depends(current_auth),
    users: UserService = Depends(get_user_service),
):
    users.delete(auth.user, user_id)
    return Response(status_code=204)
