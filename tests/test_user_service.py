from __future__ import annotations

import pytest

from accounts.core.errors import Conflict, Forbidden, InvalidCredentials, Malformed, NotFound, Unauthorized
from accounts.services.user_service import UserService


@pytest.fixture()
def service(users, manager):
    return UserService(users, manager, admin_usernames={"root-admin"})


def test_register_normalises_and_hashes(service, users):
    user = service.register("  Carol ", "carol-password", email="Carol@Example.com", display_name=" Carol ")
    assert user.username == "carol"
    assert user.email == "carol@example.com"
    assert user.display_name == "Carol"
    assert user.role == "user"
    assert user.password_hash != "carol-password"
    assert users.verify_password(users.find_by_username("carol"), "carol-password")


def test_register_same_username_twice_conflicts(service):
    service.register("alice", "first-password")
    with pytest.raises(Conflict):
        service.register("alice", "second-password")
    with pytest.raises(Conflict):
        service.register("ALICE", "third-password")


def test_register_duplicate_email_conflicts(service):
    service.register("dave", "dave-password", email="shared@example.com")
    with pytest.raises(Conflict):
        service.register("erin", "erin-password", email="shared@example.com")


@pytest.mark.parametrize(
    "username,password,email",
    [
        ("ab", "long-enough", None),
        ("has space", "long-enough", None),
        ("admin", "long-enough", None),
        ("frank", "short", None),
        ("frank", "long-enough", "not-an-email"),
    ],
)
def test_register_rejects_invalid_input(service, username, password, email):
    with pytest.raises(Malformed):
        service.register(username, password, email=email)


def test_configured_admin_usernames_get_admin_role(service):
    assert service.register("root-admin", "admin-password").role == "admin"


def test_update_self_and_forbidden_for_others(service, alice, bob):
    updated = service.update(alice, alice.id, {"display_name": "Alice A.", "email": None})
    assert updated.display_name == "Alice A."
    assert updated.email is None
    with pytest.raises(Forbidden):
        service.update(bob, alice.id, {"display_name": "pwned"})


def test_only_admins_change_roles(service, users, alice):
    with pytest.raises(Forbidden):
        service.update(alice, alice.id, {"role": "admin"})
    admin = users.create_user("operator", "operator-password", role="admin")
    assert service.update(admin, alice.id, {"role": "admin"}).role == "admin"
    with pytest.raises(Malformed):
        service.update(admin, alice.id, {"role": "superuser"})


def test_rename_to_taken_username_conflicts(service, alice, bob):
    with pytest.raises(Conflict):
        service.update(alice, alice.id, {"username": "bob"})


def test_password_change_revokes_every_session(service, manager, users, alice):
    issued = manager.login("alice", "correct-horse-battery")
    service.update(alice, alice.id, {"password": "a-brand-new-password"})

    with pytest.raises(Unauthorized):
        manager.authenticate(issued.token)
    assert users.verify_password(users.find_by_id(alice.id), "a-brand-new-password")
    assert manager.login("alice", "a-brand-new-password").user_id == alice.id


def test_delete_revokes_sessions_and_removes_user(service, manager, users, alice, bob):
    issued = manager.login("alice", "correct-horse-battery")
    with pytest.raises(Forbidden):
        service.delete(bob, alice.id)
    service.delete(alice, alice.id)
    with pytest.raises(NotFound):
        users.find_by_id(alice.id)
    with pytest.raises(Unauthorized):
        manager.authenticate(issued.token)


def test_delete_keeps_revoked_session_rows(service, manager, session_store, alice):
    first = manager.login("alice", "correct-horse-battery")
    second = manager.login("alice", "correct-horse-battery")
    service.delete(alice, alice.id)

    kept = session_store.list_for_user(alice.id, include_inactive=True)
    assert {s.id for s in kept} == {first.session_id, second.session_id}
    assert all(s.revoked and s.revoked_at is not None for s in kept)
    with pytest.raises(InvalidCredentials):
        manager.login("alice", "correct-horse-battery")
