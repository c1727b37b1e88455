"""
End-to-end checks of the HTTP surface through FastAPI's TestClient.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from accounts.app import create_app
from accounts.routers.dependencies import SESSION_COOKIE_NAME


@pytest.fixture()
def app(settings, engine, hasher):
    return create_app(settings, engine=engine, hasher=hasher)


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


def _register(client, username="alice", password="correct-horse-battery", **extra):
    resp = client.post("/users/register", json={"username": username, "password": password, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _login(client, username="alice", password="correct-horse-battery"):
    resp = client.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers.get("X-Request-ID")


def test_register_twice_conflicts(client):
    _register(client)
    resp = client.post("/users/register", json={"username": "alice", "password": "another-password"})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"


def test_register_validation_error_is_malformed(client):
    resp = client.post("/users/register", json={"username": "alice"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "malformed"


def test_login_sets_cookie_and_returns_token(client):
    user = _register(client)
    body = _login(client)
    assert body["user_id"] == user["id"]
    assert client.cookies.get(SESSION_COOKIE_NAME) == body["token"]

    me = client.get("/users/me")
    assert me.status_code == 200
    assert me.json()["username"] == "alice"
    assert "password_hash" not in me.json()


def test_invalid_credentials_are_401(client):
    _register(client)
    wrong = client.post("/auth/login", json={"username": "alice", "password": "nope-nope-nope"})
    unknown = client.post("/auth/login", json={"username": "nobody", "password": "nope-nope-nope"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_protected_routes_require_a_session(client):
    assert client.get("/users/me").status_code == 401
    assert client.get("/users/").status_code == 401
    assert client.get("/users/me", headers=_bearer("garbage")).status_code == 401


def test_bearer_header_authenticates(client):
    _register(client)
    token = _login(client)["token"]
    client.cookies.clear()
    assert client.get("/users/me", headers=_bearer(token)).status_code == 200


def test_logout_clears_cookie_and_revokes(client):
    _register(client)
    token = _login(client)["token"]
    resp = client.post("/auth/logout")
    assert resp.status_code == 204
    assert SESSION_COOKIE_NAME not in client.cookies
    assert client.get("/users/me", headers=_bearer(token)).status_code == 401
    # Already revoked: still a success.
    assert client.post("/auth/logout", headers=_bearer(token)).status_code == 204


def test_logout_without_token_is_401(client):
    assert client.post("/auth/logout").status_code == 401


def test_refresh_by_body_rotates(client):
    _register(client)
    t1 = _login(client)["token"]
    client.cookies.clear()

    resp = client.post("/sessions/refresh", json={"token": t1})
    assert resp.status_code == 200
    t2 = resp.json()["token"]
    assert t2 != t1

    assert client.get("/users/me", headers=_bearer(t1)).status_code == 401
    assert client.get("/users/me", headers=_bearer(t2)).status_code == 200

    again = client.post("/sessions/refresh", json={"token": t1})
    assert again.status_code == 401
    assert again.json()["error"]["code"] == "session_invalid"


def test_refresh_by_cookie_resets_cookie(client):
    _register(client)
    t1 = _login(client)["token"]
    resp = client.post("/sessions/refresh-cookie")
    assert resp.status_code == 200
    t2 = resp.json()["token"]
    assert client.cookies.get(SESSION_COOKIE_NAME) == t2
    assert client.get("/users/me").status_code == 200
    client.cookies.clear()
    assert client.get("/users/me", headers=_bearer(t1)).status_code == 401


def test_refresh_cookie_missing_is_401(client):
    assert client.post("/sessions/refresh-cookie").status_code == 401


def test_revoke_current_session(client):
    _register(client)
    _login(client)
    assert client.patch("/sessions/current").status_code == 204
    assert client.get("/users/me").status_code == 401


def test_revoke_all_sessions(client):
    _register(client)
    first = _login(client)["token"]
    second = _login(client)["token"]

    listed = client.get("/sessions/", headers=_bearer(second))
    assert listed.status_code == 200
    assert len(listed.json()) == 2
    assert sum(1 for item in listed.json() if item["current"]) == 1

    resp = client.patch("/sessions/", headers=_bearer(second))
    assert resp.status_code == 200
    assert resp.json() == {"revoked": 2}
    for token in (first, second):
        assert client.get("/users/me", headers=_bearer(token)).status_code == 401


def test_revoke_other_users_session_is_forbidden(client):
    _register(client)
    _register(client, "bob", "hunter2-hunter2")
    alice = _login(client)
    bob = _login(client, "bob", "hunter2-hunter2")
    client.cookies.clear()

    resp = client.patch(f"/sessions/{alice['session_id']}", headers=_bearer(bob["token"]))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"
    assert client.get("/users/me", headers=_bearer(alice["token"])).status_code == 200

    own = client.patch(f"/sessions/{bob['session_id']}", headers=_bearer(bob["token"]))
    assert own.status_code == 204
    missing = client.patch("/sessions/unknown-id", headers=_bearer(alice["token"]))
    assert missing.status_code == 404


def test_user_crud(client):
    alice = _register(client, email="alice@example.com")
    bob = _register(client, "bob", "hunter2-hunter2")
    token = _login(client)["token"]
    client.cookies.clear()
    headers = _bearer(token)

    listed = client.get("/users/", headers=headers)
    assert {u["username"] for u in listed.json()} == {"alice", "bob"}
    assert client.get(f"/users/{bob['id']}", headers=headers).json()["username"] == "bob"
    assert client.get("/users/does-not-exist", headers=headers).status_code == 404

    patched = client.patch(f"/users/{alice['id']}", json={"display_name": "Alice"}, headers=headers)
    assert patched.status_code == 200
    assert patched.json()["display_name"] == "Alice"
    assert client.patch("/users/me", json={"display_name": "A."}, headers=headers).json()["display_name"] == "A."

    assert client.patch(f"/users/{bob['id']}", json={"display_name": "x"}, headers=headers).status_code == 403
    assert client.delete(f"/users/{bob['id']}", headers=headers).status_code == 403

    assert client.delete("/users/me", headers=headers).status_code == 204
    assert client.get("/users/me", headers=headers).status_code == 401
    assert client.post("/auth/login", json={"username": "alice", "password": "correct-horse-battery"}).status_code == 401


def test_password_change_logs_out_everywhere(client):
    _register(client)
    token = _login(client)["token"]
    resp = client.patch("/users/me", json={"password": "brand-new-password"})
    assert resp.status_code == 200
    assert client.get("/users/me", headers=_bearer(token)).status_code == 401
    _login(client, password="brand-new-password")


def test_cors_allows_configured_origin_only(client):
    allowed = client.get("/", headers={"Origin": "http://localhost:3000"})
    assert allowed.headers.get("access-control-allow-origin") == "http://localhost:3000"
    denied = client.get("/", headers={"Origin": "http://evil.example"})
    assert "access-control-allow-origin" not in denied.headers


def test_rate_limit_rejects_excess_traffic(settings, engine, hasher):
    from dataclasses import replace

    app = create_app(replace(settings, rate_limit_burst=2, rate_limit_per_secs=3600), engine=engine, hasher=hasher)
    with TestClient(app) as client:
        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200
        resp = client.get("/")
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"


def test_slow_handler_times_out_with_408(settings, engine, hasher):
    import asyncio
    from dataclasses import replace

    app = create_app(replace(settings, request_timeout_secs=0.05), engine=engine, hasher=hasher)

    @app.get("/slow")
    async def slow():
        await asyncio.sleep(2)
        return {"status": "late"}

    with TestClient(app) as client:
        resp = client.get("/slow")
        assert resp.status_code == 408
        assert resp.json()["error"]["code"] == "request_timeout"
        assert client.get("/").status_code == 200
