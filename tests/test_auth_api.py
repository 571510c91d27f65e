"""
StartupVista - Authentication API tests
Register, login, Firebase sign-in, verify, logout and refresh over HTTP.
"""

import pytest
from httpx import AsyncClient

from conftest import bearer, register_user


# =============================================================================
# Local register / login
# =============================================================================

@pytest.mark.anyio
async def test_register_returns_tokens_and_sets_cookie(client: AsyncClient):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "A@X.com", "password": "secret1", "role": "startup"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["token"]
    assert data["refresh_token"]
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["role"] == "startup"
    assert "password_hash" not in data["user"]

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("token=")
    assert "httponly" in set_cookie.lower()


@pytest.mark.anyio
async def test_register_then_login_scenario(client: AsyncClient):
    registered = await register_user(client, "a@x.com", role="startup")

    response = await client.post(
        "/api/auth/login", json={"email": "a@x.com", "password": "secret1"}
    )
    assert response.status_code == 200
    logged_in = response.json()

    assert logged_in["token"] != registered["token"]
    assert logged_in["user"]["id"] == registered["user"]["id"]
    assert logged_in["user"]["role"] == "startup"


@pytest.mark.anyio
async def test_register_duplicate_email_conflict(client: AsyncClient):
    await register_user(client, "a@x.com")
    response = await client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "a@x.com", "password": "secret1", "role": "investor"},
    )
    assert response.status_code == 409
    assert response.json()["message"] == "User already exists"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload",
    [
        {"name": "A", "email": "a@x.com", "password": "secret1", "role": "startup"},
        {"name": "Alice", "email": "not-an-email", "password": "secret1", "role": "startup"},
        {"name": "Alice", "email": "a@x.com", "password": "123", "role": "startup"},
        {"name": "Alice", "email": "a@x.com", "password": "secret1"},
    ],
)
async def test_register_validation(client: AsyncClient, payload):
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


@pytest.mark.anyio
async def test_register_unknown_role(client: AsyncClient):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "a@x.com", "password": "secret1", "role": "admin"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "role_required"


@pytest.mark.anyio
async def test_login_failures_are_indistinguishable(client: AsyncClient):
    await register_user(client, "a@x.com")

    wrong_password = await client.post(
        "/api/auth/login", json={"email": "a@x.com", "password": "nope123"}
    )
    unknown_email = await client.post(
        "/api/auth/login", json={"email": "ghost@x.com", "password": "secret1"}
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"] == "Invalid credentials"


# =============================================================================
# Session
# =============================================================================

@pytest.mark.anyio
async def test_verify_returns_current_user(client: AsyncClient):
    data = await register_user(client, "a@x.com", role="consultant")
    response = await client.get("/api/auth/verify", headers=bearer(data["token"]))
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "consultant"


@pytest.mark.anyio
async def test_logout_clears_cookie(client: AsyncClient):
    response = await client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert 'token=""' in response.headers["set-cookie"] or "Max-Age=0" in response.headers["set-cookie"]


@pytest.mark.anyio
async def test_refresh_exchange(client: AsyncClient):
    data = await register_user(client, "a@x.com")

    response = await client.post("/api/auth/refresh", json={"refreshToken": data["refresh_token"]})
    assert response.status_code == 200
    refreshed = response.json()
    assert refreshed["refresh_token"] is None

    verify = await client.get("/api/auth/verify", headers=bearer(refreshed["token"]))
    assert verify.status_code == 200
    assert verify.json()["user"]["id"] == data["user"]["id"]


@pytest.mark.anyio
async def test_refresh_requires_refresh_token(client: AsyncClient):
    data = await register_user(client, "a@x.com")

    missing = await client.post("/api/auth/refresh", json={})
    assert missing.status_code == 401

    wrong_kind = await client.post("/api/auth/refresh", json={"refresh_token": data["token"]})
    assert wrong_kind.status_code == 401
    assert wrong_kind.json()["error"] == "invalid_token_type"


# =============================================================================
# Firebase
# =============================================================================

@pytest.mark.anyio
async def test_firebase_config_is_public(client: AsyncClient):
    response = await client.get("/api/auth/firebase/config")
    assert response.status_code == 200
    assert set(response.json()) == {"enabled", "apiKey", "authDomain", "projectId"}


@pytest.mark.anyio
async def test_firebase_new_user_needs_role(client: AsyncClient, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com", name="Fed")

    response = await client.post("/api/auth/firebase", json={"idToken": "fb-token"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "role_required"
    assert body["details"][0]["email"] == "f@x.com"

    completed = await client.post(
        "/api/auth/firebase/complete",
        json={"idToken": "fb-token", "role": "investor", "name": "Fed Investor"},
    )
    assert completed.status_code == 201
    assert completed.json()["user"]["name"] == "Fed Investor"
    assert completed.json()["user"]["provider"] == "federated"


@pytest.mark.anyio
async def test_firebase_sign_up_with_role_then_sign_in(client: AsyncClient, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com")

    first = await client.post("/api/auth/firebase", json={"idToken": "fb-token", "role": "startup"})
    assert first.status_code == 201

    second = await client.post("/api/auth/firebase", json={"idToken": "fb-token"})
    assert second.status_code == 200
    assert second.json()["user"]["id"] == first.json()["user"]["id"]


@pytest.mark.anyio
async def test_firebase_links_local_account(client: AsyncClient, fake_bridge):
    local = await register_user(client, "a@x.com", role="investor")
    fake_bridge.add("fb-token", uid="uid-a", email="a@x.com")

    response = await client.post("/api/auth/firebase", json={"idToken": "fb-token"})
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] == local["user"]["id"]
    assert user["provider"] == "federated"


@pytest.mark.anyio
async def test_firebase_unverified_email_cannot_take_over_local_account(client: AsyncClient, fake_bridge):
    local = await register_user(client, "victim@x.com", role="investor")
    fake_bridge.add("fb-token", uid="attacker-uid", email="victim@x.com", email_verified=False)

    response = await client.post("/api/auth/firebase", json={"idToken": "fb-token"})
    assert response.status_code == 403
    assert "token" not in response.json()

    me = await client.get("/api/auth/verify", headers=bearer(local["token"]))
    assert me.json()["user"]["provider"] == "local"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "token, status_code, error",
    [
        ("expired-token", 401, "federated_token_expired"),
        ("revoked-token", 401, "federated_token_revoked"),
        ("unknown-token", 401, "federated_token_invalid"),
        ("provider-down", 503, "provider_unavailable"),
    ],
)
async def test_firebase_token_failures(client: AsyncClient, token, status_code, error):
    response = await client.post("/api/auth/firebase", json={"idToken": token, "role": "startup"})
    assert response.status_code == status_code
    assert response.json()["error"] == error
