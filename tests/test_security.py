"""
StartupVista - Authentication gate and role guard tests.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from conftest import bearer, register_user
from startupvista.core.config import get_settings
from startupvista.core.database import get_db_session
from startupvista.core.errors import AuthenticationError, AuthorizationError
from startupvista.core.roles import Role
from startupvista.core.security import check_role
from startupvista.core.tokens import TokenCodec
from startupvista.models.models import User


async def set_user_fields(user_id: str, **values) -> None:
    async with get_db_session() as session:
        await session.execute(update(User).where(User.id == user_id).values(**values))


# =============================================================================
# Authentication Gate
# =============================================================================

@pytest.mark.anyio
async def test_missing_token_is_unauthenticated(client: AsyncClient):
    response = await client.get("/api/auth/verify")
    assert response.status_code == 401
    assert response.json()["error"] == "authentication_required"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.anyio
async def test_garbage_token_is_invalid(client: AsyncClient):
    response = await client.get("/api/auth/verify", headers=bearer("not-a-token"))
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


@pytest.mark.anyio
async def test_expired_token(client: AsyncClient):
    user = (await register_user(client, "a@x.com"))["user"]
    past = datetime.now(timezone.utc) - timedelta(days=8)
    old_codec = TokenCodec(get_settings().jwt_secret, clock=lambda: past)

    response = await client.get(
        "/api/auth/verify", headers=bearer(old_codec.issue_access_token(user["id"]))
    )
    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "token_expired"
    assert body["message"] == "Session expired. Please log in again."


@pytest.mark.anyio
async def test_refresh_token_not_accepted_as_session(client: AsyncClient):
    data = await register_user(client, "a@x.com")
    response = await client.get("/api/auth/verify", headers=bearer(data["refresh_token"]))
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token_type"


@pytest.mark.anyio
async def test_token_for_unknown_identity(client: AsyncClient, app):
    token = app.state.token_codec.issue_access_token("no-such-user")
    response = await client.get("/api/auth/verify", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["message"] == "User not found. Token is invalid."


@pytest.mark.anyio
async def test_inactive_identity_is_forbidden(client: AsyncClient):
    data = await register_user(client, "a@x.com")
    await set_user_fields(data["user"]["id"], is_active=False)

    response = await client.get("/api/auth/verify", headers=bearer(data["token"]))
    assert response.status_code == 403
    assert response.json()["message"] == "Account deactivated. Please contact support."


@pytest.mark.anyio
async def test_unverified_identity_when_verification_required(client: AsyncClient):
    data = await register_user(client, "a@x.com")
    await set_user_fields(data["user"]["id"], require_email_verification=True)

    response = await client.get("/api/auth/verify", headers=bearer(data["token"]))
    assert response.status_code == 403
    assert response.json()["details"] == [{"requires_verification": True}]

    await set_user_fields(data["user"]["id"], is_verified=True)
    response = await client.get("/api/auth/verify", headers=bearer(data["token"]))
    assert response.status_code == 200


@pytest.mark.anyio
async def test_cookie_token_accepted(client: AsyncClient):
    data = await register_user(client, "a@x.com")
    response = await client.get("/api/auth/verify", headers={"Cookie": f"token={data['token']}"})
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "a@x.com"


@pytest.mark.anyio
async def test_bearer_header_wins_over_cookie(client: AsyncClient):
    data = await register_user(client, "a@x.com")
    response = await client.get(
        "/api/auth/verify",
        headers={**bearer(data["token"]), "Cookie": "token=garbage"},
    )
    assert response.status_code == 200


@pytest.mark.anyio
async def test_optional_auth_falls_back_to_anonymous(client: AsyncClient):
    response = await client.get("/api/posts/", headers=bearer("not-a-token"))
    assert response.status_code == 200
    assert response.json() == []


# =============================================================================
# Authorization Guard
# =============================================================================

def test_check_role_allows_permitted():
    user = SimpleNamespace(role=Role.INVESTOR)
    assert check_role(user, [Role.INVESTOR]) is user


def test_check_role_denies_other_roles_listing_permitted():
    user = SimpleNamespace(role=Role.STARTUP)
    with pytest.raises(AuthorizationError) as exc_info:
        check_role(user, [Role.INVESTOR])
    assert exc_info.value.status_code == 403
    assert "investor" in exc_info.value.message
    assert exc_info.value.details == [{"permitted_roles": ["investor"]}]


def test_check_role_without_identity():
    with pytest.raises(AuthenticationError):
        check_role(None, [Role.INVESTOR])


@pytest.mark.anyio
async def test_role_guard_over_http(client: AsyncClient):
    startup = await register_user(client, "s@x.com", role="startup")
    investor = await register_user(client, "i@x.com", role="investor")

    denied = await client.get("/api/investors/profile", headers=bearer(startup["token"]))
    assert denied.status_code == 403
    assert denied.json()["details"] == [{"permitted_roles": ["investor"]}]

    allowed = await client.get("/api/investors/profile", headers=bearer(investor["token"]))
    assert allowed.status_code == 200
    assert allowed.json() is None
