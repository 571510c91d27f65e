"""
StartupVista - Shared test fixtures.

Environment is configured before the application is imported so the cached
settings pick it up.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_startupvista.db"
os.environ["JWT_SECRET"] = "test-secret-do-not-use-in-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("JWT_REFRESH_SECRET", None)
os.environ.pop("REQUIRE_VERIFIED_EMAIL", None)

from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from startupvista.core.database import close_db, drop_db, get_db_session, init_db
from startupvista.core.errors import (
    FederatedTokenExpiredError,
    FederatedTokenInvalidError,
    FederatedTokenRevokedError,
    ProviderUnavailableError,
)
from startupvista.core.firebase import FederatedClaims
from startupvista.main import app as fastapi_app


class FakeFirebaseBridge:
    """
    Stand-in for FirebaseBridge: maps raw ID tokens to claims.
    A few reserved tokens raise the matching provider errors.
    """

    FAILURES = {
        "expired-token": FederatedTokenExpiredError,
        "revoked-token": FederatedTokenRevokedError,
        "provider-down": ProviderUnavailableError,
    }

    def __init__(self):
        self.tokens: dict[str, FederatedClaims] = {}
        self.calls = 0
        self.initialized = True

    def add(
        self,
        raw_token: str,
        uid: str,
        email: Optional[str],
        name: str = "Fed User",
        email_verified: bool = True,
        picture: Optional[str] = None,
    ) -> FederatedClaims:
        claims = FederatedClaims(
            subject_id=uid,
            email=email,
            display_name=name,
            avatar_url=picture,
            email_verified=email_verified,
            auth_time=None,
            issued_at=None,
            expires_at=None,
        )
        self.tokens[raw_token] = claims
        return claims

    async def verify_federated_token(self, raw_token: str) -> FederatedClaims:
        self.calls += 1
        if raw_token in self.FAILURES:
            raise self.FAILURES[raw_token]()
        try:
            return self.tokens[raw_token]
        except KeyError:
            raise FederatedTokenInvalidError() from None

    def close(self) -> None:
        pass


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def database():
    """Fresh schema per test."""
    await drop_db()
    await init_db()
    yield
    await close_db()


@pytest.fixture
async def db_session(database):
    async with get_db_session() as session:
        yield session


@pytest.fixture
def fake_bridge():
    return FakeFirebaseBridge()


@pytest.fixture
def app(fake_bridge):
    original = fastapi_app.state.identity_bridge
    fastapi_app.state.identity_bridge = fake_bridge
    yield fastapi_app
    fastapi_app.state.identity_bridge = original


@pytest.fixture
async def client(app, database):
    """Create test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Helpers
# =============================================================================

async def register_user(
    client: AsyncClient,
    email: str,
    role: str = "startup",
    password: str = "secret1",
    name: str = "Test User",
) -> dict:
    response = await client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "role": role},
    )
    assert response.status_code == 201, response.text
    # Keep the client stateless; tests pass tokens explicitly
    client.cookies.clear()
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
