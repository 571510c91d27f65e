"""
StartupVista - Security Module
Authentication gate and role guard for FastAPI routes.

Request pipeline (require_user):
1. Take the token from ``Authorization: Bearer <token>``, else the ``token`` cookie
2. No token -> 401
3. Verify as an access token -> 401 "Session expired" / "Invalid token"
4. Re-check expiry against the codec clock -> 401
5. Load the identity (password hash excluded) -> 401 if gone
6. Inactive -> 403 "Account deactivated"
7. Unverified while verification is required -> 403 requires_verification
8. Attach identity and raw token to request.state

optional_user runs the same pipeline and yields None instead of failing.
require_role(...) layers a role check on top of require_user.
"""

import logging
from typing import Iterable, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.config import Settings, get_settings
from startupvista.core.database import get_db
from startupvista.core.errors import (
    AuthenticationError,
    AuthorizationError,
    StartupVistaError,
    TokenExpiredError,
)
from startupvista.core.firebase import IdentityProviderBridge
from startupvista.core.roles import Role, role_values
from startupvista.core.tokens import TokenCodec
from startupvista.models.models import User
from startupvista.services.credential_store import CredentialStore
from startupvista.services.session_issuer import SessionIssuer

logger = logging.getLogger(__name__)


# =============================================================================
# Shared Components (built once in create_app, held on app.state)
# =============================================================================

def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_identity_bridge(request: Request) -> IdentityProviderBridge:
    return request.app.state.identity_bridge


def get_credential_store(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CredentialStore:
    return CredentialStore(db, timeout=settings.store_timeout_seconds)


def get_session_issuer(
    store: CredentialStore = Depends(get_credential_store),
    codec: TokenCodec = Depends(get_token_codec),
    bridge: IdentityProviderBridge = Depends(get_identity_bridge),
    settings: Settings = Depends(get_settings),
) -> SessionIssuer:
    return SessionIssuer(store, codec, bridge, bcrypt_rounds=settings.bcrypt_rounds)


# =============================================================================
# Request Token Extraction
# =============================================================================

def get_token_from_request(request: Request, cookie_name: str = "token") -> Optional[str]:
    """
    Extract the session token.

    Priority:
    1. Authorization: Bearer <token>
    2. token cookie (web clients)
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    token = request.cookies.get(cookie_name)
    if token:
        return token

    return None


# =============================================================================
# Authentication Gate
# =============================================================================

async def authenticate_request(
    request: Request,
    codec: TokenCodec,
    store: CredentialStore,
    settings: Settings,
) -> User:
    """Run the gate pipeline. Raises on any failure; never returns None."""
    token = get_token_from_request(request, settings.auth_cookie_name)
    if not token:
        raise AuthenticationError()

    claims = codec.verify_access_token(token)

    if claims.expires_at <= codec.now():
        raise TokenExpiredError()

    user = await store.find_by_id(claims.subject_id)
    if user is None:
        raise AuthenticationError("User not found. Token is invalid.")

    if not user.is_active:
        raise AuthorizationError("Account deactivated. Please contact support.")

    needs_verification = settings.require_verified_email or user.require_email_verification
    if needs_verification and not user.is_verified:
        raise AuthorizationError(
            "Please verify your email address to continue",
            details=[{"requires_verification": True}],
        )

    request.state.user = user
    request.state.token = token
    return user


async def require_user(
    request: Request,
    codec: TokenCodec = Depends(get_token_codec),
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Require an authenticated, active identity.

    Usage:
        @router.get("/me")
        async def me(user: User = Depends(require_user)):
            ...
    """
    try:
        return await authenticate_request(request, codec, store, settings)
    except StartupVistaError as exc:
        logger.info(
            "Authentication denied on %s: %s",
            request.url.path,
            exc.error_code,
            extra={"path": request.url.path, "error_code": exc.error_code},
        )
        raise


async def optional_user(
    request: Request,
    codec: TokenCodec = Depends(get_token_codec),
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """
    Identity if the caller happens to be authenticated, else None.
    For public endpoints that personalise their output.
    """
    if not get_token_from_request(request, settings.auth_cookie_name):
        return None
    try:
        return await authenticate_request(request, codec, store, settings)
    except StartupVistaError as exc:
        logger.debug("Optional auth fell back to anonymous: %s", exc.error_code)
        return None


# =============================================================================
# Authorization Guard
# =============================================================================

def check_role(user: Optional[User], permitted: Iterable[Role]) -> User:
    """Pure role check. Raises 401 without a user, 403 for a role outside permitted."""
    permitted = tuple(permitted)
    if user is None:
        raise AuthenticationError()
    if user.role not in permitted:
        raise AuthorizationError(
            f"Access restricted to: {', '.join(role_values(permitted))}",
            details=[{"permitted_roles": role_values(permitted)}],
        )
    return user


def require_role(*roles: Role):
    """
    Dependency factory: require specific role(s).

    Usage:
        @router.post("/posts")
        async def create(user: User = Depends(require_role(Role.STARTUP, Role.CONSULTANT))):
            ...
    """
    async def check_user_role(user: User = Depends(require_user)) -> User:
        return check_role(user, roles)

    return check_user_role


__all__ = [
    "get_token_codec",
    "get_identity_bridge",
    "get_credential_store",
    "get_session_issuer",
    "get_token_from_request",
    "authenticate_request",
    "require_user",
    "optional_user",
    "check_role",
    "require_role",
]
