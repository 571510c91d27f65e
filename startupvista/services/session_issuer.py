"""
Session Issuer
Turns credentials (password or Firebase ID token) into session tokens.

Account linking policy for Firebase logins, in order:
1. An identity matching the Firebase UID is reused.
2. Otherwise an identity matching the token's email is reused, but only
   when Firebase reports that email as verified; an unverified match is
   refused. A local-only identity gets the UID attached and becomes
   federated (one-way).
3. Otherwise a role is required to create a new identity; without one
   RoleRequiredError is raised and nothing is written.

An identity is only marked verified when its stored email is the address
Firebase verified.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from startupvista.core.errors import (
    AuthenticationError,
    AuthorizationError,
    DuplicateEmailError,
    FederatedTokenInvalidError,
    InvalidCredentialsError,
    RoleRequiredError,
)
from startupvista.core.firebase import FederatedClaims, IdentityProviderBridge
from startupvista.core.passwords import burn_password_check, hash_password, verify_password
from startupvista.core.roles import AuthProvider, Role
from startupvista.core.tokens import IdentityClaims, TokenCodec
from startupvista.models.models import User
from startupvista.services.credential_store import CredentialStore, normalize_email

logger = logging.getLogger(__name__)


def public_user_view(user: User) -> dict[str, Any]:
    """Everything a client may see about an identity. Never the password hash."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "is_verified": user.is_verified,
        "avatar_url": user.avatar_url,
        "provider": user.provider.value,
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _same_email(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a and b) and normalize_email(a) == normalize_email(b)


def identity_claims(user: User) -> IdentityClaims:
    return IdentityClaims(
        email=user.email,
        role=user.role,
        provider=user.provider,
        federated_subject_id=user.firebase_uid,
        is_verified=user.is_verified,
    )


@dataclass
class AuthResult:
    """Outcome of a successful login, registration or refresh."""
    token: str
    refresh_token: Optional[str]
    user: dict[str, Any]
    created: bool = False


class SessionIssuer:
    """
    Orchestrates the credential store, the Firebase bridge and the token codec.

    Usage:
        issuer = SessionIssuer(CredentialStore(db), codec, bridge)
        result = await issuer.login_local("a@x.com", "secret1")
    """

    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        bridge: IdentityProviderBridge,
        bcrypt_rounds: int = 12,
    ):
        self.store = store
        self.codec = codec
        self.bridge = bridge
        self.bcrypt_rounds = bcrypt_rounds

    def issue_for(self, user: User, created: bool = False) -> AuthResult:
        return AuthResult(
            token=self.codec.issue_access_token(user.id, identity_claims(user)),
            refresh_token=self.codec.issue_refresh_token(user.id),
            user=public_user_view(user),
            created=created,
        )

    # -------------------------------------------------------------------------
    # Local accounts
    # -------------------------------------------------------------------------

    async def register_local(self, name: str, email: str, password: str, role: Role | str) -> AuthResult:
        parsed_role = Role.parse(role)
        if parsed_role is None:
            raise RoleRequiredError()

        email = normalize_email(email)
        if await self.store.find_by_email(email) is not None:
            raise DuplicateEmailError()

        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        user = await self.store.create(
            name=name.strip(),
            email=email,
            password_hash=password_hash,
            role=parsed_role,
            provider=AuthProvider.LOCAL,
            is_verified=False,
            is_active=True,
        )
        logger.info("Registered local user %s (role=%s)", user.id, parsed_role.value)
        return self.issue_for(user, created=True)

    async def login_local(self, email: str, password: str) -> AuthResult:
        user = await self.store.find_by_email(email)

        if user is None or not user.can_login_with_password():
            await asyncio.to_thread(burn_password_check, password, self.bcrypt_rounds)
            logger.info("Local login rejected: no password identity")
            raise InvalidCredentialsError()

        matches = await asyncio.to_thread(verify_password, password, user.password_hash)
        if not matches:
            logger.info("Local login rejected: wrong password for %s", user.id)
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AuthorizationError("Account deactivated. Please contact support.")

        return self.issue_for(user)

    # -------------------------------------------------------------------------
    # Firebase accounts
    # -------------------------------------------------------------------------

    async def _find_federated_match(self, claims: FederatedClaims) -> Optional[User]:
        user = await self.store.find_by_federated_subject(claims.subject_id)
        if user is not None or not claims.email:
            return user

        user = await self.store.find_by_email(claims.email)
        if user is not None and not claims.email_verified:
            # Linking by email requires the provider to vouch for the address
            logger.warning("Refused to link unverified Firebase email to user %s", user.id)
            raise AuthorizationError(
                "Verify your email address with the sign-in provider before linking this account",
                details=[{"requires_verification": True}],
            )
        return user

    async def authenticate_federated(self, raw_token: str, role: Role | str | None = None) -> AuthResult:
        claims = await self.bridge.verify_federated_token(raw_token)

        user = await self._find_federated_match(claims)
        if user is not None:
            if not user.is_active:
                raise AuthorizationError("Account deactivated. Please contact support.")

            if claims.avatar_url:
                user.avatar_url = claims.avatar_url
            user.is_verified = claims.email_verified and _same_email(user.email, claims.email)
            if user.firebase_uid is None:
                user.firebase_uid = claims.subject_id
                user.provider = AuthProvider.FEDERATED
                logger.info("Linked Firebase uid to existing local user %s", user.id)
            await self.store.save(user)
            return self.issue_for(user)

        parsed_role = Role.parse(role)
        if parsed_role is None:
            logger.info("New Firebase identity needs a role before sign-up")
            raise RoleRequiredError(claims.display_data())

        user = await self._create_federated(claims, parsed_role, claims.display_name, claims.email)
        return self.issue_for(user, created=True)

    async def complete_federated_signup(
        self,
        raw_token: str,
        role: Role | str,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> AuthResult:
        claims = await self.bridge.verify_federated_token(raw_token)

        parsed_role = Role.parse(role)
        if parsed_role is None:
            raise RoleRequiredError(claims.display_data())

        user = await self._create_federated(
            claims,
            parsed_role,
            (name or "").strip() or claims.display_name,
            email or claims.email,
        )
        return self.issue_for(user, created=True)

    async def _create_federated(
        self,
        claims: FederatedClaims,
        role: Role,
        name: str,
        email: Optional[str],
    ) -> User:
        if not email:
            # Every identity needs a unique email; Firebase phone-only accounts have none
            raise FederatedTokenInvalidError()

        user = await self.store.create(
            name=name,
            email=email,
            password_hash=None,
            role=role,
            provider=AuthProvider.FEDERATED,
            firebase_uid=claims.subject_id,
            avatar_url=claims.avatar_url,
            is_verified=claims.email_verified and _same_email(email, claims.email),
            is_active=True,
        )
        logger.info("Created Firebase user %s (role=%s)", user.id, role.value)
        return user

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def refresh(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new access token."""
        claims = self.codec.verify_refresh_token(refresh_token)

        user = await self.store.find_by_id(claims.subject_id)
        if user is None:
            raise AuthenticationError("User not found. Token is invalid.")
        if not user.is_active:
            raise AuthorizationError("Account deactivated. Please contact support.")

        return AuthResult(
            token=self.codec.issue_access_token(user.id, identity_claims(user)),
            refresh_token=None,
            user=public_user_view(user),
        )
