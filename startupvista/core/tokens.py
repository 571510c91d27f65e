"""
StartupVista - Session Token Codec
Signs and verifies the HS256 JWTs handed to clients after login.

Two kinds of token:
- access: authorizes individual requests (7 days by default)
- refresh: exchanged for a new access token (30 days, carries type=refresh)

verify() is the only trusted path. decode_unsafe() / is_expired() skip the
signature and must never feed an authorization decision.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import jwt

from startupvista.core.config import Settings
from startupvista.core.errors import (
    SigningError,
    TokenAudienceError,
    TokenExpiredError,
    TokenMalformedError,
    TokenWrongTypeError,
)
from startupvista.core.roles import AuthProvider, Role

logger = logging.getLogger(__name__)


ISSUER = "startupvista"
AUDIENCE = "startupvista-users"
ALGORITHM = "HS256"
REFRESH_TYPE = "refresh"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class IdentityClaims:
    """Optional identity facts embedded in a token at issue time."""
    email: Optional[str] = None
    role: Optional[Role] = None
    provider: Optional[AuthProvider] = None
    federated_subject_id: Optional[str] = None
    is_verified: Optional[bool] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.email is not None:
            payload["email"] = self.email
        if self.role is not None:
            payload["role"] = self.role.value
        if self.provider is not None:
            payload["provider"] = self.provider.value
        if self.federated_subject_id is not None:
            payload["federatedSubjectId"] = self.federated_subject_id
        if self.is_verified is not None:
            payload["isVerified"] = self.is_verified
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IdentityClaims":
        role = payload.get("role")
        provider = payload.get("provider")
        try:
            return cls(
                email=payload.get("email"),
                role=Role(role) if role is not None else None,
                provider=AuthProvider(provider) if provider is not None else None,
                federated_subject_id=payload.get("federatedSubjectId"),
                is_verified=payload.get("isVerified"),
            )
        except ValueError as exc:
            # Signed, but carries a role/provider we do not know
            raise TokenMalformedError() from exc


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""
    subject_id: str
    issued_at: datetime
    expires_at: datetime
    issuer: str = ISSUER
    audience: str = AUDIENCE
    type: Optional[str] = None
    token_id: Optional[str] = None
    identity: IdentityClaims = field(default_factory=IdentityClaims)

    @property
    def is_refresh(self) -> bool:
        return self.type == REFRESH_TYPE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """
    Encodes and verifies session tokens.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        token = codec.issue_access_token(user.id, IdentityClaims(role=Role.STARTUP))
        claims = codec.verify_access_token(token)
    """

    def __init__(
        self,
        secret: Optional[str],
        refresh_secret: Optional[str] = None,
        access_ttl: timedelta = timedelta(days=7),
        refresh_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._secret = secret or None
        self._refresh_secret = refresh_secret or None
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> "TokenCodec":
        return cls(
            secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret,
            access_ttl=timedelta(days=settings.access_token_expire_days),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    def _secret_for(self, kind: TokenKind) -> str:
        if kind is TokenKind.REFRESH and self._refresh_secret:
            return self._refresh_secret
        if not self._secret:
            raise SigningError("JWT_SECRET is not configured")
        return self._secret

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    def issue(
        self,
        subject_id: str,
        claims: Optional[IdentityClaims] = None,
        kind: TokenKind = TokenKind.ACCESS,
    ) -> str:
        """Sign a token for subject_id. Raises SigningError without a secret."""
        secret = self._secret_for(kind)
        issued_at = self.now()
        ttl = self.refresh_ttl if kind is TokenKind.REFRESH else self.access_ttl

        payload: dict[str, Any] = {
            "sub": str(subject_id),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
            "iss": ISSUER,
            "aud": AUDIENCE,
            # Unique per token, so two logins in the same second differ
            "jti": secrets.token_hex(8),
        }
        if kind is TokenKind.REFRESH:
            payload["type"] = REFRESH_TYPE
        if claims is not None:
            payload.update(claims.to_payload())

        try:
            return jwt.encode(payload, secret, algorithm=ALGORITHM)
        except (TypeError, ValueError) as exc:
            logger.error("Token signing failed: %s", exc)
            raise SigningError("Token generation failed") from exc

    def issue_access_token(self, subject_id: str, claims: Optional[IdentityClaims] = None) -> str:
        return self.issue(subject_id, claims, TokenKind.ACCESS)

    def issue_refresh_token(self, subject_id: str) -> str:
        return self.issue(subject_id, None, TokenKind.REFRESH)

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    def verify(self, token: str, expected_kind: TokenKind = TokenKind.ACCESS) -> TokenClaims:
        """
        Verify signature, issuer, audience and expiry.

        Raises:
            TokenMalformedError: not a JWT, bad signature, missing claims
            TokenAudienceError: wrong issuer or audience
            TokenExpiredError: clock is at or past exp
            TokenWrongTypeError: token kind differs from expected_kind
        """
        if not token or not isinstance(token, str):
            raise TokenMalformedError()

        secret = self._secret_for(expected_kind)

        # Reject the other kind up front; a mismatched secret would otherwise
        # surface as a signature error.
        unverified = self.decode_unsafe(token)
        if unverified is None:
            raise TokenMalformedError()
        if self._kind_of(unverified) is not expected_kind:
            raise TokenWrongTypeError()

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=AUDIENCE,
                issuer=ISSUER,
                # Expiry is checked against our own clock below
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except (jwt.InvalidAudienceError, jwt.InvalidIssuerError) as exc:
            raise TokenAudienceError() from exc
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except jwt.InvalidTokenError as exc:
            raise TokenMalformedError() from exc

        try:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError) as exc:
            raise TokenMalformedError() from exc

        if self.now() >= expires_at:
            raise TokenExpiredError()

        if self._kind_of(payload) is not expected_kind:
            raise TokenWrongTypeError()

        return TokenClaims(
            subject_id=str(payload["sub"]),
            issued_at=issued_at,
            expires_at=expires_at,
            issuer=payload.get("iss", ISSUER),
            audience=payload.get("aud", AUDIENCE),
            type=payload.get("type"),
            token_id=payload.get("jti"),
            identity=IdentityClaims.from_payload(payload),
        )

    @staticmethod
    def _kind_of(payload: dict[str, Any]) -> TokenKind:
        return TokenKind.REFRESH if payload.get("type") == REFRESH_TYPE else TokenKind.ACCESS

    def verify_access_token(self, token: str) -> TokenClaims:
        return self.verify(token, TokenKind.ACCESS)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        return self.verify(token, TokenKind.REFRESH)

    # -------------------------------------------------------------------------
    # Unverified introspection
    # -------------------------------------------------------------------------

    @staticmethod
    def decode_unsafe(token: Optional[str]) -> Optional[dict[str, Any]]:
        """Read claims without checking the signature. None if unreadable."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
        return payload if isinstance(payload, dict) else None

    def is_expired(self, token: Optional[str]) -> bool:
        """True when exp is missing, unreadable or in the past."""
        payload = self.decode_unsafe(token)
        if not payload or "exp" not in payload:
            return True
        try:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return True
        return expires_at <= self.now()

    def unverified_subject(self, token: Optional[str]) -> Optional[str]:
        payload = self.decode_unsafe(token)
        if not payload:
            return None
        subject = payload.get("sub")
        return str(subject) if subject is not None else None
