"""
Firebase Authentication bridge.

Verifies Firebase ID tokens issued to browser/mobile clients and normalizes
them into FederatedClaims. One FirebaseBridge is built by the application
factory and shared through ``app.state``:

    bridge = FirebaseBridge.from_settings(settings)
    claims = await bridge.verify_federated_token(id_token)
"""

import asyncio
import base64
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import firebase_admin  # type: ignore
from firebase_admin import auth, credentials  # type: ignore
from firebase_admin.exceptions import FirebaseError  # type: ignore

from startupvista.core.config import Settings
from startupvista.core.errors import (
    FederatedTokenExpiredError,
    FederatedTokenInvalidError,
    FederatedTokenRevokedError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FederatedClaims:
    """Identity asserted by a verified Firebase ID token."""
    subject_id: str
    email: Optional[str]
    display_name: str
    avatar_url: Optional[str]
    email_verified: bool
    auth_time: Optional[datetime]
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]

    def display_data(self) -> dict[str, Any]:
        """Fields a client needs to prompt for role selection."""
        return {
            "firebase_uid": self.subject_id,
            "name": self.display_name,
            "email": self.email,
            "avatar_url": self.avatar_url,
            "email_verified": self.email_verified,
        }


class IdentityProviderBridge(Protocol):
    """What the session issuer needs from a federated identity provider."""

    async def verify_federated_token(self, raw_token: str) -> FederatedClaims:
        ...


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def normalize_claims(decoded: dict[str, Any]) -> FederatedClaims:
    """Map Firebase's decoded token fields onto FederatedClaims."""
    subject_id = decoded.get("uid") or decoded.get("sub") or decoded.get("user_id")
    if not subject_id:
        raise FederatedTokenInvalidError()

    email = decoded.get("email")
    if email:
        email = email.strip().lower()
    display_name = decoded.get("name") or (email.split("@")[0] if email else "") or "User"

    return FederatedClaims(
        subject_id=str(subject_id),
        email=email or None,
        display_name=display_name,
        avatar_url=decoded.get("picture"),
        email_verified=bool(decoded.get("email_verified", False)),
        auth_time=_timestamp(decoded.get("auth_time")),
        issued_at=_timestamp(decoded.get("iat")),
        expires_at=_timestamp(decoded.get("exp")),
    )


class FirebaseBridge:
    """
    Firebase Admin SDK client.

    The SDK app is initialized lazily, exactly once per bridge, under a lock.
    Each bridge owns a named app so several bridges (tests, workers) never
    collide on the SDK's default app.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials_path: Optional[str] = None,
        credentials_b64: Optional[str] = None,
        check_revoked: bool = True,
        timeout: float = 10.0,
    ):
        self.project_id = project_id
        self.credentials_path = credentials_path
        self.credentials_b64 = credentials_b64
        self.check_revoked = check_revoked
        self.timeout = timeout
        self._app: Optional[firebase_admin.App] = None
        self._app_name = f"startupvista-{uuid.uuid4().hex[:8]}"
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseBridge":
        return cls(
            project_id=settings.firebase_project_id,
            credentials_path=settings.firebase_credentials_path,
            credentials_b64=settings.firebase_credentials_b64,
            check_revoked=settings.firebase_check_revoked,
            timeout=settings.firebase_timeout_seconds,
        )

    @property
    def initialized(self) -> bool:
        return self._app is not None

    def _credentials(self) -> credentials.Base:
        # Explicit file -> base64 JSON (container secrets) -> ADC (Cloud Run)
        if self.credentials_path:
            return credentials.Certificate(self.credentials_path)
        if self.credentials_b64:
            info = json.loads(base64.b64decode(self.credentials_b64).decode("utf-8"))
            return credentials.Certificate(info)
        return credentials.ApplicationDefault()

    def initialize(self) -> firebase_admin.App:
        """Initialize the SDK app once. Raises ProviderUnavailableError on failure."""
        if self._app is not None:
            return self._app
        with self._lock:
            if self._app is None:
                options = {"projectId": self.project_id} if self.project_id else None
                try:
                    app = firebase_admin.initialize_app(
                        self._credentials(), options, name=self._app_name
                    )
                except (ValueError, OSError, FirebaseError) as exc:
                    logger.error("Firebase initialization failed: %s", exc)
                    raise ProviderUnavailableError("Firebase") from exc
                logger.info("Firebase initialized (app=%s)", self._app_name)
                self._app = app
        return self._app

    def _verify_sync(self, raw_token: str) -> dict[str, Any]:
        app = self.initialize()
        return auth.verify_id_token(raw_token, app=app, check_revoked=self.check_revoked)

    async def verify_federated_token(self, raw_token: str) -> FederatedClaims:
        """
        Verify a Firebase ID token.

        Raises:
            FederatedTokenExpiredError, FederatedTokenRevokedError,
            FederatedTokenInvalidError, ProviderUnavailableError
        """
        if not raw_token:
            raise FederatedTokenInvalidError()

        try:
            decoded = await asyncio.wait_for(
                asyncio.to_thread(self._verify_sync, raw_token),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Firebase token verification timed out after %.1fs", self.timeout)
            raise ProviderUnavailableError("Firebase") from exc
        # Expired/Revoked subclass InvalidIdTokenError, so they come first
        except auth.ExpiredIdTokenError as exc:
            raise FederatedTokenExpiredError() from exc
        except (auth.RevokedIdTokenError, auth.UserDisabledError) as exc:
            raise FederatedTokenRevokedError() from exc
        except auth.InvalidIdTokenError as exc:
            raise FederatedTokenInvalidError() from exc
        except auth.CertificateFetchError as exc:
            logger.warning("Firebase certificate fetch failed: %s", exc)
            raise ProviderUnavailableError("Firebase") from exc
        except ValueError as exc:
            # Malformed token string or missing project id
            logger.info("Firebase rejected token: %s", exc)
            raise FederatedTokenInvalidError() from exc
        except FirebaseError as exc:
            logger.warning("Firebase error during verification: %s", exc)
            raise ProviderUnavailableError("Firebase") from exc

        claims = normalize_claims(decoded)
        logger.debug("Verified Firebase token for uid=%s", claims.subject_id)
        return claims

    def close(self) -> None:
        """Release the SDK app (shutdown / tests)."""
        with self._lock:
            if self._app is not None:
                firebase_admin.delete_app(self._app)
                self._app = None


__all__ = [
    "FederatedClaims",
    "IdentityProviderBridge",
    "FirebaseBridge",
    "normalize_claims",
]
