"""
Standardized Error Handling for StartupVista API.

Provides consistent error responses across all endpoints.
All errors return JSON with standard structure.
"""

import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str  # Error code (e.g., "validation_error", "not_found")
    message: str  # Human-readable message
    details: list[dict] | None = None  # Additional details
    request_id: str | None = None  # For tracking


# =============================================================================
# Custom Exceptions
# =============================================================================

class StartupVistaError(Exception):
    """Base exception for StartupVista-specific errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "startupvista_error",
        status_code: int = 500,
        details: list[dict] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundError(StartupVistaError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} '{identifier}' not found"
        super().__init__(
            message=message,
            error_code="not_found",
            status_code=404,
        )


class AuthenticationError(StartupVistaError):
    """Authentication failed (no usable identity on the request)."""

    def __init__(
        self,
        message: str = "Authentication required. Please log in.",
        error_code: str = "authentication_required",
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=401,
        )


class AuthorizationError(StartupVistaError):
    """Authorization failed (authenticated but not permitted)."""

    def __init__(
        self,
        message: str = "Permission denied",
        details: list[dict] | None = None,
    ):
        super().__init__(
            message=message,
            error_code="permission_denied",
            status_code=403,
            details=details,
        )


class ConflictError(StartupVistaError):
    """Resource conflict (e.g., duplicate)."""

    def __init__(self, message: str = "Resource conflict"):
        super().__init__(
            message=message,
            error_code="conflict",
            status_code=409,
        )


class ServiceUnavailableError(StartupVistaError):
    """External service unavailable."""

    def __init__(self, service: str = "External service", error_code: str = "service_unavailable"):
        super().__init__(
            message=f"{service} is temporarily unavailable",
            error_code=error_code,
            status_code=503,
        )


# =============================================================================
# Identity & Session Errors
# =============================================================================

class DuplicateEmailError(ConflictError):
    """An identity with this email already exists."""

    def __init__(self, message: str = "User already exists"):
        super().__init__(message)
        self.error_code = "duplicate_email"


class InvalidCredentialsError(AuthenticationError):
    """
    Login failed. Raised identically for unknown email, federated-only
    accounts and wrong passwords.
    """

    def __init__(self):
        super().__init__("Invalid credentials", error_code="invalid_credentials")


class RoleRequiredError(StartupVistaError):
    """A new federated identity needs a role before it can be created."""

    def __init__(self, profile: dict | None = None):
        super().__init__(
            message="Role selection required to complete sign-up",
            error_code="role_required",
            status_code=400,
            details=[profile] if profile else None,
        )


class SigningError(StartupVistaError):
    """Token secret is not configured."""

    def __init__(self, message: str = "Token signing is not configured"):
        super().__init__(
            message=message,
            error_code="signing_error",
            status_code=500,
        )


class TokenError(AuthenticationError):
    """Base class for session token verification failures."""

    def __init__(self, message: str = "Invalid token", error_code: str = "invalid_token"):
        super().__init__(message, error_code=error_code)


class TokenExpiredError(TokenError):
    def __init__(self):
        super().__init__("Session expired. Please log in again.", error_code="token_expired")


class TokenMalformedError(TokenError):
    def __init__(self):
        super().__init__("Invalid token", error_code="invalid_token")


class TokenAudienceError(TokenError):
    """Token was issued by or for someone else."""

    def __init__(self):
        super().__init__("Invalid token", error_code="invalid_token_audience")


class TokenWrongTypeError(TokenError):
    def __init__(self):
        super().__init__("Invalid token type", error_code="invalid_token_type")


class FederatedTokenError(AuthenticationError):
    """Base class for identity provider token failures."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message, error_code=error_code)


class FederatedTokenExpiredError(FederatedTokenError):
    def __init__(self):
        super().__init__("Firebase token has expired", "federated_token_expired")


class FederatedTokenRevokedError(FederatedTokenError):
    def __init__(self):
        super().__init__("Firebase token has been revoked", "federated_token_revoked")


class FederatedTokenInvalidError(FederatedTokenError):
    def __init__(self):
        super().__init__("Invalid Firebase token", "federated_token_invalid")


class ProviderUnavailableError(ServiceUnavailableError):
    """Identity provider not initialized, unreachable or timed out."""

    def __init__(self, service: str = "Identity provider"):
        super().__init__(service, error_code="provider_unavailable")


class StoreError(ServiceUnavailableError):
    """Credential store read/write failed or timed out."""

    def __init__(self, service: str = "Credential store"):
        super().__init__(service, error_code="store_error")


# =============================================================================
# Exception Handlers
# =============================================================================

def get_request_id(request: Request) -> Optional[str]:
    """Extract request ID from request."""
    return request.headers.get("X-Request-Id")


async def startupvista_error_handler(request: Request, exc: StartupVistaError) -> JSONResponse:
    """Handle StartupVista-specific exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "StartupVistaError: %s - %s",
        exc.error_code,
        exc.message,
        extra={"error_code": exc.error_code, "path": request.url.path}
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
            "request_id": get_request_id(request),
        },
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTP exceptions."""
    # Map status codes to error codes
    error_codes = {
        400: "bad_request",
        401: "authentication_required",
        403: "permission_denied",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        429: "rate_limit_exceeded",
        500: "internal_error",
        502: "bad_gateway",
        503: "service_unavailable",
    }

    error_code = error_codes.get(exc.status_code, "error")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": error_code,
            "message": str(exc.detail) if exc.detail else f"HTTP {exc.status_code}",
            "request_id": get_request_id(request),
        },
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    details = []
    for error in exc.errors():
        details.append({
            "loc": [str(part) for part in error.get("loc", [])],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        })

    logger.info(
        "Validation error on %s: %d issues",
        request.url.path,
        len(details),
    )

    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": details,
            "request_id": get_request_id(request),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "Unhandled exception on %s: %s",
        request.url.path,
        str(exc),
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        }
    )

    # Don't expose internal details in production
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "request_id": get_request_id(request),
        },
    )


# =============================================================================
# Setup Function
# =============================================================================

def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Call during app initialization:
        setup_exception_handlers(app)
    """
    app.add_exception_handler(StartupVistaError, startupvista_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Base classes
    "StartupVistaError",
    "ErrorResponse",
    # Generic exceptions
    "NotFoundError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "ServiceUnavailableError",
    # Identity & session exceptions
    "DuplicateEmailError",
    "InvalidCredentialsError",
    "RoleRequiredError",
    "SigningError",
    "TokenError",
    "TokenExpiredError",
    "TokenMalformedError",
    "TokenAudienceError",
    "TokenWrongTypeError",
    "FederatedTokenError",
    "FederatedTokenExpiredError",
    "FederatedTokenRevokedError",
    "FederatedTokenInvalidError",
    "ProviderUnavailableError",
    "StoreError",
    # Setup
    "setup_exception_handlers",
]
