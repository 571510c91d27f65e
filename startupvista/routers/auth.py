"""
Authentication Router
Local (email + password) and Firebase sign-in, session verification and refresh.

Successful sign-ins return the session token in the body and also set it
as an HTTP-only cookie for browser clients.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from startupvista.core.config import Settings, get_settings
from startupvista.core.errors import AuthenticationError, ErrorResponse
from startupvista.core.rate_limit import limit_auth
from startupvista.core.security import get_session_issuer, require_user
from startupvista.models.models import User
from startupvista.services.session_issuer import AuthResult, SessionIssuer, public_user_view

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)


# =============================================================================
# Request / Response Schemas
# =============================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class FirebaseLoginRequest(BaseModel):
    """Firebase ID token from the client SDK; role only needed on first sign-in."""
    model_config = ConfigDict(populate_by_name=True)

    id_token: str = Field(..., min_length=1, alias="idToken")
    role: Optional[str] = None


class FirebaseCompleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_token: str = Field(..., min_length=1, alias="idToken")
    role: str
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class SessionResponse(BaseModel):
    token: str
    refresh_token: Optional[str] = None
    user: dict


# =============================================================================
# Helpers
# =============================================================================

def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.access_token_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.auth_cookie_secure or settings.is_production,
        samesite="lax",
    )


def _session_response(result: AuthResult, response: Response, settings: Settings) -> SessionResponse:
    _set_session_cookie(response, result.token, settings)
    return SessionResponse(
        token=result.token,
        refresh_token=result.refresh_token,
        user=result.user,
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/firebase/config")
async def firebase_config(settings: Settings = Depends(get_settings)):
    """Public Firebase web config for the client SDK."""
    return {
        "enabled": bool(settings.firebase_api_key and settings.firebase_project_id),
        "apiKey": settings.firebase_api_key,
        "authDomain": settings.firebase_auth_domain,
        "projectId": settings.firebase_project_id,
    }


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
@limit_auth
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
    settings: Settings = Depends(get_settings),
):
    """Create a local account and start a session."""
    result = await issuer.register_local(body.name, body.email, body.password, body.role)
    return _session_response(result, response, settings)


@router.post("/login", response_model=SessionResponse)
@limit_auth
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
    settings: Settings = Depends(get_settings),
):
    """Sign in with email and password."""
    result = await issuer.login_local(body.email, body.password)
    return _session_response(result, response, settings)


@router.post("/firebase", response_model=SessionResponse)
async def firebase_login(
    response: Response,
    body: FirebaseLoginRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
    settings: Settings = Depends(get_settings),
):
    """
    Sign in with a Firebase ID token.

    Existing accounts (same Firebase UID or same email) are signed in and
    linked. A new account needs ``role``; without it the response is 400
    ``role_required`` carrying the Firebase profile so the client can ask.
    """
    result = await issuer.authenticate_federated(body.id_token, body.role)
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return _session_response(result, response, settings)


@router.post("/firebase/complete", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def firebase_complete_signup(
    response: Response,
    body: FirebaseCompleteRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
    settings: Settings = Depends(get_settings),
):
    """Create the account for a new Firebase identity once the role is chosen."""
    result = await issuer.complete_federated_signup(
        body.id_token, body.role, name=body.name, email=body.email
    )
    return _session_response(result, response, settings)


@router.get("/verify")
async def verify(user: User = Depends(require_user)):
    """Return the identity behind the current session."""
    return {"user": public_user_view(user)}


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    """
    Clear the session cookie.
    Tokens are stateless; clients holding a bearer token simply discard it.
    """
    response.delete_cookie(settings.auth_cookie_name)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/refresh", response_model=SessionResponse)
@limit_auth
async def refresh(
    request: Request,
    response: Response,
    body: RefreshRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
    settings: Settings = Depends(get_settings),
):
    """Exchange a refresh token for a new access token."""
    if not body.refresh_token:
        raise AuthenticationError("Refresh token required", error_code="refresh_token_required")
    result = await issuer.refresh(body.refresh_token)
    return _session_response(result, response, settings)
