"""
Users Router
The signed-in account's own details, whatever its role.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.database import get_db
from startupvista.core.errors import DuplicateEmailError
from startupvista.core.security import get_credential_store, require_user
from startupvista.models.models import User
from startupvista.services.credential_store import CredentialStore, normalize_email
from startupvista.services.profiles import get_profile, serialize_profile
from startupvista.services.session_issuer import public_user_view

router = APIRouter(prefix="/api/users", tags=["Users"])


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    contact_no: Optional[str] = Field(None, max_length=30)
    linkedin: Optional[str] = Field(None, max_length=255)


def _account_view(user: User) -> dict:
    view = public_user_view(user)
    view["contact_no"] = user.contact_no
    view["linkedin"] = user.linkedin
    return view


@router.get("/profile")
async def get_my_profile(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Account details plus the role profile, if one has been created."""
    profile = await get_profile(db, user.role, user.id)
    return {"user": _account_view(user), "profile": serialize_profile(profile)}


@router.put("/profile")
async def update_my_profile(
    body: UserUpdate,
    user: User = Depends(require_user),
    store: CredentialStore = Depends(get_credential_store),
):
    """Update name, email, contact number or LinkedIn. Email stays unique."""
    updates = body.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in updates:
        email = normalize_email(updates["email"])
        if email != user.email:
            existing = await store.find_by_email(email)
            if existing is not None and existing.id != user.id:
                raise DuplicateEmailError("Email already in use")
        updates["email"] = email

    for key, value in updates.items():
        setattr(user, key, value)
    await store.save(user)

    return {"user": _account_view(user)}
