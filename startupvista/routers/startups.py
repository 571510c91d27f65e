"""
Startups Router
Company profile for startup accounts.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.database import get_db
from startupvista.core.roles import Role
from startupvista.core.security import require_role
from startupvista.models.models import User
from startupvista.services import profiles

router = APIRouter(prefix="/api/startups", tags=["Startups"])

SOCIAL_NETWORKS = ("linkedin", "facebook", "instagram", "twitter")


class Founder(BaseModel):
    name: str
    email: Optional[str] = None
    contact_no: Optional[str] = None
    linkedin: Optional[str] = None
    designation: Optional[str] = None
    share_percentage: Optional[float] = Field(None, ge=0, le=100)


class StartupProfileUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    logo: Optional[str] = None
    establishment_date: Optional[date] = None
    sector: Optional[str] = None
    team_size: Optional[int] = Field(None, ge=0)
    about_company: Optional[str] = None
    website: Optional[str] = None
    android_app: Optional[str] = None
    ios_app: Optional[str] = None
    founders: Optional[list[Founder]] = None

    # Flat social links, stored together as social_links
    linkedin: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None

    def to_columns(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        links = {name: data.pop(name) or "" for name in SOCIAL_NETWORKS if name in data}
        if links:
            data["social_links"] = {name: links.get(name, "") for name in SOCIAL_NETWORKS}
        return data


class StartupProfileCreate(StartupProfileUpdate):
    company_name: str = Field(..., min_length=1, max_length=255)


@router.post("/profile", status_code=status.HTTP_201_CREATED)
async def create_startup_profile(
    body: StartupProfileCreate,
    user: User = Depends(require_role(Role.STARTUP)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.create_profile(db, Role.STARTUP, user.id, body.to_columns())
    return profiles.serialize_profile(profile)


@router.get("/profile")
async def get_startup_profile(
    user: User = Depends(require_role(Role.STARTUP)),
    db: AsyncSession = Depends(get_db),
):
    """The caller's company profile, or null before one is created."""
    return profiles.serialize_profile(await profiles.get_profile(db, Role.STARTUP, user.id))


@router.put("/profile")
async def update_startup_profile(
    body: StartupProfileUpdate,
    user: User = Depends(require_role(Role.STARTUP)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.update_profile(db, Role.STARTUP, user.id, body.to_columns())
    return profiles.serialize_profile(profile)


@router.delete("/profile")
async def delete_startup_profile(
    user: User = Depends(require_role(Role.STARTUP)),
    db: AsyncSession = Depends(get_db),
):
    await profiles.delete_profile(db, Role.STARTUP, user.id)
    return {"message": "Profile deleted successfully"}
