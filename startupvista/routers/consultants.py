"""
Consultants Router
Track record and verification documents for consultant accounts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.database import get_db
from startupvista.core.roles import Role
from startupvista.core.security import require_role
from startupvista.models.models import User
from startupvista.services import profiles

router = APIRouter(prefix="/api/consultants", tags=["Consultants"])


class PortfolioItem(BaseModel):
    company_name: str = Field(..., min_length=1)
    investment_amount: float = Field(0, ge=0)


class ConsultantProfileUpdate(BaseModel):
    past_portfolio: Optional[list[PortfolioItem]] = None
    total_investment: Optional[float] = Field(None, ge=0)
    total_startups_funded: Optional[int] = Field(None, ge=0)


class VerificationDocuments(BaseModel):
    pan_card: Optional[str] = Field(None, max_length=20)
    aadhar_card: Optional[str] = Field(None, max_length=20)


@router.post("/profile", status_code=status.HTTP_201_CREATED)
async def create_consultant_profile(
    body: ConsultantProfileUpdate,
    user: User = Depends(require_role(Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.create_profile(
        db, Role.CONSULTANT, user.id, body.model_dump(exclude_none=True)
    )
    return profiles.serialize_profile(profile)


@router.get("/profile")
async def get_consultant_profile(
    user: User = Depends(require_role(Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    return profiles.serialize_profile(await profiles.get_profile(db, Role.CONSULTANT, user.id))


@router.put("/profile")
async def update_consultant_profile(
    body: ConsultantProfileUpdate,
    user: User = Depends(require_role(Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.update_profile(
        db, Role.CONSULTANT, user.id, body.model_dump(exclude_unset=True)
    )
    return profiles.serialize_profile(profile)


@router.post("/portfolio")
async def add_portfolio_item(
    body: PortfolioItem,
    user: User = Depends(require_role(Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.require_profile(db, Role.CONSULTANT, user.id)
    profile.past_portfolio = [*profile.past_portfolio, body.model_dump()]
    await db.flush()
    return profiles.serialize_profile(profile)


@router.put("/verification")
async def update_verification(
    body: VerificationDocuments,
    user: User = Depends(require_role(Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    """
    Store PAN / Aadhaar numbers. Changing them resets documents_verified
    until the documents are reviewed again.
    """
    profile = await profiles.update_profile(
        db,
        Role.CONSULTANT,
        user.id,
        {**body.model_dump(exclude_unset=True), "documents_verified": False},
    )
    return profiles.serialize_profile(profile)


@router.delete("/profile")
async def delete_consultant_profile(
    user: User = Depends(require_role(Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    await profiles.delete_profile(db, Role.CONSULTANT, user.id)
    return {"message": "Profile deleted successfully"}
