"""
Investors Router
Portfolio and investment preferences for investor accounts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.database import get_db
from startupvista.core.roles import Role
from startupvista.core.security import require_role
from startupvista.models.models import User
from startupvista.services import profiles

router = APIRouter(prefix="/api/investors", tags=["Investors"])


class PastInvestment(BaseModel):
    company_name: str = Field(..., min_length=1)
    investment_amount: float = Field(0, ge=0)
    exit_amount: Optional[float] = Field(None, ge=0)


class CurrentHolding(BaseModel):
    company_name: str = Field(..., min_length=1)
    investment_amount: float = Field(0, ge=0)
    funding_type: Optional[str] = None


class InvestorProfileUpdate(BaseModel):
    ticket_size_min: Optional[float] = Field(None, ge=0)
    ticket_size_max: Optional[float] = Field(None, ge=0)
    preferred_sectors: Optional[list[str]] = None
    past_investments: Optional[list[PastInvestment]] = None
    current_holdings: Optional[list[CurrentHolding]] = None

    @model_validator(mode="after")
    def check_ticket_range(self):
        low, high = self.ticket_size_min, self.ticket_size_max
        if low is not None and high is not None and low > high:
            raise ValueError("ticket_size_min cannot exceed ticket_size_max")
        return self


@router.post("/profile", status_code=status.HTTP_201_CREATED)
async def create_investor_profile(
    body: InvestorProfileUpdate,
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.create_profile(
        db, Role.INVESTOR, user.id, body.model_dump(exclude_none=True)
    )
    return profiles.serialize_profile(profile)


@router.get("/profile")
async def get_investor_profile(
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    return profiles.serialize_profile(await profiles.get_profile(db, Role.INVESTOR, user.id))


@router.put("/profile")
async def update_investor_profile(
    body: InvestorProfileUpdate,
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.update_profile(
        db, Role.INVESTOR, user.id, body.model_dump(exclude_unset=True)
    )
    return profiles.serialize_profile(profile)


@router.post("/investments/past")
async def add_past_investment(
    body: PastInvestment,
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.require_profile(db, Role.INVESTOR, user.id)
    # JSON columns only track reassignment
    profile.past_investments = [*profile.past_investments, body.model_dump()]
    await db.flush()
    return profiles.serialize_profile(profile)


@router.post("/investments/current")
async def add_current_holding(
    body: CurrentHolding,
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.require_profile(db, Role.INVESTOR, user.id)
    profile.current_holdings = [*profile.current_holdings, body.model_dump()]
    await db.flush()
    return profiles.serialize_profile(profile)


@router.delete("/profile")
async def delete_investor_profile(
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    await profiles.delete_profile(db, Role.INVESTOR, user.id)
    return {"message": "Profile deleted successfully"}
