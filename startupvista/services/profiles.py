"""
Role-indexed profile helpers.

Each role owns exactly one profile kind. The mapping is an exhaustive match
on Role, so adding a role fails loudly until it is handled here.
"""

import logging
from typing import Any, Optional, Type, Union, assert_never

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.errors import AuthorizationError, ConflictError, NotFoundError
from startupvista.core.roles import Role
from startupvista.models.models import ConsultantProfile, InvestorProfile, StartupProfile

logger = logging.getLogger(__name__)

Profile = Union[StartupProfile, InvestorProfile, ConsultantProfile]

# Columns never settable from a request body
_PROTECTED_FIELDS = {"id", "user_id", "created_at", "updated_at"}


def profile_model_for(role: Role) -> Type[Profile]:
    match role:
        case Role.STARTUP:
            return StartupProfile
        case Role.INVESTOR:
            return InvestorProfile
        case Role.CONSULTANT:
            return ConsultantProfile
        case _:
            assert_never(role)


def profile_label(role: Role) -> str:
    match role:
        case Role.STARTUP:
            return "Startup profile"
        case Role.INVESTOR:
            return "Investor profile"
        case Role.CONSULTANT:
            return "Consultant profile"
        case _:
            assert_never(role)


def post_type_for(role: Role) -> str:
    """Post type a role publishes. Investors do not publish posts."""
    match role:
        case Role.STARTUP:
            return "startup"
        case Role.CONSULTANT:
            return "seed"
        case Role.INVESTOR:
            raise AuthorizationError("Investors cannot create posts")
        case _:
            assert_never(role)


def serialize_profile(profile: Optional[Profile]) -> Optional[dict[str, Any]]:
    """Column values as a JSON-friendly dict."""
    if profile is None:
        return None
    data: dict[str, Any] = {}
    for column in profile.__table__.columns:
        value = getattr(profile, column.key)
        data[column.key] = value.isoformat() if hasattr(value, "isoformat") else value
    return data


async def get_profile(db: AsyncSession, role: Role, user_id: str) -> Optional[Profile]:
    model = profile_model_for(role)
    result = await db.execute(select(model).where(model.user_id == user_id))
    return result.scalar_one_or_none()


async def require_profile(db: AsyncSession, role: Role, user_id: str) -> Profile:
    profile = await get_profile(db, role, user_id)
    if profile is None:
        raise NotFoundError(profile_label(role))
    return profile


async def create_profile(db: AsyncSession, role: Role, user_id: str, data: dict[str, Any]) -> Profile:
    if await get_profile(db, role, user_id) is not None:
        raise ConflictError("Profile already exists. Use PUT to update.")

    model = profile_model_for(role)
    fields = {k: v for k, v in data.items() if k not in _PROTECTED_FIELDS}
    profile = model(user_id=user_id, **fields)
    db.add(profile)
    await db.flush()
    logger.info("Created %s for user %s", profile_label(role).lower(), user_id)
    return profile


async def update_profile(db: AsyncSession, role: Role, user_id: str, data: dict[str, Any]) -> Profile:
    profile = await require_profile(db, role, user_id)
    for key, value in data.items():
        if key not in _PROTECTED_FIELDS:
            setattr(profile, key, value)
    await db.flush()
    return profile


async def delete_profile(db: AsyncSession, role: Role, user_id: str) -> None:
    model = profile_model_for(role)
    result = await db.execute(delete(model).where(model.user_id == user_id))
    if result.rowcount == 0:
        raise NotFoundError(profile_label(role))
    logger.info("Deleted %s for user %s", profile_label(role).lower(), user_id)
