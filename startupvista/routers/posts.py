"""
Posts Router
Marketplace of funding opportunities.

Endpoints:
- GET  /api/posts                       - Active posts, newest first (public)
- GET  /api/posts/search                - Filter by text, sector, type, amount
- GET  /api/posts/user/{user_id}        - Active posts by one author
- GET  /api/posts/{post_id}             - Single post
- POST /api/posts                       - Create (startup, consultant)
- PUT  /api/posts/{post_id}             - Update (owner)
- DELETE /api/posts/{post_id}           - Deactivate (owner)
- POST /api/posts/{post_id}/interest    - Express interest (investor)
- GET  /api/posts/{post_id}/interests   - Interests received (owner)
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from startupvista.core.database import get_db
from startupvista.core.errors import AuthorizationError, ConflictError, NotFoundError
from startupvista.core.roles import Role
from startupvista.core.security import optional_user, require_role
from startupvista.models.models import Post, PostInterest, User
from startupvista.services.profiles import post_type_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["Posts"])

InvestmentType = Literal["equity", "debt"]


# =============================================================================
# Schemas
# =============================================================================

class PostUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    sector: Optional[str] = Field(None, min_length=1, max_length=100)
    investment_amount: Optional[float] = Field(None, gt=0)
    investment_type: Optional[InvestmentType] = None
    equity_percentage: Optional[float] = Field(None, ge=0, le=100)
    consultant: Optional[str] = Field(None, max_length=255)
    logo: Optional[str] = None
    one_pager: Optional[str] = None
    pitch_deck: Optional[str] = None

    @model_validator(mode="after")
    def check_required_not_cleared(self):
        cleared = [
            name for name in ("company_name", "sector", "investment_amount", "investment_type", "consultant")
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class PostCreate(PostUpdate):
    company_name: str = Field(..., min_length=1, max_length=255)
    sector: str = Field(..., min_length=1, max_length=100)
    investment_amount: float = Field(..., gt=0)
    investment_type: InvestmentType


class Answer(BaseModel):
    question: str
    answer: str


class InterestRequest(BaseModel):
    answers: list[Answer] = []


# =============================================================================
# Helpers
# =============================================================================

def post_view(post: Post, viewer: Optional[User] = None) -> dict:
    author = post.author
    view = {
        "id": post.id,
        "post_type": post.post_type,
        "company_name": post.company_name,
        "logo": post.logo,
        "consultant": post.consultant,
        "sector": post.sector,
        "investment_amount": post.investment_amount,
        "investment_type": post.investment_type,
        "equity_percentage": post.equity_percentage,
        "documents": {"one_pager": post.one_pager, "pitch_deck": post.pitch_deck},
        "is_active": post.is_active,
        "created_by": {
            "id": author.id,
            "name": author.name,
            "email": author.email,
            "role": author.role.value,
        } if author else None,
        "interest_count": len(post.interests),
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
    }
    if viewer is not None and viewer.role == Role.INVESTOR:
        view["has_expressed_interest"] = any(i.investor_id == viewer.id for i in post.interests)
    return view


def _active_posts():
    return select(Post).where(Post.is_active.is_(True)).order_by(Post.created_at.desc())


async def _get_post(db: AsyncSession, post_id: str, include_inactive: bool = False) -> Post:
    post = await db.get(Post, post_id)
    if post is None or (not post.is_active and not include_inactive):
        raise NotFoundError("Post")
    return post


def _check_owner(post: Post, user: User) -> None:
    if post.created_by != user.id:
        raise AuthorizationError("You can only modify your own posts")


# =============================================================================
# Public
# =============================================================================

@router.get("/")
async def list_posts(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    viewer: Optional[User] = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(_active_posts().limit(limit).offset(offset))
    return [post_view(p, viewer) for p in result.unique().scalars().all()]


@router.get("/search")
async def search_posts(
    q: Optional[str] = Query(None, max_length=100),
    sector: Optional[str] = None,
    investment_type: Optional[InvestmentType] = None,
    min_amount: Optional[float] = Query(None, ge=0),
    max_amount: Optional[float] = Query(None, ge=0),
    viewer: Optional[User] = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = _active_posts()
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(Post.company_name.ilike(pattern), Post.sector.ilike(pattern)))
    if sector:
        stmt = stmt.where(func.lower(Post.sector) == sector.strip().lower())
    if investment_type:
        stmt = stmt.where(Post.investment_type == investment_type)
    if min_amount is not None:
        stmt = stmt.where(Post.investment_amount >= min_amount)
    if max_amount is not None:
        stmt = stmt.where(Post.investment_amount <= max_amount)

    result = await db.execute(stmt)
    return [post_view(p, viewer) for p in result.unique().scalars().all()]


@router.get("/user/{user_id}")
async def list_user_posts(
    user_id: str,
    viewer: Optional[User] = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(_active_posts().where(Post.created_by == user_id))
    return [post_view(p, viewer) for p in result.unique().scalars().all()]


@router.get("/{post_id}")
async def get_post(
    post_id: str,
    viewer: Optional[User] = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    return post_view(await _get_post(db, post_id), viewer)


# =============================================================================
# Authors
# =============================================================================

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    user: User = Depends(require_role(Role.STARTUP, Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude_none=True)
    post = Post(
        created_by=user.id,
        author=user,
        interests=[],
        post_type=post_type_for(user.role),
        **fields,
    )
    db.add(post)
    await db.flush()
    logger.info("Post %s created by %s (%s)", post.id, user.id, post.post_type)
    return post_view(post, user)


@router.put("/{post_id}")
async def update_post(
    post_id: str,
    body: PostUpdate,
    user: User = Depends(require_role(Role.STARTUP, Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    post = await _get_post(db, post_id)
    _check_owner(post, user)

    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(post, key, value)
    await db.flush()
    return post_view(post, user)


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    user: User = Depends(require_role(Role.STARTUP, Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a post. It disappears from listings but keeps its interests."""
    post = await _get_post(db, post_id)
    _check_owner(post, user)

    post.is_active = False
    await db.flush()
    logger.info("Post %s deactivated by %s", post.id, user.id)
    return {"message": "Post deleted successfully"}


@router.get("/{post_id}/interests")
async def list_post_interests(
    post_id: str,
    user: User = Depends(require_role(Role.STARTUP, Role.CONSULTANT)),
    db: AsyncSession = Depends(get_db),
):
    """Investors interested in one of the caller's posts, with their answers."""
    post = await _get_post(db, post_id, include_inactive=True)
    _check_owner(post, user)

    investor_ids = [i.investor_id for i in post.interests]
    investors: dict[str, User] = {}
    if investor_ids:
        result = await db.execute(select(User).where(User.id.in_(investor_ids)))
        investors = {u.id: u for u in result.scalars().all()}

    interests = []
    for interest in post.interests:
        investor = investors.get(interest.investor_id)
        interests.append({
            "id": interest.id,
            "investor": {
                "id": investor.id,
                "name": investor.name,
                "email": investor.email,
            } if investor else None,
            "answers": interest.answers,
            "created_at": interest.created_at.isoformat() if interest.created_at else None,
        })
    return interests


# =============================================================================
# Investors
# =============================================================================

@router.post("/{post_id}/interest", status_code=status.HTTP_201_CREATED)
async def express_interest(
    post_id: str,
    body: InterestRequest,
    user: User = Depends(require_role(Role.INVESTOR)),
    db: AsyncSession = Depends(get_db),
):
    post = await _get_post(db, post_id)

    if any(i.investor_id == user.id for i in post.interests):
        raise ConflictError("Interest already expressed")

    post.interests.append(
        PostInterest(
            investor_id=user.id,
            answers=[a.model_dump() for a in body.answers],
        )
    )
    try:
        await db.flush()
    except IntegrityError as exc:
        # A concurrent request from the same investor won the unique constraint
        raise ConflictError("Interest already expressed") from exc
    logger.info("Investor %s expressed interest in post %s", user.id, post.id)
    return {"message": "Interest expressed successfully"}
