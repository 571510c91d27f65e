"""
StartupVista Database Models
SQLAlchemy ORM models for identities, role profiles and the post marketplace.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from startupvista.core.database import Base
from startupvista.core.roles import AuthProvider, Role


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_column(enum_cls):
    """Store enums by value ("startup"), not by member name."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# =============================================================================
# User Model (Identity)
# =============================================================================

class User(Base):
    """
    A registered account, local (password) or federated (Firebase).

    - email is unique and stored lower-cased
    - firebase_uid is unique when set, NULL for local-only accounts
    - role is fixed at creation
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)

    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    role: Mapped[Role] = mapped_column(_enum_column(Role))
    provider: Mapped[AuthProvider] = mapped_column(
        _enum_column(AuthProvider), default=AuthProvider.LOCAL
    )
    firebase_uid: Mapped[Optional[str]] = mapped_column(
        String(128), unique=True, nullable=True
    )

    # Status
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    require_email_verification: Mapped[bool] = mapped_column(Boolean, default=False)

    # Contact
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    contact_no: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    linkedin: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    posts: Mapped[list["Post"]] = relationship(back_populates="author")

    def can_login_with_password(self) -> bool:
        return self.password_hash is not None


# =============================================================================
# Role Profiles
# =============================================================================

class StartupProfile(Base):
    """Company details for a startup account."""
    __tablename__ = "startup_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True
    )

    company_name: Mapped[str] = mapped_column(String(255))
    logo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    establishment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sector: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    team_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    about_company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    android_app: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ios_app: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # {"linkedin": "", "facebook": "", "instagram": "", "twitter": ""}
    social_links: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    # [{"name", "email", "contact_no", "linkedin", "designation", "share_percentage"}]
    founders: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class InvestorProfile(Base):
    """Portfolio and preferences for an investor account."""
    __tablename__ = "investor_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True
    )

    # [{"company_name", "investment_amount", "exit_amount"}]
    past_investments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    # [{"company_name", "investment_amount", "funding_type"}]
    current_holdings: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    ticket_size_min: Mapped[float] = mapped_column(Float, default=0)
    ticket_size_max: Mapped[float] = mapped_column(Float, default=0)
    preferred_sectors: Mapped[list[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class ConsultantProfile(Base):
    """Track record and KYC documents for a consultant account."""
    __tablename__ = "consultant_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True
    )

    # [{"company_name", "investment_amount"}]
    past_portfolio: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    total_investment: Mapped[float] = mapped_column(Float, default=0)
    total_startups_funded: Mapped[int] = mapped_column(Integer, default=0)

    # Verification
    pan_card: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    aadhar_card: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    documents_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


# =============================================================================
# Marketplace
# =============================================================================

class Post(Base):
    """
    A funding opportunity.
    post_type is "startup" when a startup lists itself, "seed" when a consultant lists one.
    """
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)

    post_type: Mapped[str] = mapped_column(String(20))  # startup, seed
    company_name: Mapped[str] = mapped_column(String(255), index=True)
    logo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    consultant: Mapped[str] = mapped_column(String(255), default="StartupVista")
    sector: Mapped[str] = mapped_column(String(100), index=True)

    investment_amount: Mapped[float] = mapped_column(Float)
    investment_type: Mapped[str] = mapped_column(String(20))  # equity, debt
    equity_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Document links
    one_pager: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pitch_deck: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    author: Mapped["User"] = relationship(back_populates="posts", lazy="joined")
    interests: Mapped[list["PostInterest"]] = relationship(
        back_populates="post", cascade="all, delete-orphan", lazy="selectin"
    )


class PostInterest(Base):
    """An investor's interest in a post, with screening answers."""
    __tablename__ = "post_interests"
    __table_args__ = (
        UniqueConstraint("post_id", "investor_id", name="uq_post_interest_investor"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), index=True
    )
    investor_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)

    # [{"question": "...", "answer": "..."}]
    answers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    post: Mapped["Post"] = relationship(back_populates="interests")
