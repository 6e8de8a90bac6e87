import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import UUID, Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

__all__ = ["CMOProfile", "CreatorProfile", "CommissionTier", "DiscountCode", "UserAttribution"]


class CMOProfile(Base):
    __tablename__ = "cmo_profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    creators: Mapped[List["CreatorProfile"]] = relationship(back_populates="cmo")


class CreatorProfile(Base):
    __tablename__ = "creator_profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # stored upper-cased; lookups upper-case the incoming code
    referral_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    cmo_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("cmo_profiles.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    current_tier_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tier_protection_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    lifetime_paid_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_paid_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    total_withdrawn: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    cmo: Mapped[Optional["CMOProfile"]] = relationship(back_populates="creators")


class CommissionTier(Base):
    __tablename__ = "commission_tiers"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tier_level: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    tier_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # percent, e.g. 12.00 for a 12% rate
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    monthly_user_threshold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class DiscountCode(Base):
    __tablename__ = "discount_codes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("creator_profiles.id"), nullable=True)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    paid_conversions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class UserAttribution(Base):
    """First creator a user was attributed to. Never overwritten."""

    __tablename__ = "user_attributions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, unique=True)
    creator_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("creator_profiles.id"), nullable=False)
    discount_code_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("discount_codes.id"), nullable=True)
    referral_source: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
