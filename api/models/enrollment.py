import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import UUID, Boolean, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

__all__ = ["Enrollment", "UserSubjects", "JoinRequest", "UpgradeRequest", "RequestStatus"]


class RequestStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Enrollment(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    grade: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    stream: Mapped[str] = mapped_column(String, default="maths", nullable=False)
    medium: Mapped[str] = mapped_column(String, default="english", nullable=False)
    tier: Mapped[str] = mapped_column(String, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    payment_order_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UserSubjects(Base):
    __tablename__ = "user_subjects"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("enrollments.id"), nullable=False)
    subject_1: Mapped[str] = mapped_column(String, nullable=False)
    subject_2: Mapped[str] = mapped_column(String, nullable=False)
    subject_3: Mapped[str] = mapped_column(String, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class JoinRequest(Base):
    """Bank-transfer signup waiting for an admin to confirm the deposit."""

    __tablename__ = "join_requests"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    reference_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tier: Mapped[str] = mapped_column(String, nullable=False)
    grade: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    stream: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    medium: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    subject_1: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    subject_2: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    subject_3: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    ref_creator: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    discount_code: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus, name="request_status"), default=RequestStatus.PENDING, nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class UpgradeRequest(Base):
    __tablename__ = "upgrade_requests"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("enrollments.id"), nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    current_tier: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    requested_tier: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus, name="request_status"), default=RequestStatus.PENDING, nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
