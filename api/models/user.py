import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

__all__ = ["User", "UserRole", "UserRoleAssignment", "ADMIN_ROLES"]


class UserRole(enum.Enum):
    USER = "user"
    CREATOR = "creator"
    CMO = "cmo"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    CONTENT_ADMIN = "content_admin"
    SUPPORT_ADMIN = "support_admin"


ADMIN_ROLES = (
    UserRole.ADMIN,
    UserRole.SUPER_ADMIN,
    UserRole.CONTENT_ADMIN,
    UserRole.SUPPORT_ADMIN,
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    roles: Mapped[List["UserRoleAssignment"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class UserRoleAssignment(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole, name="app_role"), nullable=False)

    user: Mapped["User"] = relationship(back_populates="roles")
