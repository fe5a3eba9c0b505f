"""SQLAlchemy model definitions for back-office users."""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, func
from sqlalchemy.orm import relationship

from ..database import Base


class UserRole(str, enum.Enum):
    """Roles that can operate the back office."""

    ADMIN = "admin"
    SELLER = "seller"


USER_ROLE_ENUM = Enum(
    UserRole,
    name="user_role_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class User(Base):
    """Represents an operator able to sign in and register sales."""

    __tablename__ = "users"

    id = Column("user_id", Integer, primary_key=True, autoincrement=True)
    username = Column(String(80), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    role = Column(USER_ROLE_ENUM, nullable=False, default=UserRole.SELLER)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    sales = relationship("Sale", back_populates="seller")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
