"""SQLAlchemy model definitions for clients."""

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class ClientCategory(str, enum.Enum):
    """Commercial segment a client belongs to."""

    NORMAL = "normal"
    VIP = "VIP"
    CORPORATE = "corporate"


CLIENT_CATEGORY_ENUM = Enum(
    ClientCategory,
    name="client_category_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class Client(Base):
    """Represents a client record stored in the database."""

    __tablename__ = "clients"
    __table_args__ = (
        CheckConstraint("total_spent >= 0", name="ck_clients_total_spent_non_negative"),
    )

    id = Column("client_id", Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    phone = Column(String(40), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    province = Column(String(120), nullable=True)
    category = Column(CLIENT_CATEGORY_ENUM, nullable=False, default=ClientCategory.NORMAL)
    notes = Column(Text, nullable=True)
    total_spent = Column(Numeric(12, 2), nullable=False, default=0)
    last_purchase = Column(Date, nullable=True)
    created_by = Column(
        Integer,
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    sales = relationship("Sale", back_populates="client", passive_deletes=True)


Index("clients_name_idx", Client.name)
Index("clients_email_idx", Client.email)
Index("clients_category_idx", Client.category)
