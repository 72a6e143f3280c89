"""
Customer model - people who book vehicle services.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Integer, String, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from garagebook.lib.db import Base


class Customer(Base):
    """
    Customer entity.
    Either phone or email must be present; `contact_key` is the natural key
    used for lookup-or-create and is unique across the directory.
    """
    __tablename__ = "customers"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Profile
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Contact info (at least one required)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    contact_key: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="Normalized email, or tel:<phone> when no email was given",
    )

    # Defaults offered on the next booking
    vehicle_plate: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "phone IS NOT NULL OR email IS NOT NULL",
            name="customer_contact_required",
        ),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name}, contact_key={self.contact_key})>"
