"""
Loyalty account model - per-customer visit counter feeding reward eligibility.
"""
from datetime import datetime, timezone

from sqlalchemy import Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from garagebook.lib.db import Base


class LoyaltyAccount(Base):
    """
    Loyalty account - at most one per customer, created lazily
    on the customer's first completed job.
    """
    __tablename__ = "loyalty_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def is_reward_eligible(self, threshold: int) -> bool:
        return self.points >= threshold

    def __repr__(self) -> str:
        return f"<LoyaltyAccount(customer_id={self.customer_id}, points={self.points})>"
