"""Loyalty accounts: one per customer, incremented per completed job."""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.lib.db import upsert_insert
from garagebook.lib.logging import get_logger
from garagebook.lib.settings import settings
from garagebook.models.loyalty import LoyaltyAccount


logger = get_logger(__name__)


class LoyaltyService:
    """Per-customer visit counter feeding a reward-eligibility flag.

    Writes happen inside the caller's transaction; the caller commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        points_per_visit: Optional[int] = None,
        reward_threshold: Optional[int] = None,
    ):
        self.session = session
        self.points_per_visit = points_per_visit or settings.loyalty_points_per_visit
        self.reward_threshold = reward_threshold or settings.loyalty_reward_threshold

    async def get_account(self, customer_id: int) -> Optional[LoyaltyAccount]:
        stmt = select(LoyaltyAccount).where(LoyaltyAccount.customer_id == customer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def record_visit(self, customer_id: int) -> None:
        """
        Add one visit and its points to the customer's account.

        The account is created on first use; both the creation and the
        increment are single statements, so concurrent completions for the
        same customer neither duplicate the account nor lose an increment.
        """
        await self.session.execute(
            upsert_insert(self.session, LoyaltyAccount)
            .values(customer_id=customer_id, points=0, visits=0)
            .on_conflict_do_nothing(index_elements=["customer_id"])
        )
        await self.session.execute(
            update(LoyaltyAccount)
            .where(LoyaltyAccount.customer_id == customer_id)
            .values(
                points=LoyaltyAccount.points + self.points_per_visit,
                visits=LoyaltyAccount.visits + 1,
            )
        )
        logger.info("Loyalty visit recorded", extra={"customer_id": customer_id})

    async def summary(self, customer_id: int) -> dict:
        """
        Loyalty summary for display; zeros when no account exists yet.

        Returns:
            {"customer_id", "points", "visits", "reward_eligible"}
        """
        account = await self.get_account(customer_id)
        points = account.points if account else 0
        visits = account.visits if account else 0
        return {
            "customer_id": customer_id,
            "points": points,
            "visits": visits,
            "reward_eligible": points >= self.reward_threshold,
        }
