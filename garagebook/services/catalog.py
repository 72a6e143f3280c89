"""Read-only catalog of bookable services."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.models.services import Service


class Catalog:
    """Lookups over the services table. Never writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, service_id: int) -> Optional[Service]:
        return await self.session.get(Service, service_id)

    async def get_by_name(self, name: str) -> Optional[Service]:
        stmt = select(Service).where(Service.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_services(
        self,
        category: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Service]:
        """
        List services ordered by category, then name.

        Args:
            category: Only services in this category (case-insensitive)
            active_only: Hide services that are no longer offered
        """
        stmt = select(Service)

        if active_only:
            stmt = stmt.where(Service.active.is_(True))

        if category:
            stmt = stmt.where(Service.category.ilike(category))

        stmt = stmt.order_by(Service.category, Service.name)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())
