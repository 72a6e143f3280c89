"""Booking status transitions.

pending -> in_progress -> completed, pending -> cancelled, and the
override in_progress -> in_progress (restart). Completing a job records a
loyalty visit in the same transaction.
"""
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.api.middleware.error_handler import (
    ConflictException,
    NotFoundException,
    PersistenceException,
)
from garagebook.lib.logging import get_logger
from garagebook.lib.metrics import MetricsCollector, get_metrics_collector
from garagebook.models.bookings import Booking, BookingStatus
from garagebook.services.loyalty_service import LoyaltyService


logger = get_logger(__name__)

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(
    current: BookingStatus,
    target: BookingStatus,
    allow_restart: bool = False,
) -> bool:
    if allow_restart and current == target == BookingStatus.IN_PROGRESS:
        return True
    return target in TRANSITIONS[current]


class BookingStatusService:
    """Drives bookings through their status lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        loyalty: Optional[LoyaltyService] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.session = session
        self.loyalty = loyalty or LoyaltyService(session)
        self.metrics = metrics or get_metrics_collector()

    async def start(self, booking_id: int, allow_restart: bool = False) -> Booking:
        """Start work on a booking. `allow_restart` is the admin override."""
        return await self._transition(
            booking_id,
            BookingStatus.IN_PROGRESS,
            allow_restart=allow_restart,
            started_at=datetime.now(timezone.utc),
        )

    async def complete(self, booking_id: int) -> Booking:
        return await self._transition(
            booking_id,
            BookingStatus.COMPLETED,
            completed_at=datetime.now(timezone.utc),
        )

    async def cancel(self, booking_id: int) -> Booking:
        return await self._transition(booking_id, BookingStatus.CANCELLED)

    async def _transition(
        self,
        booking_id: int,
        target: BookingStatus,
        allow_restart: bool = False,
        **timestamps: datetime,
    ) -> Booking:
        booking = await self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundException("Booking", booking_id)

        current = booking.status
        if not can_transition(current, target, allow_restart=allow_restart):
            raise ConflictException(
                f"Cannot move booking from {current.value} to {target.value}",
                details={"booking_id": booking_id, "status": current.value},
            )

        try:
            # Guard on the status we read so a concurrent change is detected
            result = await self.session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == current)
                .values(status=target, **timestamps)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise ConflictException(
                    "Booking status changed concurrently",
                    details={"booking_id": booking_id},
                )

            if target == BookingStatus.COMPLETED:
                await self.loyalty.record_visit(booking.customer_id)

            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Status transition failed: {e}", extra={"booking_id": booking_id})
            raise PersistenceException("Could not update booking status") from e

        await self.session.refresh(booking)
        self.metrics.increment_transitions(target.value)

        logger.info(
            "Booking status changed",
            extra={"booking_id": booking_id, "from": current.value, "to": target.value},
        )
        return booking
