"""
Integration tests for booking status transitions and loyalty accrual.
"""
import pytest

from garagebook.api.middleware.error_handler import ConflictException, NotFoundException
from garagebook.models import BookingStatus, LoyaltyAccount
from garagebook.services.booking_status import BookingStatusService
from garagebook.services.booking_workflow import parse_booking_request
from garagebook.services.loyalty_service import LoyaltyService


pytestmark = pytest.mark.integration


@pytest.fixture
async def booking(workflow, catalog, alice):
    result = await workflow.create_booking(parse_booking_request(alice))
    return result.booking


async def test_start_then_complete(database, booking, metrics):
    async with database.session() as session:
        service = BookingStatusService(session, metrics=metrics)

        started = await service.start(booking.id)
        assert started.status == BookingStatus.IN_PROGRESS
        assert started.started_at is not None

        completed = await service.complete(booking.id)
        assert completed.status == BookingStatus.COMPLETED
        assert completed.completed_at is not None

    assert metrics.get_counter_value("booking_transitions_total", {"to_status": "in_progress"}) == 1
    assert metrics.get_counter_value("booking_transitions_total", {"to_status": "completed"}) == 1


async def test_completion_records_loyalty_visit(database, booking):
    async with database.session() as session:
        service = BookingStatusService(session)
        await service.start(booking.id)
        await service.complete(booking.id)

    async with database.session() as session:
        summary = await LoyaltyService(session).summary(booking.customer_id)

    assert summary["visits"] == 1
    assert summary["points"] == 1
    assert summary["reward_eligible"] is False


async def test_reward_eligibility_after_threshold(database, workflow, catalog, alice):
    async with database.session() as session:
        loyalty = LoyaltyService(session, points_per_visit=2, reward_threshold=4)

        for _ in range(2):
            result = await workflow.create_booking(parse_booking_request(alice))
            service = BookingStatusService(session, loyalty=loyalty)
            await service.start(result.booking.id)
            await service.complete(result.booking.id)

        summary = await loyalty.summary(result.booking.customer_id)

    assert summary == {
        "customer_id": result.booking.customer_id,
        "points": 4,
        "visits": 2,
        "reward_eligible": True,
    }


async def test_single_loyalty_account_per_customer(database, workflow, catalog, alice, count_rows):
    async with database.session() as session:
        for _ in range(3):
            result = await workflow.create_booking(parse_booking_request(alice))
            service = BookingStatusService(session)
            await service.start(result.booking.id)
            await service.complete(result.booking.id)

    assert await count_rows(database, LoyaltyAccount) == 1


async def test_cancel_pending(database, booking):
    async with database.session() as session:
        cancelled = await BookingStatusService(session).cancel(booking.id)
    assert cancelled.status == BookingStatus.CANCELLED


async def test_cannot_complete_pending(database, booking):
    async with database.session() as session:
        with pytest.raises(ConflictException, match="from pending to completed"):
            await BookingStatusService(session).complete(booking.id)


async def test_cannot_cancel_in_progress(database, booking):
    async with database.session() as session:
        service = BookingStatusService(session)
        await service.start(booking.id)
        with pytest.raises(ConflictException):
            await service.cancel(booking.id)


async def test_restart_needs_override(database, booking):
    async with database.session() as session:
        service = BookingStatusService(session)
        await service.start(booking.id)

        with pytest.raises(ConflictException):
            await service.start(booking.id)

        restarted = await service.start(booking.id, allow_restart=True)
        assert restarted.status == BookingStatus.IN_PROGRESS


async def test_no_loyalty_without_completion(database, booking):
    async with database.session() as session:
        await BookingStatusService(session).cancel(booking.id)
        summary = await LoyaltyService(session).summary(booking.customer_id)

    assert summary["visits"] == 0
    assert summary["points"] == 0


async def test_unknown_booking(database):
    async with database.session() as session:
        with pytest.raises(NotFoundException):
            await BookingStatusService(session).start(999)
