"""
Bookings API routes.

Booking creation returns 201 as soon as the booking row is stored. If the
token could not be attached, `token_status` is "pending" and
POST /bookings/{id}/token retries the minting.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.api.dependencies import get_booking_workflow, get_db
from garagebook.models.bookings import Booking
from garagebook.services.booking_status import BookingStatusService
from garagebook.services.booking_workflow import (
    BookingListing,
    BookingRequest,
    BookingResult,
    BookingWorkflow,
)


router = APIRouter(prefix="/bookings", tags=["bookings"])


class BookingResponse(BaseModel):
    """Stored booking."""
    id: int
    customer_id: int
    service_id: int
    vehicle_plate: str
    address: str
    postcode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: str
    token: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            customer_id=booking.customer_id,
            service_id=booking.service_id,
            vehicle_plate=booking.vehicle_plate,
            address=booking.address,
            postcode=booking.postcode,
            lat=booking.latitude,
            lng=booking.longitude,
            status=booking.status.value,
            token=booking.token,
            created_at=booking.created_at,
            started_at=booking.started_at,
            completed_at=booking.completed_at,
        )


class BookingCreatedResponse(BaseModel):
    """Booking with its token and QR image."""
    booking: BookingResponse
    token: Optional[str] = Field(None, description="Signed booking token; null while pending")
    qr_code: Optional[str] = Field(None, description="PNG data URL of the token")
    token_status: str = Field(..., description="assigned or pending")

    @classmethod
    def from_result(cls, result: BookingResult) -> "BookingCreatedResponse":
        return cls(
            booking=BookingResponse.from_model(result.booking),
            token=result.token,
            qr_code=result.qr_code,
            token_status=result.token_status,
        )


class BookingSummaryResponse(BookingResponse):
    """Booking joined with display names."""
    customer_name: str
    service_name: str

    @classmethod
    def from_listing(cls, listing: BookingListing) -> "BookingSummaryResponse":
        return cls(
            **BookingResponse.from_model(listing.booking).model_dump(),
            customer_name=listing.customer_name,
            service_name=listing.service_name,
        )


@router.post(
    "",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking",
    description="""
    Resolve or create the customer, store a pending booking for the service,
    and attach a unique QR token.

    Either `customer_id`, or `name` with `email` and/or `phone`, is required.
    """,
)
async def create_booking(
    payload: BookingRequest,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> BookingCreatedResponse:
    result = await workflow.create_booking(payload)
    return BookingCreatedResponse.from_result(result)


@router.get("", response_model=List[BookingSummaryResponse])
async def list_bookings(
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> List[BookingSummaryResponse]:
    """List all bookings with customer and service names, newest first."""
    listings = await workflow.list_bookings()
    return [BookingSummaryResponse.from_listing(listing) for listing in listings]


@router.get("/by-token/{token}", response_model=BookingResponse)
async def get_booking_by_token(
    token: str,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> BookingResponse:
    """Resolve a scanned QR token to its booking."""
    result = await workflow.find_by_token(token)
    return BookingResponse.from_model(result.booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> BookingResponse:
    booking = await workflow.get_booking(booking_id)
    return BookingResponse.from_model(booking)


@router.post("/{booking_id}/token", response_model=BookingCreatedResponse)
async def ensure_booking_token(
    booking_id: int,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> BookingCreatedResponse:
    """Return the booking's token, minting it if still pending."""
    result = await workflow.ensure_token(booking_id)
    return BookingCreatedResponse.from_result(result)


@router.post("/{booking_id}/start", response_model=BookingResponse)
async def start_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    booking = await BookingStatusService(db).start(booking_id)
    return BookingResponse.from_model(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    """Complete the job and record a loyalty visit for the customer."""
    booking = await BookingStatusService(db).complete(booking_id)
    return BookingResponse.from_model(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    booking = await BookingStatusService(db).cancel(booking_id)
    return BookingResponse.from_model(booking)
