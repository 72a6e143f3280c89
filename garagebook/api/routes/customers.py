"""
Customer API routes: registration, profile, booking history, loyalty.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.api.dependencies import get_booking_workflow, get_db
from garagebook.api.middleware.error_handler import NotFoundException
from garagebook.api.routes.bookings import BookingSummaryResponse
from garagebook.lib.validation import normalize_email, normalize_phone, normalize_plate
from garagebook.services.booking_workflow import BookingWorkflow
from garagebook.services.customer_directory import CustomerDirectory, CustomerIdentity
from garagebook.services.loyalty_service import LoyaltyService


router = APIRouter(prefix="/customers", tags=["customers"])


class CustomerRegisterRequest(BaseModel):
    """Explicit customer registration."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        return normalize_email(value) if value else None

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value) if value else None

    @field_validator("vehicle_plate")
    @classmethod
    def _plate(cls, value: Optional[str]) -> Optional[str]:
        return normalize_plate(value) if value else None

    @model_validator(mode="after")
    def _contact(self) -> "CustomerRegisterRequest":
        if not (self.email or self.phone):
            raise PydanticCustomError(
                "identity_missing",
                "email or phone is required",
                {"field": "email"},
            )
        return self


class CustomerResponse(BaseModel):
    """Customer record."""
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class LoyaltyResponse(BaseModel):
    customer_id: int
    points: int
    visits: int
    reward_eligible: bool


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def register_customer(
    payload: CustomerRegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> CustomerResponse:
    """
    Register a customer ahead of their first booking.

    Returns 409 if the email (or phone, when no email is given) is taken.
    """
    customer = await CustomerDirectory(db).register(
        CustomerIdentity(
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            vehicle_plate=payload.vehicle_plate,
            address=payload.address,
        )
    )
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
) -> CustomerResponse:
    customer = await CustomerDirectory(db).get_by_id(customer_id)
    if customer is None:
        raise NotFoundException("Customer", customer_id)
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}/bookings", response_model=List[BookingSummaryResponse])
async def list_customer_bookings(
    customer_id: int,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> List[BookingSummaryResponse]:
    """Booking history for one customer, newest first."""
    listings = await workflow.list_bookings(customer_id=customer_id)
    return [BookingSummaryResponse.from_listing(listing) for listing in listings]


@router.get("/{customer_id}/loyalty", response_model=LoyaltyResponse)
async def get_customer_loyalty(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
) -> LoyaltyResponse:
    if await CustomerDirectory(db).get_by_id(customer_id) is None:
        raise NotFoundException("Customer", customer_id)
    summary = await LoyaltyService(db).summary(customer_id)
    return LoyaltyResponse(**summary)
