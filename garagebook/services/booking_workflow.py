"""Booking workflow: create-or-attach customer, create booking, mint token.

Handles the complete booking-creation flow:
1. Validate input against the explicit request schema
2. Confirm the service exists (read-only, before any write)
3. Resolve the customer by id, or lookup-or-create by email/phone
4. Insert the booking as `pending` without a token
5. Mint a token bound to the booking id and attach it, re-minting on collision
6. Render the token as a QR code

Once step 4 commits, the booking is always reported as created. A failure in
steps 5 or 6 only degrades the response (token pending, or no QR image).
"""
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from garagebook.api.middleware.error_handler import (
    ConflictException,
    EncodingException,
    NotFoundException,
    PersistenceException,
    ValidationException,
    describe_error,
)
from garagebook.lib.db import Database
from garagebook.lib.logging import get_logger
from garagebook.lib.metrics import MetricsCollector, get_metrics_collector
from garagebook.lib.settings import settings
from garagebook.lib.validation import (
    normalize_email,
    normalize_phone,
    normalize_plate,
    normalize_postcode,
    validate_coordinates,
)
from garagebook.models.bookings import Booking, BookingStatus
from garagebook.models.customers import Customer
from garagebook.models.services import Service
from garagebook.services.catalog import Catalog
from garagebook.services.customer_directory import CustomerDirectory, CustomerIdentity
from garagebook.services.token_minter import TokenMinter


logger = get_logger(__name__)


class BookingRequest(BaseModel):
    """Booking creation input.

    Either `customer_id`, or `name` plus at least one of `email`/`phone`.
    Plate, postcode, phone and email are stored in canonical form.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: Optional[int] = Field(default=None, gt=0)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None

    service_id: int = Field(..., gt=0)
    vehicle_plate: str
    address: str = Field(..., min_length=1, max_length=255)
    postcode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("vehicle_plate")
    @classmethod
    def _plate(cls, value: str) -> str:
        return normalize_plate(value)

    @field_validator("postcode")
    @classmethod
    def _postcode(cls, value: Optional[str]) -> Optional[str]:
        return normalize_postcode(value) if value else None

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        return normalize_email(value) if value else None

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value) if value else None

    @model_validator(mode="after")
    def _identity_and_coordinates(self) -> "BookingRequest":
        if self.customer_id is None:
            if not self.name:
                raise PydanticCustomError(
                    "identity_missing",
                    "name is required when customer_id is not given",
                    {"field": "name"},
                )
            if not (self.email or self.phone):
                raise PydanticCustomError(
                    "identity_missing",
                    "email or phone is required when customer_id is not given",
                    {"field": "email"},
                )

        try:
            validate_coordinates(self.lat, self.lng)
        except ValueError as e:
            field = "lng" if self.lng is None else "lat"
            raise PydanticCustomError("coordinates", str(e), {"field": field})

        return self

    def customer_identity(self) -> CustomerIdentity:
        return CustomerIdentity(
            name=self.name,
            email=self.email,
            phone=self.phone,
            vehicle_plate=self.vehicle_plate,
            address=self.address,
        )


def parse_booking_request(data: Mapping[str, Any]) -> BookingRequest:
    """
    Validate a raw mapping into a BookingRequest.

    Raises:
        ValidationException: naming the first offending field
    """
    try:
        return BookingRequest.model_validate(data)
    except PydanticValidationError as e:
        field, reason = describe_error(e.errors()[0])
        raise ValidationException(field, reason) from e


@dataclass
class BookingResult:
    """A booking together with its token and rendered QR code."""
    booking: Booking
    token: Optional[str]
    qr_code: Optional[str] = None

    @property
    def token_status(self) -> str:
        return "assigned" if self.token else "pending"


@dataclass
class BookingListing:
    """Booking row joined with display names."""
    booking: Booking
    customer_name: str
    service_name: str


class BookingWorkflow:
    """Orchestrates booking creation and token lifecycle.

    Collaborators are injected: the storage handle, the token minter, and the
    metrics collector. Each storage step uses its own short session so no
    transaction is held across the token-minting retries.
    """

    def __init__(
        self,
        database: Database,
        minter: TokenMinter,
        metrics: Optional[MetricsCollector] = None,
        mint_attempts: Optional[int] = None,
    ):
        self.database = database
        self.minter = minter
        self.metrics = metrics or get_metrics_collector()
        self.mint_attempts = mint_attempts or settings.token_mint_attempts

    async def create_booking(self, request: BookingRequest) -> BookingResult:
        """Create a pending booking and attach a fresh token.

        Args:
            request: Validated booking input

        Returns:
            BookingResult; `token` is None when attaching it failed after the
            booking was stored (token_status == "pending")

        Raises:
            NotFoundException: unknown service or customer id; nothing written
            PersistenceException: the booking could not be stored
        """
        async with self.database.session() as session:
            booking = await self._persist_booking(session, request)

        token = await self._attach_token(booking.id)
        booking.token = token
        qr_code = await self._render(token) if token else None

        result = BookingResult(booking=booking, token=token, qr_code=qr_code)
        self.metrics.increment_bookings(result.token_status)

        logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "customer_id": booking.customer_id,
                "service_id": booking.service_id,
                "token_status": result.token_status,
            },
        )
        return result

    async def _persist_booking(self, session: AsyncSession, request: BookingRequest) -> Booking:
        try:
            service = await Catalog(session).get_by_id(request.service_id)
            if service is None or not service.active:
                raise NotFoundException("Service", request.service_id)

            customer = await self._resolve_customer(session, request)

            booking = Booking(
                customer_id=customer.id,
                service_id=service.id,
                vehicle_plate=request.vehicle_plate,
                address=request.address,
                postcode=request.postcode,
                latitude=request.lat,
                longitude=request.lng,
                status=BookingStatus.PENDING,
            )
            session.add(booking)
            await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Booking insert failed: {e}")
            raise PersistenceException("Could not store booking") from e

        return booking

    async def _resolve_customer(self, session: AsyncSession, request: BookingRequest) -> Customer:
        directory = CustomerDirectory(session)

        if request.customer_id is not None:
            customer = await directory.get_by_id(request.customer_id)
            if customer is None:
                raise NotFoundException("Customer", request.customer_id)
            return customer

        customer, created = await directory.resolve_or_create(request.customer_identity())
        self.metrics.increment_customers("created" if created else "reused")
        return customer

    async def _attach_token(self, booking_id: int) -> Optional[str]:
        """Mint and attach a token, re-minting on collision.

        Returns:
            The attached token, or None if it is left pending
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.mint_attempts),
            retry=retry_if_exception_type(ConflictException),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._try_attach(booking_id)
        except ConflictException:
            logger.error(
                "Token collisions exhausted, token left pending",
                extra={"booking_id": booking_id, "attempts": self.mint_attempts},
            )
        except PersistenceException:
            logger.error(
                "Token attach failed, token left pending",
                extra={"booking_id": booking_id},
            )
        return None

    async def _try_attach(self, booking_id: int) -> Optional[str]:
        token = self.minter.mint(booking_id)

        async with self.database.session() as session:
            try:
                result = await session.execute(
                    update(Booking)
                    .where(Booking.id == booking_id, Booking.token.is_(None))
                    .values(token=token)
                )
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                self.metrics.increment_token_conflicts()
                logger.warning("Booking token collision, minting again", extra={"booking_id": booking_id})
                raise ConflictException("Booking token collision", details={"booking_id": booking_id}) from e
            except SQLAlchemyError as e:
                raise PersistenceException("Could not attach booking token") from e

            if result.rowcount == 0:
                # Token attached concurrently (sweep or explicit reissue)
                return await session.scalar(select(Booking.token).where(Booking.id == booking_id))

        logger.info("Booking token attached", extra={"booking_id": booking_id})
        return token

    async def _render(self, token: str) -> Optional[str]:
        try:
            return await self.minter.encode_async(token)
        except EncodingException as e:
            self.metrics.increment_encoding_failures()
            logger.warning(f"QR encoding failed: {e.message}")
            return None

    async def ensure_token(self, booking_id: int) -> BookingResult:
        """Return the booking's token, minting one if it is still pending."""
        booking = await self.get_booking(booking_id)

        if booking.token is None:
            booking.token = await self._attach_token(booking.id)

        qr_code = await self._render(booking.token) if booking.token else None
        return BookingResult(booking=booking, token=booking.token, qr_code=qr_code)

    async def attach_missing_tokens(self, limit: int = 500) -> int:
        """
        Attach tokens to bookings stored without one.

        Returns:
            Number of bookings that received a token
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(Booking.id)
                .where(Booking.token.is_(None))
                .order_by(Booking.id)
                .limit(limit)
            )
            booking_ids = list(result.scalars().all())

        attached = 0
        for booking_id in booking_ids:
            if await self._attach_token(booking_id):
                attached += 1

        if booking_ids:
            logger.info(
                "Token sweep finished",
                extra={"pending": len(booking_ids), "attached": attached},
            )
        return attached

    async def find_by_token(self, token: str) -> BookingResult:
        """
        Resolve a scanned token to its booking.

        Raises:
            NotFoundException: token invalid or not attached to any booking
        """
        booking_id = self.minter.decode(token)
        if booking_id is None:
            raise NotFoundException("Booking")

        async with self.database.session() as session:
            booking = await session.get(Booking, booking_id)

        if booking is None or booking.token != token:
            raise NotFoundException("Booking")
        return BookingResult(booking=booking, token=booking.token)

    async def get_booking(self, booking_id: int) -> Booking:
        async with self.database.session() as session:
            booking = await session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundException("Booking", booking_id)
        return booking

    async def list_bookings(self, customer_id: Optional[int] = None) -> List[BookingListing]:
        """
        List bookings joined with customer and service names, newest first.

        Raises:
            NotFoundException: customer_id given but unknown
        """
        stmt = (
            select(Booking, Customer.name, Service.name)
            .join(Customer, Booking.customer_id == Customer.id)
            .join(Service, Booking.service_id == Service.id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )

        async with self.database.session() as session:
            if customer_id is not None:
                if await session.get(Customer, customer_id) is None:
                    raise NotFoundException("Customer", customer_id)
                stmt = stmt.where(Booking.customer_id == customer_id)

            result = await session.execute(stmt)
            rows = result.all()

        return [
            BookingListing(booking=booking, customer_name=customer_name, service_name=service_name)
            for booking, customer_name, service_name in rows
        ]
