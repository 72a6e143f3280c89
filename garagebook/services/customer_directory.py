"""Customer directory: lookup-or-create by natural key.

The natural key (`contact_key`) is the normalized email when one is given,
otherwise `tel:<phone>`. Creation goes through a single
`INSERT ... ON CONFLICT (contact_key) DO NOTHING` followed by a fetch, so two
concurrent bookings for the same new email always end up on one row.

A customer stored under one key is still found through the other contact
field: a phone-only customer who later books with that phone plus an email
keeps their record, and the email is added to it.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.api.middleware.error_handler import (
    ConflictException,
    PersistenceException,
    ValidationException,
)
from garagebook.lib.db import upsert_insert
from garagebook.lib.logging import get_logger
from garagebook.lib.validation import normalize_email, normalize_phone
from garagebook.models.customers import Customer


logger = get_logger(__name__)


@dataclass
class CustomerIdentity:
    """Identity fields supplied inline with a booking or registration.

    Values are expected in canonical form already (see lib.validation).
    """
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None
    address: Optional[str] = None


def contact_key_for(email: Optional[str], phone: Optional[str]) -> str:
    """Natural key for a customer: email wins over phone."""
    if email:
        return email
    if phone:
        return f"tel:{phone}"
    raise ValidationException("email", "email or phone is required")


class CustomerDirectory:
    """Lookup-or-create abstraction over customer identity records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        return await self.session.get(Customer, customer_id)

    async def find_by_email_or_phone(self, key: str) -> Optional[Customer]:
        """Find a customer by email address or phone number.

        Args:
            key: Raw email or phone; normalized before lookup

        Returns:
            Matching customer or None
        """
        try:
            if "@" in key:
                condition = Customer.email == normalize_email(key)
            else:
                condition = Customer.phone == normalize_phone(key)
        except ValueError:
            return None

        return await self._first(condition)

    async def _first(self, condition) -> Optional[Customer]:
        stmt = select(Customer).where(condition).order_by(Customer.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _match_existing(self, identity: CustomerIdentity, contact_key: str) -> Optional[Customer]:
        """
        Existing record for this identity.

        The natural key decides first. Failing that, a row sharing the other
        contact field matches when its own value for this one is blank or equal.
        """
        customer = await self._first(Customer.contact_key == contact_key)
        if customer is not None:
            return customer

        by_phone = Customer.phone == identity.phone
        by_email = Customer.email == identity.email
        if identity.email and identity.phone:
            condition = or_(
                and_(by_phone, or_(Customer.email.is_(None), by_email)),
                and_(by_email, or_(Customer.phone.is_(None), by_phone)),
            )
        elif identity.email:
            condition = by_email
        else:
            condition = by_phone
        return await self._first(condition)

    async def resolve_or_create(self, identity: CustomerIdentity) -> Tuple[Customer, bool]:
        """Return the customer for this identity, creating it if unseen.

        Atomic at the storage layer: the insert is skipped on a contact-key
        conflict and the existing row is fetched instead.

        Returns:
            (customer, created)

        Raises:
            PersistenceException: storage unreachable or write rejected
        """
        contact_key = contact_key_for(identity.email, identity.phone)

        try:
            customer = await self._match_existing(identity, contact_key)
            created = False

            if customer is None:
                result = await self.session.execute(
                    upsert_insert(self.session, Customer)
                    .values(
                        name=identity.name,
                        email=identity.email,
                        phone=identity.phone,
                        contact_key=contact_key,
                        vehicle_plate=identity.vehicle_plate,
                        address=identity.address,
                    )
                    .on_conflict_do_nothing(index_elements=["contact_key"])
                )
                created = result.rowcount == 1
                await self.session.commit()

                customer = await self._first(Customer.contact_key == contact_key)
                if customer is None:
                    raise PersistenceException("Customer vanished after upsert")

            if not created and self._fill_blanks(customer, identity):
                await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Customer upsert failed: {e}", extra={"contact_key": contact_key})
            raise PersistenceException("Could not store customer") from e

        logger.info(
            "Customer resolved",
            extra={"customer_id": customer.id, "customer_created": created},
        )
        return customer, created

    async def register(self, identity: CustomerIdentity) -> Customer:
        """Explicit registration call.

        Raises:
            ConflictException: a customer with this email/phone already exists
        """
        customer, created = await self.resolve_or_create(identity)
        if not created:
            raise ConflictException(
                "Customer already registered",
                details={"customer_id": customer.id},
            )
        return customer

    @staticmethod
    def _fill_blanks(customer: Customer, identity: CustomerIdentity) -> bool:
        """Copy contact fields the stored record lacks. Returns True if changed."""
        changed = False
        for field in ("email", "phone", "vehicle_plate", "address"):
            value = getattr(identity, field)
            if value and not getattr(customer, field):
                setattr(customer, field, value)
                changed = True
        return changed
