"""
Integration tests for customer lookup-or-create.
"""
import asyncio
import logging

import pytest

from garagebook.api.middleware.error_handler import ConflictException, ValidationException
from garagebook.models import Customer
from garagebook.services.customer_directory import (
    CustomerDirectory,
    CustomerIdentity,
    contact_key_for,
)


pytestmark = pytest.mark.integration


@pytest.mark.unit
def test_contact_key_prefers_email():
    assert contact_key_for("alice@example.com", "07123456789") == "alice@example.com"
    assert contact_key_for(None, "07123456789") == "tel:07123456789"


@pytest.mark.unit
def test_contact_key_requires_contact():
    with pytest.raises(ValidationException) as exc_info:
        contact_key_for(None, None)
    assert exc_info.value.field == "email"


async def test_resolve_creates_then_reuses(database, count_rows):
    identity = CustomerIdentity(name="Alice", email="alice@example.com", phone="07123456789")

    async with database.session() as session:
        first, created = await CustomerDirectory(session).resolve_or_create(identity)
    async with database.session() as session:
        second, created_again = await CustomerDirectory(session).resolve_or_create(identity)

    assert created is True
    assert created_again is False
    assert first.id == second.id
    assert first.contact_key == "alice@example.com"
    assert await count_rows(database, Customer) == 1


async def test_resolve_keeps_stored_name(database):
    """A returning customer keeps the name on record."""
    async with database.session() as session:
        directory = CustomerDirectory(session)
        await directory.resolve_or_create(CustomerIdentity(name="Alice", email="alice@example.com"))
        customer, _ = await directory.resolve_or_create(
            CustomerIdentity(name="A. Smith", email="alice@example.com", address="10 High St")
        )

    assert customer.name == "Alice"
    assert customer.address == "10 High St"


async def test_concurrent_resolution_single_row(database, count_rows):
    identity = CustomerIdentity(name="Alice", email="alice@example.com")

    async def resolve():
        async with database.session() as session:
            return await CustomerDirectory(session).resolve_or_create(identity)

    results = await asyncio.gather(*[resolve() for _ in range(5)])

    assert len({customer.id for customer, _ in results}) == 1
    assert sum(1 for _, created in results if created) == 1
    assert await count_rows(database, Customer) == 1


async def test_find_by_email_or_phone(database):
    async with database.session() as session:
        directory = CustomerDirectory(session)
        by_email, _ = await directory.resolve_or_create(
            CustomerIdentity(name="Alice", email="alice@example.com")
        )
        by_phone, _ = await directory.resolve_or_create(
            CustomerIdentity(name="Bob", phone="07123456789")
        )

        assert (await directory.find_by_email_or_phone("ALICE@example.com")).id == by_email.id
        assert (await directory.find_by_email_or_phone("07123 456 789")).id == by_phone.id
        assert await directory.find_by_email_or_phone("nobody@example.com") is None
        assert await directory.find_by_email_or_phone("not a phone") is None


async def test_register_conflict(database):
    identity = CustomerIdentity(name="Alice", email="alice@example.com")

    async with database.session() as session:
        directory = CustomerDirectory(session)
        customer = await directory.register(identity)

        with pytest.raises(ConflictException) as exc_info:
            await directory.register(identity)

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["customer_id"] == customer.id


async def test_resolution_is_logged(database, caplog):
    identity = CustomerIdentity(name="Alice", email="alice@example.com")

    with caplog.at_level(logging.INFO, logger="garagebook.services.customer_directory"):
        async with database.session() as session:
            customer, _ = await CustomerDirectory(session).resolve_or_create(identity)
            await CustomerDirectory(session).resolve_or_create(identity)

    resolved = [r for r in caplog.records if r.getMessage() == "Customer resolved"]
    assert [r.customer_created for r in resolved] == [True, False]
    assert all(r.customer_id == customer.id for r in resolved)


async def test_phone_customer_matched_when_email_added(database, count_rows):
    async with database.session() as session:
        directory = CustomerDirectory(session)
        phone_only, _ = await directory.resolve_or_create(
            CustomerIdentity(name="Alice", phone="07123456789")
        )
        both, created = await directory.resolve_or_create(
            CustomerIdentity(name="Alice", email="alice@example.com", phone="07123456789")
        )

        assert created is False
        assert both.id == phone_only.id
        assert both.email == "alice@example.com"
        assert (await directory.find_by_email_or_phone("alice@example.com")).id == phone_only.id

    assert await count_rows(database, Customer) == 1


async def test_shared_phone_with_different_email_is_new_customer(database, count_rows):
    """A phone already paired with another email does not merge two people."""
    async with database.session() as session:
        directory = CustomerDirectory(session)
        alice, _ = await directory.resolve_or_create(
            CustomerIdentity(name="Alice", email="alice@example.com", phone="07123456789")
        )
        bob, created = await directory.resolve_or_create(
            CustomerIdentity(name="Bob", email="bob@example.com", phone="07123456789")
        )

    assert created is True
    assert bob.id != alice.id
    assert await count_rows(database, Customer) == 2
