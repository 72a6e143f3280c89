"""
Shared fixtures: a throwaway SQLite database per test, a seeded catalog,
the booking workflow, and an HTTP client bound to the app.
"""
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from garagebook.api.app import create_app
from garagebook.lib.db import Database
from garagebook.lib.metrics import MetricsCollector
from garagebook.lib.settings import Settings
from garagebook.models import Service
from garagebook.services.booking_workflow import BookingWorkflow
from garagebook.services.token_minter import TokenMinter


TEST_SECRET = "test-secret-key-12345"


@pytest.fixture
async def database(tmp_path):
    """Fresh SQLite database with all tables created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'garagebook.db'}", echo=False)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def catalog(database):
    """Seed the catalog; service 1 is the Oil Change."""
    services = [
        Service(id=1, name="Oil Change", category="Maintenance",
                price=Decimal("45.00"), description="Full synthetic oil change"),
        Service(id=2, name="Brake Inspection", category="Maintenance",
                price=Decimal("30.00"), description="Check and adjust brakes"),
        Service(id=3, name="Battery Replacement", category="Repair",
                price=Decimal("120.00"), description="Replace old battery"),
        Service(id=4, name="Timing Belt", category="Repair",
                price=Decimal("200.00"), description="No longer offered", active=False),
    ]
    async with database.session() as session:
        session.add_all(services)
        await session.commit()
    return services


@pytest.fixture
def minter():
    return TokenMinter(secret_key=TEST_SECRET, box_size=2, border=1)


@pytest.fixture
def metrics():
    """Fresh metrics collector for each test."""
    return MetricsCollector()


@pytest.fixture
def workflow(database, minter, metrics):
    return BookingWorkflow(database, minter, metrics=metrics)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'garagebook.db'}",
        secret_key=TEST_SECRET,
        token_sweep_on_startup=False,
    )


@pytest.fixture
async def client(database, minter, test_settings):
    """
    HTTP client for the app.

    ASGITransport does not run the lifespan, so the handles the lifespan
    would open are placed on app.state directly.
    """
    app = create_app(config=test_settings, database=database, token_minter=minter)
    app.state.database = database
    app.state.token_minter = minter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def alice():
    """Booking input for the reference scenario."""
    return {
        "name": "Alice",
        "email": "alice@example.com",
        "phone": "07123456789",
        "service_id": 1,
        "vehicle_plate": "ab12 cde",
        "address": "10 High St",
        "postcode": "ME1 1AA",
    }


async def _count_rows(database: Database, model) -> int:
    async with database.session() as session:
        return await session.scalar(select(func.count()).select_from(model))


@pytest.fixture
def count_rows():
    """Row count for one table: `await count_rows(database, Customer)`."""
    return _count_rows
