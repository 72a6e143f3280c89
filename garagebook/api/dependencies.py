"""
API dependencies for FastAPI dependency injection.

Provides database sessions and the booking workflow, all built from the
storage handle and minter the application opened in its lifespan.
"""
from typing import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.lib.db import Database
from garagebook.services.booking_workflow import BookingWorkflow
from garagebook.services.token_minter import TokenMinter


def get_database(request: Request) -> Database:
    """Storage handle opened at startup."""
    return request.app.state.database


def get_token_minter(request: Request) -> TokenMinter:
    return request.app.state.token_minter


async def get_db(database: Database = Depends(get_database)) -> AsyncIterator[AsyncSession]:
    """
    Dependency for FastAPI routes to get a database session.

    Usage:
        @router.get("/example")
        async def example(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with database.session() as session:
        yield session


def get_booking_workflow(
    database: Database = Depends(get_database),
    minter: TokenMinter = Depends(get_token_minter),
) -> BookingWorkflow:
    return BookingWorkflow(database, minter)
