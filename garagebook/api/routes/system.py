"""
Operational routes: storage status with row counts.
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from garagebook.api.dependencies import get_database
from garagebook.lib.db import Database
from garagebook.lib.logging import get_logger
from garagebook.models import Booking, Customer, LoyaltyAccount, Service


logger = get_logger(__name__)
router = APIRouter(tags=["system"])

_COUNTED_TABLES = {
    "customers": Customer,
    "services": Service,
    "bookings": Booking,
    "loyalty_accounts": LoyaltyAccount,
}


class StatusResponse(BaseModel):
    database: str
    counts: Optional[Dict[str, int]] = None


@router.get("/status", response_model=StatusResponse)
async def storage_status(database: Database = Depends(get_database)) -> StatusResponse:
    """
    Shallow probe: is the store reachable, and how many rows per table.
    """
    if not await database.ping():
        return StatusResponse(database="unreachable")

    counts = {}
    try:
        async with database.session() as session:
            for table, model in _COUNTED_TABLES.items():
                counts[table] = await session.scalar(select(func.count()).select_from(model))
    except SQLAlchemyError as e:
        logger.warning(f"Status counts failed: {e}")
        return StatusResponse(database="ok")

    return StatusResponse(database="ok", counts=counts)
