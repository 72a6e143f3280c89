"""
Services API routes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from garagebook.api.dependencies import get_db
from garagebook.api.middleware.error_handler import NotFoundException
from garagebook.models.services import Service
from garagebook.services.catalog import Catalog


# Pydantic schemas
class ServiceResponse(BaseModel):
    """Catalog entry."""
    id: int
    name: str
    category: str
    price: float
    description: Optional[str] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_model(cls, service: Service) -> "ServiceResponse":
        return cls(
            id=service.id,
            name=service.name,
            category=service.category,
            price=float(service.price),  # Numeric -> float for JSON
            description=service.description,
        )


# Router
router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=List[ServiceResponse])
async def list_services(
    category: Optional[str] = Query(None, description="Filter by category"),
    active_only: bool = Query(True, description="Show only active services"),
    db: AsyncSession = Depends(get_db),
) -> List[ServiceResponse]:
    """
    List bookable services.

    Query parameters:
    - category: Filter by service category (e.g. Maintenance, Repair)
    - active_only: Show only active services (default: true)
    """
    services = await Catalog(db).list_services(category=category, active_only=active_only)
    return [ServiceResponse.from_model(s) for s in services]


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: int,
    db: AsyncSession = Depends(get_db),
) -> ServiceResponse:
    service = await Catalog(db).get_by_id(service_id)
    if service is None:
        raise NotFoundException("Service", service_id)
    return ServiceResponse.from_model(service)
