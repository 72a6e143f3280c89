"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from garagebook.models.customers import Customer
from garagebook.models.services import Service
from garagebook.models.bookings import Booking, BookingStatus
from garagebook.models.loyalty import LoyaltyAccount

__all__ = [
    "Customer",
    "Service",
    "Booking",
    "BookingStatus",
    "LoyaltyAccount",
]
