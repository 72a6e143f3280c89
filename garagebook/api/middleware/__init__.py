"""
API middleware module.
"""
from garagebook.api.middleware.error_handler import (
    AppException,
    ValidationException,
    NotFoundException,
    ConflictException,
    PersistenceException,
    EncodingException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)

__all__ = [
    "AppException",
    "ValidationException",
    "NotFoundException",
    "ConflictException",
    "PersistenceException",
    "EncodingException",
    "app_exception_handler",
    "validation_exception_handler",
    "http_exception_handler",
    "unhandled_exception_handler",
]
