"""
FastAPI application entry point.

`create_app()` wires routers, middleware and exception handlers. The storage
handle and token minter are opened in the lifespan and live on `app.state`.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from garagebook.api.routes import bookings, customers, services, system
from garagebook.api.middleware.error_handler import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from garagebook.lib.db import Database
from garagebook.lib.logging import get_logger, log_with_context, set_correlation_id
from garagebook.lib.metrics import get_metrics_collector
from garagebook.lib.settings import Settings, settings as default_settings
from garagebook.services.booking_workflow import BookingWorkflow
from garagebook.services.token_minter import TokenMinter

logger = get_logger(__name__)


# Correlation ID middleware
class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation_id to all requests for tracing.
    Accepts X-Correlation-ID from incoming requests or generates a new one.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        # Request state for handlers, context var for log records
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        logger.info(
            "Incoming request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None,
            }
        )

        response = await call_next(request)

        response.headers["X-Correlation-ID"] = correlation_id

        logger.info(
            "Response sent",
            extra={"status_code": response.status_code}
        )

        return response


def create_app(
    config: Optional[Settings] = None,
    database: Optional[Database] = None,
    token_minter: Optional[TokenMinter] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings to use (defaults to the environment)
        database: Pre-built storage handle; opened from config when omitted
        token_minter: Pre-built minter; created from config when omitted
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Open the storage handle at startup, dispose it at shutdown.
        """
        logger.info(f"{config.app_name} starting up...")
        app.state.database = database or Database(config.database_url, echo=config.database_echo)
        app.state.token_minter = token_minter or TokenMinter(
            secret_key=config.secret_key,
            box_size=config.qr_box_size,
            border=config.qr_border,
        )

        if config.token_sweep_on_startup:
            workflow = BookingWorkflow(
                app.state.database,
                app.state.token_minter,
                mint_attempts=config.token_mint_attempts,
            )
            try:
                attached = await workflow.attach_missing_tokens()
            except SQLAlchemyError as e:
                logger.error(f"Startup token sweep failed: {e}")
            else:
                log_with_context(logger, "info", "Startup token sweep finished", attached=attached)

        yield

        logger.info(f"{config.app_name} shutting down...")
        await app.state.database.dispose()

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Vehicle service bookings with per-booking QR tokens and loyalty points",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for module in (services, customers, bookings, system):
        app.include_router(module.router, prefix=config.api_prefix)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint():
        """
        Prometheus-compatible metrics endpoint.

        Metrics exposed:
        - bookings_created_total: Bookings stored, by token status
        - customers_resolved_total: Customers created vs reused while booking
        - token_conflicts_total: Token collisions that forced a re-mint
        - qr_encoding_failures_total: Tokens that could not be rendered
        - booking_transitions_total: Status changes by target status
        """
        return PlainTextResponse(
            get_metrics_collector().export_prometheus(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "garagebook.api.app:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )
