"""
FastAPI HTTP Transport for Customer Service

Provides REST endpoints:
- /health - Liveness probe (JSON)
- /health/live - Liveness probe (plain text)
- /api/customers/{customer_id} - Look up one customer

NOTE: Do NOT add `from __future__ import annotations` to this file.
PEP 563 breaks FastAPI's runtime introspection for parameter sources.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from opentelemetry.trace import Status, StatusCode

from src.common.context import RequestContext
from src.common.telemetry import (
    ServiceTelemetry,
    get_tracer,
    init_telemetry,
    shutdown_telemetry,
)

from ...config import CustomerServiceConfig
from ...core.lookup import CustomerLookup, InvalidCustomerIdError

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def create_app(
    config: CustomerServiceConfig | None = None,
    lookup: CustomerLookup | None = None,
    telemetry: ServiceTelemetry | None = None,
) -> FastAPI:
    """
    Create a FastAPI application for the customer service.

    Args:
        config: Service configuration
        lookup: Customer lookup; a default CustomerLookup if omitted
        telemetry: Event tracker; built from config if omitted

    Returns:
        FastAPI application instance
    """
    config = config or CustomerServiceConfig()
    owns_telemetry = telemetry is None
    tracker = telemetry or ServiceTelemetry(config.server_name)
    lookup = lookup or CustomerLookup()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        logger.info(f"Starting customer service: {config.server_name}")
        if owns_telemetry:
            init_telemetry(config.telemetry_config())
        yield
        logger.info("Shutting down customer service")
        if owns_telemetry:
            shutdown_telemetry()

    app = FastAPI(
        title="Customer Service",
        description="Looks up customer details by id",
        version=config.server_version,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def liveness_check() -> JSONResponse:
        """Liveness probe - just checks if process is alive."""
        return JSONResponse(content={"status": "alive"}, status_code=200)

    @app.get("/health/live", response_class=PlainTextResponse)
    async def liveness_text() -> str:
        """Liveness probe for platforms expecting a plain text body."""
        return "Healthy"

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with service info."""
        return {
            "name": config.server_name,
            "version": config.server_version,
            "endpoints": {
                "health": "/health",
                "live": "/health/live",
                "customer": "/api/customers/{customer_id}",
            },
        }

    @app.get("/api/customers/{customer_id}")
    async def get_customer(customer_id: int, request: Request) -> JSONResponse:
        """Look up a customer by id."""
        context = RequestContext.from_headers(request.headers)

        with tracer.start_as_current_span("customers.get") as span:
            span.set_attribute("customer.id", customer_id)
            span.set_attribute("user.id", context.user_id)
            span.set_attribute("request.correlation_id", context.correlation_id)
            tracker.track_event("CustomerLookupRequested", context.to_properties())

            try:
                customer = lookup.get_customer(customer_id)
            except InvalidCustomerIdError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                tracker.track_event(
                    "CustomerLookupError", {**context.to_properties(), "error": str(e)}
                )
                tracker.track_metric("CustomerLookupError", 1)
                tracker.track_exception(e, context.to_properties())
                return JSONResponse(content={"error": str(e)}, status_code=500)

            tracker.track_event("CustomerLookupSuccess", context.to_properties())
            tracker.track_metric("CustomerLookupSuccess", 1)
            return JSONResponse(content=customer.to_dict())

    return app


async def run_http_server(config: CustomerServiceConfig | None = None) -> None:
    """
    Run the HTTP server.

    Args:
        config: Service configuration
    """
    import uvicorn

    config = config or CustomerServiceConfig()
    app = create_app(config)

    logger.info(f"Starting HTTP server on {config.host}:{config.port}")

    server_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(server_config)
    await server.serve()
