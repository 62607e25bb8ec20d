"""
FastAPI HTTP Transport for Loan Processing Service

Provides REST endpoints:
- /health - Liveness probe (JSON)
- /health/live - Liveness probe (plain text)
- /health/ready - Readiness probe (checks DB)
- /api/loans - List loans with their customers
- /api/stats - Circuit breaker statistics

NOTE: Do NOT add `from __future__ import annotations` to this file.
PEP 563 breaks FastAPI's runtime introspection for parameter sources.
"""

import logging
import math
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from opentelemetry.trace import Status, StatusCode

from src.common.context import RequestContext
from src.common.resilience import (
    CircuitBreakerRegistry,
    Rejected,
    ResilientCall,
    Success,
)
from src.common.telemetry import (
    ServiceTelemetry,
    get_tracer,
    init_telemetry,
    shutdown_telemetry,
)

from ...adapters.database import check_db_health, create_db_pool
from ...config import LoanServiceConfig
from ...core.repository import LoanRepository, LoanSource

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def create_app(
    config: LoanServiceConfig | None = None,
    repository: LoanSource | None = None,
    resilient_call: ResilientCall | None = None,
    telemetry: ServiceTelemetry | None = None,
) -> FastAPI:
    """
    Create a FastAPI application for the loan processing service.

    Args:
        config: Service configuration
        repository: Object with an async list_loans(); when omitted, a
            LoanRepository over a pool created at startup is used
        resilient_call: Retry/circuit breaker wrapper; built from config if omitted
        telemetry: Event tracker; built from config if omitted

    Returns:
        FastAPI application instance
    """
    config = config or LoanServiceConfig()
    owns_telemetry = telemetry is None

    if resilient_call is None:
        registry = CircuitBreakerRegistry(
            failure_threshold=config.circuit_failure_threshold,
            recovery_timeout=config.circuit_recovery_seconds,
        )
        resilient_call = ResilientCall(registry, retry_config=config.retry_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        logger.info(f"Starting loan processing service: {config.server_name}")

        if owns_telemetry:
            init_telemetry(config.telemetry_config())

        if app.state.repository is None:
            app.state.db_pool = await create_db_pool(
                config.postgres_url,
                min_size=config.postgres_pool_min,
                max_size=config.postgres_pool_max,
                command_timeout=config.postgres_command_timeout,
                statement_cache_size=config.postgres_statement_cache_size,
            )
            app.state.repository = LoanRepository(app.state.db_pool)

        logger.info("Loan processing service initialized")
        yield

        logger.info("Shutting down loan processing service")
        if app.state.db_pool is not None:
            await app.state.db_pool.close()
        if owns_telemetry:
            shutdown_telemetry()
        logger.info("Loan processing service shut down")

    app = FastAPI(
        title="Loan Processing Service",
        description="Looks up mortgage loans and the customers holding them",
        version=config.server_version,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.repository = repository
    app.state.db_pool = None
    app.state.resilient_call = resilient_call
    app.state.telemetry = telemetry or ServiceTelemetry(config.server_name)

    @app.get("/health")
    async def liveness_check() -> JSONResponse:
        """Liveness probe - just checks if process is alive."""
        return JSONResponse(content={"status": "alive"}, status_code=200)

    @app.get("/health/live", response_class=PlainTextResponse)
    async def liveness_text() -> str:
        """Liveness probe for platforms expecting a plain text body."""
        return "Healthy"

    @app.get("/health/ready")
    async def readiness_check() -> JSONResponse:
        """Readiness probe - checks the database and its loan tables."""
        checks: dict[str, Any] = {}

        if app.state.db_pool is not None:
            checks["database"] = await check_db_health(app.state.db_pool)
        elif app.state.repository is not None:
            checks["database"] = {"connected": True, "ready": True, "external": True}
        else:
            checks["database"] = {
                "connected": False,
                "ready": False,
                "error": "pool not initialized",
            }

        ready = bool(checks["database"].get("ready"))
        return JSONResponse(
            content={"status": "ready" if ready else "not_ready", "checks": checks},
            status_code=200 if ready else 503,
        )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with service info."""
        return {
            "name": config.server_name,
            "version": config.server_version,
            "endpoints": {
                "health": "/health",
                "live": "/health/live",
                "ready": "/health/ready",
                "loans": "/api/loans",
                "stats": "/api/stats",
            },
        }

    @app.get("/api/loans")
    async def get_loans(request: Request) -> JSONResponse:
        """List all loans with their customers."""
        context = RequestContext.from_headers(request.headers)
        tracker: ServiceTelemetry = app.state.telemetry

        with tracer.start_as_current_span("loans.list") as span:
            span.set_attribute("user.id", context.user_id)
            span.set_attribute("request.correlation_id", context.correlation_id)
            tracker.track_event("LoanLookupRequested", context.to_properties())

            outcome = await app.state.resilient_call.call(
                config.operation_key, app.state.repository.list_loans
            )
            span.set_attribute("outcome", type(outcome).__name__)

            if isinstance(outcome, Success):
                span.set_attribute("loans.count", len(outcome.value))
                tracker.track_event("LoanLookupSuccess", context.to_properties())
                tracker.track_metric("LoanLookupSuccess", 1)
                return JSONResponse(content=[loan.to_dict() for loan in outcome.value])

            span.set_status(Status(StatusCode.ERROR, outcome.message))
            properties = {**context.to_properties(), "error": outcome.message}
            tracker.track_event("LoanLookupError", properties)
            tracker.track_metric("LoanLookupError", 1)

            if isinstance(outcome, Rejected):
                headers = {}
                if outcome.retry_after is not None:
                    headers["Retry-After"] = str(max(1, math.ceil(outcome.retry_after)))
                return JSONResponse(
                    content={"error": outcome.message},
                    status_code=503,
                    headers=headers,
                )

            tracker.track_exception(outcome.error, context.to_properties())
            return JSONResponse(content={"error": outcome.message}, status_code=500)

    @app.get("/api/stats")
    async def get_stats() -> JSONResponse:
        """Get circuit breaker statistics."""
        registry = app.state.resilient_call.registry
        return JSONResponse(
            content={
                "circuit_breakers": {
                    key: stats.to_dict() for key, stats in registry.stats().items()
                },
            }
        )

    return app


async def run_http_server(config: LoanServiceConfig | None = None) -> None:
    """
    Run the HTTP server.

    Args:
        config: Service configuration
    """
    import uvicorn

    config = config or LoanServiceConfig()
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
