"""
Telemetry for the mortgage services.

OpenTelemetry setup plus a small event API used by request handlers.

Usage:
    from src.common.telemetry import TelemetryConfig, ServiceTelemetry, init_telemetry

    init_telemetry(TelemetryConfig(service_name="loan-processing"))
    telemetry = ServiceTelemetry("loan-processing")
    telemetry.track_event("LoanLookupRequested", {"correlationId": cid})
"""

from src.common.telemetry.events import ServiceTelemetry
from src.common.telemetry.setup import (
    TelemetryConfig,
    get_meter,
    get_tracer,
    init_telemetry,
    is_telemetry_enabled,
    shutdown_telemetry,
)

__all__ = [
    "ServiceTelemetry",
    "TelemetryConfig",
    "get_meter",
    "get_tracer",
    "init_telemetry",
    "is_telemetry_enabled",
    "shutdown_telemetry",
]
