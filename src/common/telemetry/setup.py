"""
OpenTelemetry Setup and Configuration.

Handles initialization of tracer and meter providers with OTLP exporters.
Until init_telemetry succeeds, the OpenTelemetry API hands out no-op
tracers and meters, so instrumented code runs unchanged without a collector.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

TELEMETRY_ENV_FLAG = "MORTGAGE_TELEMETRY_ENABLED"


@dataclass
class TelemetryConfig:
    """Configuration for telemetry setup."""

    # Service identification
    service_name: str = "mortgage"
    service_version: str = "0.1.0"
    environment: str = field(default_factory=lambda: os.getenv("MORTGAGE_ENV", "development"))

    # OTLP exporter settings
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    )
    otlp_insecure: bool = True

    # Feature flags
    enabled: bool = True
    tracing_enabled: bool = True
    metrics_enabled: bool = True

    metrics_export_interval_ms: int = 10000

    resource_attributes: dict[str, str] = field(default_factory=dict)


# Global state
_telemetry_initialized = False
_tracer_provider: Any = None
_meter_provider: Any = None


def is_disabled_by_env() -> bool:
    """Check if telemetry is disabled via environment variable."""
    value = os.getenv(TELEMETRY_ENV_FLAG, "true").lower()
    return value in ("false", "0", "no", "off")


def init_telemetry(config: TelemetryConfig | None = None) -> bool:
    """
    Initialize OpenTelemetry instrumentation.

    Call this once at service startup. Disabled when config.enabled is
    False or MORTGAGE_TELEMETRY_ENABLED=false.

    Returns:
        True if providers were installed, False otherwise
    """
    global _telemetry_initialized, _tracer_provider, _meter_provider

    if _telemetry_initialized:
        logger.debug("Telemetry already initialized")
        return True

    config = config or TelemetryConfig()
    if not config.enabled or is_disabled_by_env():
        logger.info("Telemetry disabled")
        return False

    try:
        resource_attrs = {
            SERVICE_NAME: config.service_name,
            SERVICE_VERSION: config.service_version,
            "deployment.environment": config.environment,
        }
        resource_attrs.update(config.resource_attributes)
        resource = Resource.create(resource_attrs)

        if config.tracing_enabled:
            _tracer_provider = TracerProvider(resource=resource)
            span_exporter = OTLPSpanExporter(
                endpoint=config.otlp_endpoint,
                insecure=config.otlp_insecure,
            )
            _tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
            trace.set_tracer_provider(_tracer_provider)
            logger.info(f"Tracing initialized, exporting to {config.otlp_endpoint}")

        if config.metrics_enabled:
            metric_exporter = OTLPMetricExporter(
                endpoint=config.otlp_endpoint,
                insecure=config.otlp_insecure,
            )
            reader = PeriodicExportingMetricReader(
                metric_exporter,
                export_interval_millis=config.metrics_export_interval_ms,
            )
            _meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
            metrics.set_meter_provider(_meter_provider)
            logger.info(f"Metrics initialized, exporting to {config.otlp_endpoint}")

    except Exception as e:
        logger.error(f"Failed to initialize telemetry: {e}")
        return False

    _telemetry_initialized = True
    return True


def shutdown_telemetry() -> None:
    """Flush pending spans and metrics, then shut the providers down."""
    global _tracer_provider, _meter_provider, _telemetry_initialized

    if not _telemetry_initialized:
        return

    try:
        if _meter_provider:
            _meter_provider.force_flush(timeout_millis=5000)
            _meter_provider.shutdown()
        if _tracer_provider:
            _tracer_provider.force_flush(timeout_millis=5000)
            _tracer_provider.shutdown()
    except Exception as e:
        logger.warning(f"Error during telemetry shutdown: {e}")
    finally:
        _tracer_provider = None
        _meter_provider = None
        _telemetry_initialized = False


def get_tracer(name: str = "mortgage") -> trace.Tracer:
    """Get a tracer for creating spans."""
    return trace.get_tracer(name)


def get_meter(name: str = "mortgage") -> metrics.Meter:
    """Get a meter for creating metrics."""
    return metrics.get_meter(name)


def is_telemetry_enabled() -> bool:
    """Check if telemetry providers have been installed."""
    return _telemetry_initialized
