"""
Service telemetry events.

Named business events (LoanLookupRequested, CustomerLookupError, ...) are
logged, counted and attached to the active span, so the same signal shows
up in logs, metrics and traces.
"""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace

from src.common.telemetry.setup import get_meter

logger = logging.getLogger(__name__)


class ServiceTelemetry:
    """
    Event, metric and exception tracking for one service.

    Example:
        telemetry = ServiceTelemetry("loan-processing")
        telemetry.track_event("LoanLookupRequested", {"userId": "anonymous"})
        telemetry.track_metric("LoanLookupSuccess", 1)
    """

    def __init__(self, service_name: str, meter: Any = None):
        self._service_name = service_name
        self._meter = meter or get_meter(service_name)

        self._events_total = self._meter.create_counter(
            name="mortgage_events_total",
            description="Business events emitted by the service",
            unit="1",
        )
        self._exceptions_total = self._meter.create_counter(
            name="mortgage_exceptions_total",
            description="Exceptions tracked by the service",
            unit="1",
        )
        self._metrics: dict[str, Any] = {}

    @property
    def service_name(self) -> str:
        return self._service_name

    def track_event(self, name: str, properties: dict[str, str] | None = None) -> None:
        """Record a named event with string properties."""
        props = dict(properties or {})
        logger.info(f"{self._service_name} event {name}: {props}")

        self._events_total.add(1, {"service": self._service_name, "event": name})

        span = trace.get_current_span()
        if span.is_recording():
            span.add_event(name, props)

    def track_metric(self, name: str, value: float = 1.0) -> None:
        """Add a value to the counter named after the metric."""
        counter = self._metrics.get(name)
        if counter is None:
            counter = self._meter.create_counter(name=name, unit="1")
            self._metrics[name] = counter
        counter.add(value, {"service": self._service_name})

    def track_exception(
        self,
        error: BaseException,
        properties: dict[str, str] | None = None,
    ) -> None:
        """Record an exception on the active span and count it."""
        props = dict(properties or {})
        logger.error(
            f"{self._service_name} exception {type(error).__name__}: {error} {props}"
        )

        self._exceptions_total.add(
            1, {"service": self._service_name, "exception": type(error).__name__}
        )

        span = trace.get_current_span()
        if span.is_recording():
            span.record_exception(error, attributes=props)
