"""
Pytest configuration for unit tests.

Disables telemetry export and provides a controllable clock and an
in-memory span recorder.
"""

from __future__ import annotations

import os

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


def pytest_configure(config):
    """Disable OTLP export so unit tests never try to reach a collector."""
    os.environ["MORTGAGE_TELEMETRY_ENABLED"] = "false"


class FakeClock:
    """
    Monotonic clock under test control.

    `sleep` records the requested delay and advances time instead of waiting.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def sdk_tracer(span_exporter):
    """Tracer from a private provider, so the global provider stays untouched."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider.get_tracer("tests")
    provider.shutdown()
