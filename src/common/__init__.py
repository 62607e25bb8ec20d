"""
Shared building blocks for the mortgage services.

- resilience: retry, circuit breaker and ResilientCall
- logging: sanitized log configuration
- telemetry: OpenTelemetry setup and service events
"""
