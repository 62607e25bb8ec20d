"""
Customer Service Configuration

Configuration settings using pydantic-settings for environment variable support.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.common.telemetry import TelemetryConfig


class CustomerServiceConfig(BaseSettings):
    """
    Configuration for the Customer Service.

    Reads from environment variables with CUSTOMERS_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CUSTOMERS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server Identity
    server_name: str = Field(
        default="customer-service",
        description="Server name for identification",
    )
    server_version: str = Field(
        default="0.1.0",
        description="Server version",
    )

    # HTTP Configuration
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind",
    )
    port: int = Field(
        default=8081,
        description="Port to bind",
    )

    # Telemetry
    telemetry_enabled: bool = Field(
        default=True,
        description="Export traces and metrics over OTLP",
    )
    otlp_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP collector endpoint",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    def telemetry_config(self) -> TelemetryConfig:
        return TelemetryConfig(
            service_name=self.server_name,
            service_version=self.server_version,
            otlp_endpoint=self.otlp_endpoint,
            enabled=self.telemetry_enabled,
        )
