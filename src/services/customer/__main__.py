"""
Customer Service - CLI Entry Point

Usage:
    python -m src.services.customer [--host HOST] [--port PORT] [--log-level LEVEL]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from src.common.logging import configure_sanitized_logging

from .config import CustomerServiceConfig


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Customer Service")

    parser.add_argument("--host", default=None, help="Host to bind")
    parser.add_argument("--port", type=int, default=None, help="Port to bind")
    parser.add_argument(
        "--no-telemetry",
        action="store_true",
        help="Disable OpenTelemetry export",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (default: from config or info)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CustomerServiceConfig:
    """Build configuration from args and environment."""
    overrides = {}

    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.no_telemetry:
        overrides["telemetry_enabled"] = False
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    return CustomerServiceConfig(**overrides)


def main() -> None:
    """Main entry point."""
    args = parse_args()
    config = build_config(args)
    configure_sanitized_logging(config.log_level)
    logger = logging.getLogger(__name__)

    logger.info("Starting Customer Service")

    from .transports.http import run_http_server

    try:
        asyncio.run(run_http_server(config))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
