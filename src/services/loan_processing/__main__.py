"""
Loan Processing Service - CLI Entry Point

Usage:
    python -m src.services.loan_processing [options]

Examples:
    # Start HTTP server with defaults / LOANS_* environment
    python -m src.services.loan_processing

    # Override bind address and database
    python -m src.services.loan_processing --host 0.0.0.0 --port 8080 \
        --postgres-url postgresql://mortgage:secret@db:5432/mortgageappdb
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from src.common.logging import configure_sanitized_logging

from .config import LoanServiceConfig


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Loan Processing Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind (default: from config or 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind (default: from config or 8080)",
    )
    parser.add_argument(
        "--postgres-url",
        default=None,
        help="PostgreSQL connection URL",
    )
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


def build_config(args: argparse.Namespace) -> LoanServiceConfig:
    """Build configuration from args and environment."""
    overrides = {}

    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.postgres_url:
        overrides["postgres_url"] = args.postgres_url
    if args.no_telemetry:
        overrides["telemetry_enabled"] = False
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    return LoanServiceConfig(**overrides)


def main() -> None:
    """Main entry point."""
    args = parse_args()
    config = build_config(args)
    configure_sanitized_logging(config.log_level)
    logger = logging.getLogger(__name__)

    logger.info("Starting Loan Processing Service")

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
