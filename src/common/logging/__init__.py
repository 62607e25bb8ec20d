"""
Common Logging Utilities

Log configuration with credential redaction for the mortgage services.
"""

from src.common.logging.sanitizer import (
    SanitizingFilter,
    configure_sanitized_logging,
    get_sanitized_logger,
)

__all__ = [
    "SanitizingFilter",
    "configure_sanitized_logging",
    "get_sanitized_logger",
]
