"""
Log Sanitization

Provides filters and utilities for redacting credentials from logs.
Database URLs and cloud connection strings end up in error messages
surprisingly often, so every service installs this at startup.
"""

from __future__ import annotations

import logging
import re
from re import Pattern
from typing import Any

# Patterns for sensitive data that should be redacted
SENSITIVE_PATTERNS: list[tuple[str, Pattern[str]]] = [
    # PostgreSQL connection URLs with password
    ("PG_CONN", re.compile(r"postgres(?:ql)?://[^:/\s]+:[^@\s]+@", re.IGNORECASE)),
    # SQL Server / ADO.NET style connection strings
    ("SQL_PASSWORD", re.compile(r"(password|pwd)\s*=\s*[^;\s]+", re.IGNORECASE)),
    # Azure storage connection strings
    (
        "AZURE_CONN",
        re.compile(
            r"DefaultEndpointsProtocol=https;AccountName=[^;]+;AccountKey=[^;\s]+", re.IGNORECASE
        ),
    ),
    # Application Insights / OTLP instrumentation keys
    (
        "INSTRUMENTATION_KEY",
        re.compile(r"InstrumentationKey\s*=\s*[0-9a-f\-]{16,}", re.IGNORECASE),
    ),
    # Bearer tokens in headers
    ("BEARER", re.compile(r"Bearer\s+[a-zA-Z0-9\-_\.]+", re.IGNORECASE)),
    # Generic key=value secrets
    (
        "SECRET",
        re.compile(r"(secret|api[_-]?key|token)\s*[=:]\s*['\"]?[^\s'\"]{8,}['\"]?", re.IGNORECASE),
    ),
]

# Placeholder for redacted content
REDACTION_PLACEHOLDER = "[REDACTED]"


class SanitizingFilter(logging.Filter):
    """
    A logging filter that redacts credentials from log messages.

    Usage:
        logger = logging.getLogger(__name__)
        logger.addFilter(SanitizingFilter())
    """

    def __init__(
        self,
        name: str = "",
        additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
        redaction_placeholder: str = REDACTION_PLACEHOLDER,
    ):
        super().__init__(name)
        self._patterns = list(SENSITIVE_PATTERNS)
        if additional_patterns:
            self._patterns.extend(additional_patterns)
        self._placeholder = redaction_placeholder

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place. Never drops a record."""
        if record.msg:
            record.msg = self.sanitize(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._sanitize_value(arg) for arg in record.args)

        return True

    def sanitize(self, text: str) -> str:
        """Redact every sensitive pattern in text."""
        result = text
        for pattern_name, pattern in self._patterns:
            result = pattern.sub(f"{pattern_name}={self._placeholder}", result)
        return result

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.sanitize(value)
        return value


def configure_sanitized_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
) -> None:
    """
    Configure the root logger with sanitization enabled.

    Args:
        level: Logging level, as an int or a name such as "info"
        format_string: Log format string (uses default if not specified)
        additional_patterns: Extra patterns to redact
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=level, format=format_string)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    sanitizing_filter = SanitizingFilter(additional_patterns=additional_patterns)

    # Root logger filters don't apply to records propagated from child loggers
    for handler in root_logger.handlers:
        if not any(isinstance(f, SanitizingFilter) for f in handler.filters):
            handler.addFilter(sanitizing_filter)


def get_sanitized_logger(name: str) -> logging.Logger:
    """Get a logger with a SanitizingFilter attached."""
    logger = logging.getLogger(name)

    has_sanitizing_filter = any(isinstance(f, SanitizingFilter) for f in logger.filters)
    if not has_sanitizing_filter:
        logger.addFilter(SanitizingFilter())

    return logger
