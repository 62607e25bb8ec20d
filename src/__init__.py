"""Mortgage demo backend - loan and customer lookup services."""

__version__ = "0.1.0"
