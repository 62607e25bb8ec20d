"""
Customer Service

Standalone HTTP service returning customer details by id.

Usage:
    python -m src.services.customer --port 8081
"""

__version__ = "0.1.0"

from .config import CustomerServiceConfig
from .core.lookup import CustomerLookup, InvalidCustomerIdError
from .core.models import CustomerProfile

__all__ = [
    "CustomerLookup",
    "CustomerProfile",
    "CustomerServiceConfig",
    "InvalidCustomerIdError",
]
