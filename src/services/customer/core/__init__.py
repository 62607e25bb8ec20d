"""
Core customer lookup logic, independent of any transport.
"""

from .lookup import CustomerLookup, InvalidCustomerIdError
from .models import CustomerProfile

__all__ = ["CustomerLookup", "CustomerProfile", "InvalidCustomerIdError"]
