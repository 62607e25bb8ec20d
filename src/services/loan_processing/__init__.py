"""
Loan Processing Service

Standalone HTTP service listing mortgage loans with their customers.
Database access runs through a retry + circuit breaker policy.

Usage:
    # As a service
    python -m src.services.loan_processing --port 8080

    # Programmatic
    from src.services.loan_processing import LoanRepository, LoanServiceConfig
"""

__version__ = "0.1.0"

from .config import LoanServiceConfig
from .core.models import Customer, Loan
from .core.repository import LoanQueryError, LoanRepository

__all__ = [
    "Customer",
    "Loan",
    "LoanQueryError",
    "LoanRepository",
    "LoanServiceConfig",
]
