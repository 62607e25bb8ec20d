"""
Core loan lookup logic.

Domain models and data access, independent of any transport or framework.
"""

from .models import Customer, Loan
from .repository import LoanQueryError, LoanRepository, LoanSource

__all__ = ["Customer", "Loan", "LoanQueryError", "LoanRepository", "LoanSource"]
