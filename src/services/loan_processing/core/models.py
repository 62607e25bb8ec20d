"""
Loan Processing Models

Data classes for loans and the customers that hold them.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class Customer:
    """Customer attached to a loan."""

    first_name: str
    last_name: str
    email: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
        }

    @classmethod
    def from_record(cls, record: Any) -> Customer:
        """Create from a database row."""
        return cls(
            first_name=record["first_name"],
            last_name=record["last_name"],
            email=record["email"],
        )


@dataclass(frozen=True)
class Loan:
    """A mortgage loan with its customer, if one exists."""

    loan_id: int
    customer: Customer | None
    amount: Decimal
    status: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "loanId": self.loan_id,
            "customer": self.customer.to_dict() if self.customer else None,
            "amount": self.amount_json(),
            "status": self.status,
        }

    def amount_json(self) -> float:
        """
        Amount as a JSON number, rounded half-up to cents.

        Amounts are stored as NUMERIC(12, 2); a float holds every such value
        closely enough that its shortest repr is the same decimal.
        """
        return float(self.amount.quantize(CENTS, rounding=ROUND_HALF_UP))
