"""
Customer Lookup

Serves simulated customer data. Negative ids are rejected with an error
that surfaces as a server error, so the failure path can be observed end
to end in telemetry.
"""

from __future__ import annotations

import logging

from .models import CustomerProfile

logger = logging.getLogger(__name__)


class InvalidCustomerIdError(ValueError):
    """Customer id is outside the valid range."""

    def __init__(self, customer_id: int) -> None:
        super().__init__("Customer ID cannot be negative")
        self.customer_id = customer_id


class CustomerLookup:
    """Returns a demo profile for any non-negative id."""

    def __init__(
        self,
        first_name: str = "Demo",
        last_name: str = "User",
        email: str = "demo.user@example.com",
    ):
        self._first_name = first_name
        self._last_name = last_name
        self._email = email

    def get_customer(self, customer_id: int) -> CustomerProfile:
        """
        Look up a customer.

        Raises:
            InvalidCustomerIdError: If customer_id is negative
        """
        if customer_id < 0:
            raise InvalidCustomerIdError(customer_id)

        return CustomerProfile(
            id=customer_id,
            first_name=self._first_name,
            last_name=self._last_name,
            email=self._email,
        )
