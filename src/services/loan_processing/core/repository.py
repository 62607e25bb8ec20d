"""
Loan Repository

Reads loans and their customers from PostgreSQL.

The customer of each loan is fetched with its own query after the loans
query (the N+1 pattern). This service exists to demonstrate what that looks
like in traces and latency metrics, so keep it that way.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import asyncpg

from src.common.resilience import OperationError

from .models import Customer, Loan

if TYPE_CHECKING:
    from asyncpg import Connection, Pool

logger = logging.getLogger(__name__)

LOANS_QUERY = "SELECT loan_id, customer_id, amount, status FROM loans"
CUSTOMER_QUERY = "SELECT first_name, last_name, email FROM customers WHERE customer_id = $1"


@runtime_checkable
class LoanSource(Protocol):
    """Anything the loans endpoint can list loans from."""

    async def list_loans(self) -> list[Loan]:
        """Return every loan with its customer."""
        ...


class LoanQueryError(OperationError):
    """Loading loans from the database failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Loan query failed: {reason}", code="LOAN_QUERY")
        self.reason = reason


class LoanRepository:
    """Loan data access over an asyncpg pool."""

    def __init__(self, pool: Pool):
        self._pool = pool

    async def list_loans(self) -> list[Loan]:
        """
        Load every loan with its customer.

        Issues one query for the loans and one more per loan.

        Raises:
            LoanQueryError: On any database or connection error
        """
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(LOANS_QUERY)
                loans = []
                for row in rows:
                    customer = await self._get_customer_by_id(conn, row["customer_id"])
                    loans.append(
                        Loan(
                            loan_id=row["loan_id"],
                            customer=customer,
                            amount=Decimal(str(row["amount"])),
                            status=row["status"],
                        )
                    )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise LoanQueryError(str(e)) from e

        logger.debug(f"Loaded {len(loans)} loans with {len(loans) + 1} queries")
        return loans

    async def _get_customer_by_id(self, conn: Connection, customer_id: Any) -> Customer | None:
        record = await conn.fetchrow(CUSTOMER_QUERY, customer_id)
        if record is None:
            return None
        return Customer.from_record(record)
