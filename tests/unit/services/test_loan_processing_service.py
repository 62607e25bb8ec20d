"""
Unit Tests for the Loan Processing Service

Covers:
- Configuration
- LoanRepository queries (one loans query + one per loan)
- HTTP endpoints and outcome -> status mapping
"""

from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from opentelemetry.trace import StatusCode

from src.common.resilience import CircuitBreakerRegistry, ResilientCall
from src.common.telemetry import ServiceTelemetry
from src.services.loan_processing.__main__ import build_config, parse_args
from src.services.loan_processing.adapters.database import check_db_health, create_db_pool
from src.services.loan_processing.config import LoanServiceConfig
from src.services.loan_processing.core.models import Customer, Loan
from src.services.loan_processing.core.repository import (
    CUSTOMER_QUERY,
    LOANS_QUERY,
    LoanQueryError,
    LoanRepository,
)
from src.services.loan_processing.transports.http import create_app

ALICE = Customer(first_name="Alice", last_name="Smith", email="alice.smith@example.com")
BOB = Customer(first_name="Bob", last_name="Johnson", email="bob.johnson@example.com")

SEED_LOANS = [
    Loan(loan_id=1001, customer=ALICE, amount=Decimal("250000"), status="Pending"),
    Loan(loan_id=1002, customer=BOB, amount=Decimal("320000"), status="Approved"),
]


def make_pool(conn: MagicMock) -> MagicMock:
    """Mock asyncpg pool whose acquire() yields conn."""
    pool = MagicMock()
    acquire_cm = MagicMock()
    acquire_cm.__aenter__ = AsyncMock(return_value=conn)
    acquire_cm.__aexit__ = AsyncMock(return_value=False)
    pool.acquire.return_value = acquire_cm
    pool.close = AsyncMock()
    return pool


class FakeLoanRepository:
    """Repository failing a set number of calls before returning loans."""

    def __init__(self, loans: list[Loan] | None = None, failures: int = 0):
        self.loans = SEED_LOANS if loans is None else loans
        self.failures = failures
        self.calls = 0

    async def list_loans(self) -> list[Loan]:
        self.calls += 1
        if self.calls <= self.failures:
            raise LoanQueryError("connection refused")
        return self.loans


# =============================================================================
# Configuration Tests
# =============================================================================


class TestLoanServiceConfig:
    """Tests for LoanServiceConfig."""

    def test_default_config(self) -> None:
        config = LoanServiceConfig()

        assert config.server_name == "loan-processing"
        assert config.port == 8080
        assert config.operation_key == "loans-query"
        assert config.circuit_failure_threshold == 3
        assert config.circuit_recovery_seconds == 30.0

        retry = config.retry_config()
        assert retry.max_attempts == 4
        assert [retry.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_config_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOANS_PORT", "9090")
        monkeypatch.setenv("LOANS_CIRCUIT_FAILURE_THRESHOLD", "5")
        monkeypatch.setenv("LOANS_TELEMETRY_ENABLED", "false")

        config = LoanServiceConfig()

        assert config.port == 9090
        assert config.circuit_failure_threshold == 5
        assert config.telemetry_config().enabled is False

    def test_cli_overrides(self) -> None:
        args = parse_args(["--port", "8099", "--no-telemetry", "--log-level", "debug"])

        config = build_config(args)

        assert config.port == 8099
        assert config.telemetry_enabled is False
        assert config.log_level == "DEBUG"


# =============================================================================
# Repository Tests
# =============================================================================


class TestLoanRepository:
    """Tests for LoanRepository."""

    @pytest.mark.asyncio
    async def test_fetches_customer_per_loan(self) -> None:
        conn = MagicMock()
        conn.fetch = AsyncMock(
            return_value=[
                {"loan_id": 1001, "customer_id": 1, "amount": Decimal("250000"), "status": "Pending"},
                {"loan_id": 1002, "customer_id": 2, "amount": Decimal("320000"), "status": "Approved"},
            ]
        )
        conn.fetchrow = AsyncMock(
            side_effect=[
                {"first_name": "Alice", "last_name": "Smith", "email": "alice.smith@example.com"},
                {"first_name": "Bob", "last_name": "Johnson", "email": "bob.johnson@example.com"},
            ]
        )

        loans = await LoanRepository(make_pool(conn)).list_loans()

        assert loans == SEED_LOANS
        conn.fetch.assert_awaited_once_with(LOANS_QUERY)
        assert conn.fetchrow.await_count == 2
        conn.fetchrow.assert_any_await(CUSTOMER_QUERY, 1)
        conn.fetchrow.assert_any_await(CUSTOMER_QUERY, 2)

    @pytest.mark.asyncio
    async def test_missing_customer_is_none(self) -> None:
        conn = MagicMock()
        conn.fetch = AsyncMock(
            return_value=[{"loan_id": 7, "customer_id": 99, "amount": 1000, "status": "Rejected"}]
        )
        conn.fetchrow = AsyncMock(return_value=None)

        loans = await LoanRepository(make_pool(conn)).list_loans()

        assert loans[0].customer is None
        assert loans[0].to_dict()["customer"] is None

    @pytest.mark.asyncio
    async def test_connection_error_becomes_loan_query_error(self) -> None:
        conn = MagicMock()
        conn.fetch = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))

        with pytest.raises(LoanQueryError) as exc_info:
            await LoanRepository(make_pool(conn)).list_loans()

        assert exc_info.value.code == "LOAN_QUERY"
        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)

    def test_loan_serializes_camel_case(self) -> None:
        assert SEED_LOANS[0].to_dict() == {
            "loanId": 1001,
            "customer": {
                "firstName": "Alice",
                "lastName": "Smith",
                "email": "alice.smith@example.com",
            },
            "amount": 250000.0,
            "status": "Pending",
        }

    def test_amount_keeps_cents(self) -> None:
        loan = Loan(loan_id=1, customer=None, amount=Decimal("9999999999.99"), status="Approved")

        assert json.dumps(loan.to_dict()["amount"]) == "9999999999.99"

    def test_amount_rounds_half_up_to_cents(self) -> None:
        loan = Loan(loan_id=1, customer=None, amount=Decimal("1234.565"), status="Pending")

        assert loan.to_dict()["amount"] == 1234.57


class TestLoanDatabase:
    """Tests for the pool factory and readiness probe."""

    @pytest.mark.asyncio
    async def test_pool_applies_timeouts(self) -> None:
        with patch(
            "src.services.loan_processing.adapters.database.asyncpg.create_pool",
            AsyncMock(return_value=MagicMock()),
        ) as create_pool:
            await create_db_pool(
                "postgresql://localhost/mortgageappdb",
                command_timeout=5.0,
                statement_cache_size=0,
            )

        kwargs = create_pool.await_args.kwargs
        assert kwargs["command_timeout"] == 5.0
        assert kwargs["statement_cache_size"] == 0

    @pytest.mark.asyncio
    async def test_health_reports_loan_tables(self) -> None:
        conn = MagicMock()
        conn.fetch = AsyncMock(
            return_value=[
                {"name": "loans", "present": True},
                {"name": "customers", "present": True},
            ]
        )
        pool = make_pool(conn)
        pool.get_size.return_value = 2

        health = await check_db_health(pool)

        assert health == {
            "connected": True,
            "ready": True,
            "tables": {"loans": True, "customers": True},
            "pool_size": 2,
        }
        assert conn.fetch.await_args.args[1] == ["loans", "customers"]

    @pytest.mark.asyncio
    async def test_missing_table_is_not_ready(self) -> None:
        conn = MagicMock()
        conn.fetch = AsyncMock(
            return_value=[
                {"name": "loans", "present": True},
                {"name": "customers", "present": False},
            ]
        )
        pool = make_pool(conn)
        pool.get_size.return_value = 2

        health = await check_db_health(pool)

        assert health["connected"] is True
        assert health["ready"] is False

    @pytest.mark.asyncio
    async def test_unreachable_database(self) -> None:
        conn = MagicMock()
        conn.fetch = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))

        health = await check_db_health(make_pool(conn))

        assert health == {"connected": False, "ready": False, "error": "connection refused"}


# =============================================================================
# HTTP Tests
# =============================================================================


@pytest.fixture
def telemetry() -> MagicMock:
    return MagicMock(spec=ServiceTelemetry)


@pytest.fixture
def resilient(clock) -> ResilientCall:
    return ResilientCall(CircuitBreakerRegistry(clock=clock), sleep=clock.sleep)


def event_names(telemetry: MagicMock) -> list[str]:
    return [c.args[0] for c in telemetry.track_event.call_args_list]


class TestLoansEndpoint:
    """Tests for GET /api/loans."""

    def test_returns_loans(self, resilient, telemetry) -> None:
        app = create_app(repository=FakeLoanRepository(), resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            response = client.get(
                "/api/loans", headers={"X-User-Id": "alice", "Request-Id": "req-1"}
            )

        assert response.status_code == 200
        body = response.json()
        assert [loan["loanId"] for loan in body] == [1001, 1002]
        assert body[1]["customer"]["firstName"] == "Bob"

        assert event_names(telemetry) == ["LoanLookupRequested", "LoanLookupSuccess"]
        telemetry.track_event.assert_any_call(
            "LoanLookupRequested", {"userId": "alice", "correlationId": "req-1"}
        )
        telemetry.track_metric.assert_called_once_with("LoanLookupSuccess", 1)

    def test_anonymous_user_and_generated_correlation_id(self, resilient, telemetry) -> None:
        app = create_app(repository=FakeLoanRepository(), resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            client.get("/api/loans")

        properties = telemetry.track_event.call_args_list[0].args[1]
        assert properties["userId"] == "anonymous"
        assert len(properties["correlationId"]) == 36

    def test_recovers_within_retry_budget(self, resilient, telemetry, clock) -> None:
        repository = FakeLoanRepository(failures=3)
        app = create_app(repository=repository, resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            response = client.get("/api/loans")

        assert response.status_code == 200
        assert repository.calls == 4
        assert clock.sleeps == [2.0, 4.0, 8.0]

    def test_exhausted_retries_return_500(self, resilient, telemetry) -> None:
        repository = FakeLoanRepository(failures=10)
        app = create_app(repository=repository, resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            response = client.get("/api/loans")

        assert response.status_code == 500
        assert "connection refused" in response.json()["error"]
        assert repository.calls == 4
        assert event_names(telemetry) == ["LoanLookupRequested", "LoanLookupError"]
        telemetry.track_metric.assert_called_once_with("LoanLookupError", 1)
        telemetry.track_exception.assert_called_once()

    def test_open_circuit_returns_503(self, resilient, telemetry) -> None:
        repository = FakeLoanRepository(failures=100)
        app = create_app(repository=repository, resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            statuses = [client.get("/api/loans").status_code for _ in range(3)]
            rejected = client.get("/api/loans")

        assert statuses == [500, 500, 500]
        assert rejected.status_code == 503
        assert rejected.headers["Retry-After"] == "30"
        assert "Circuit breaker open for loans-query" in rejected.json()["error"]
        assert repository.calls == 12

    def test_half_open_trial_closes_circuit(self, resilient, telemetry, clock) -> None:
        repository = FakeLoanRepository(failures=12)
        app = create_app(repository=repository, resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            for _ in range(3):
                client.get("/api/loans")
            assert client.get("/api/loans").status_code == 503

            clock.advance(30)
            assert client.get("/api/loans").status_code == 200
            assert repository.calls == 13

            stats = client.get("/api/stats").json()

        assert stats["circuit_breakers"]["loans-query"]["state"] == "closed"


class TestLoanTracing:
    """Request telemetry lands on the loans.list span."""

    @pytest.fixture
    def traced(self, sdk_tracer):
        with patch("src.services.loan_processing.transports.http.app.tracer", sdk_tracer):
            yield

    def test_success_span(self, traced, resilient, span_exporter) -> None:
        telemetry = ServiceTelemetry("loan-processing", meter=MagicMock())
        app = create_app(repository=FakeLoanRepository(), resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            client.get("/api/loans", headers={"X-User-Id": "alice"})

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "loans.list"
        assert span.attributes["user.id"] == "alice"
        assert span.attributes["loans.count"] == 2
        assert [e.name for e in span.events] == ["LoanLookupRequested", "LoanLookupSuccess"]

    def test_failure_span_records_error_and_exception(
        self, traced, resilient, span_exporter
    ) -> None:
        telemetry = ServiceTelemetry("loan-processing", meter=MagicMock())
        repository = FakeLoanRepository(failures=10)
        app = create_app(repository=repository, resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            assert client.get("/api/loans").status_code == 500

        (span,) = span_exporter.get_finished_spans()
        assert span.attributes["outcome"] == "Failed"
        assert span.status.status_code == StatusCode.ERROR
        assert [e.name for e in span.events] == [
            "LoanLookupRequested",
            "LoanLookupError",
            "exception",
        ]
        error_event = span.events[1]
        assert "connection refused" in error_event.attributes["error"]
        assert span.events[2].attributes["exception.type"] == "LoanQueryError"


class TestLoanHealthEndpoints:
    """Tests for health and info endpoints."""

    def test_liveness(self, resilient, telemetry) -> None:
        app = create_app(repository=FakeLoanRepository(), resilient_call=resilient, telemetry=telemetry)

        with TestClient(app) as client:
            assert client.get("/health").json() == {"status": "alive"}
            live = client.get("/health/live")
            root = client.get("/").json()

        assert live.status_code == 200
        assert live.text == "Healthy"
        assert root["endpoints"]["loans"] == "/api/loans"

    def test_readiness_checks_database(self, telemetry) -> None:
        pool = make_pool(MagicMock())
        module = "src.services.loan_processing.transports.http.app"

        with (
            patch(f"{module}.create_db_pool", AsyncMock(return_value=pool)),
            patch(
                f"{module}.check_db_health",
                AsyncMock(return_value={"connected": False, "error": "timeout"}),
            ),
        ):
            app = create_app(telemetry=telemetry)
            with TestClient(app) as client:
                response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
        pool.close.assert_awaited_once()

    def test_readiness_passes_with_loan_tables(self, telemetry) -> None:
        pool = make_pool(MagicMock())
        module = "src.services.loan_processing.transports.http.app"
        health = {
            "connected": True,
            "ready": True,
            "tables": {"loans": True, "customers": True},
            "pool_size": 2,
        }

        with (
            patch(f"{module}.create_db_pool", AsyncMock(return_value=pool)) as create_pool,
            patch(f"{module}.check_db_health", AsyncMock(return_value=health)),
        ):
            app = create_app(LoanServiceConfig(postgres_statement_cache_size=0), telemetry=telemetry)
            with TestClient(app) as client:
                response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["database"]["tables"] == {"loans": True, "customers": True}
        assert create_pool.await_args.kwargs["statement_cache_size"] == 0
