"""
Pytest fixtures for the consultflow test suite.

Provides:
- Structured logging capture
- A DeterministicClock
- In-memory stores (JSON round-tripped through the codecs) and the services
  wired over them
- A seeded chart of accounts for two companies
- A SQLite engine for the SQL record store tests
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from consultflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from consultflow_kernel.domain.clock import DeterministicClock
from consultflow_kernel.domain.dtos import Account, AccountType, Company, ExchangeRate
from consultflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from consultflow_kernel.services.audit_service import AuditService
from consultflow_kernel.services.coa_service import CoAService
from consultflow_kernel.services.company_service import CompanyService
from consultflow_kernel.services.fx_service import FxService
from consultflow_kernel.services.mapping_service import MappingService
from consultflow_kernel.services.transaction_service import TransactionService
from consultflow_kernel.services.trial_balance_service import TrialBalanceService
from consultflow_kernel.storage.codecs import (
    AccountCodec,
    AuditEventCodec,
    CompanyCodec,
    ExchangeRateCodec,
    JournalTransactionCodec,
    LearnedMappingCodec,
    TrialBalanceCodec,
)
from consultflow_kernel.storage.memory import InMemoryStore
from consultflow_ingestion.services.upload_service import UploadService
from consultflow_modules.consolidation.codecs import (
    ConsolidationAdjustmentCodec,
    InsightCodec,
    SeriesPointCodec,
)
from consultflow_modules.consolidation.service import ConsolidationService
from consultflow_modules.reporting.config import ReportingConfig

TEST_ACTOR = "analyst@consultflow.test"

# Seed chart shared by both test companies: 1000-1999 assets, 2000-2999
# liabilities, 3000-3999 equity, 4000 revenue, 5000+ expenses.  "1999" is a
# parent of the current-asset lines.
SEED_ACCOUNTS = (
    ("acc-1999", "1999", "Current Assets", AccountType.ASSET, None),
    ("acc-1000", "1000", "Cash", AccountType.ASSET, "acc-1999"),
    ("acc-1100", "1100", "Accounts Receivable", AccountType.ASSET, "acc-1999"),
    ("acc-1200", "1200", "Inventory", AccountType.ASSET, "acc-1999"),
    ("acc-1500", "1500", "Equipment", AccountType.ASSET, None),
    ("acc-2000", "2000", "Accounts Payable", AccountType.LIABILITY, None),
    ("acc-2500", "2500", "Long-term Loan", AccountType.LIABILITY, None),
    ("acc-3000", "3000", "Share Capital", AccountType.EQUITY, None),
    ("acc-3100", "3100", "Retained Earnings", AccountType.EQUITY, None),
    ("acc-4000", "4000", "Sales Revenue", AccountType.REVENUE, None),
    ("acc-5000", "5000", "Salaries", AccountType.EXPENSE, None),
    ("acc-5100", "5100", "Rent", AccountType.EXPENSE, None),
)


def seed_accounts(company_id: str) -> list[Account]:
    return [
        Account(
            id=f"{company_id}-{account_id}",
            company_id=company_id,
            account_code=code,
            account_name=name,
            account_type=account_type,
            parent_account_id=f"{company_id}-{parent}" if parent else None,
        )
        for account_id, code, name, account_type, parent in SEED_ACCOUNTS
    ]


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture consultflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, tb_service):
            tb_service.add_tb(...)
            logs = captured_logs()
            assert any(r["message"] == "tb_added" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("consultflow")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and stores
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 6, 30, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def stores():
    """One in-memory store per collection, JSON round-tripped on every save."""
    return {
        "companies": InMemoryStore("companies", CompanyCodec()),
        "coa": InMemoryStore("coa", AccountCodec()),
        "trial_balances": InMemoryStore("trial_balances", TrialBalanceCodec()),
        "exchange_rates": InMemoryStore("exchange_rates", ExchangeRateCodec()),
        "transactions": InMemoryStore("transactions", JournalTransactionCodec()),
        "audit": InMemoryStore("audit", AuditEventCodec()),
        "mappings": InMemoryStore("mappings", LearnedMappingCodec()),
        "series": InMemoryStore("series", SeriesPointCodec()),
        "consolidation_adjustments": InMemoryStore(
            "consolidation_adjustments", ConsolidationAdjustmentCodec(),
        ),
        "insights": InMemoryStore("insights", InsightCodec()),
    }


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def company_service(stores, deterministic_clock):
    return CompanyService(stores["companies"], deterministic_clock)


@pytest.fixture
def coa_service(stores, deterministic_clock):
    return CoAService(stores["coa"], deterministic_clock)


@pytest.fixture
def audit_service(stores, deterministic_clock):
    return AuditService(stores["audit"], deterministic_clock)


@pytest.fixture
def fx_service(stores, deterministic_clock):
    return FxService(stores["exchange_rates"], deterministic_clock)


@pytest.fixture
def mapping_service(stores, deterministic_clock):
    return MappingService(stores["mappings"], deterministic_clock)


@pytest.fixture
def tb_service(stores, coa_service, audit_service, fx_service, deterministic_clock):
    return TrialBalanceService(
        stores["trial_balances"], coa_service, audit_service, fx_service, deterministic_clock,
    )


@pytest.fixture
def transaction_service(stores, fx_service, audit_service, deterministic_clock):
    return TransactionService(
        stores["transactions"], fx_service, audit_service, deterministic_clock,
    )


@pytest.fixture
def upload_service(
    coa_service,
    mapping_service,
    fx_service,
    tb_service,
    company_service,
    transaction_service,
    deterministic_clock,
):
    return UploadService(
        coa_service,
        mapping_service,
        fx_service,
        tb_service,
        company_service=company_service,
        transaction_service=transaction_service,
        clock=deterministic_clock,
    )


@pytest.fixture
def reporting_config():
    return ReportingConfig()


@pytest.fixture
def consolidation_service(
    stores,
    company_service,
    coa_service,
    tb_service,
    fx_service,
    reporting_config,
    deterministic_clock,
):
    return ConsolidationService(
        stores["consolidation_adjustments"],
        stores["series"],
        stores["insights"],
        company_service,
        coa_service,
        tb_service,
        fx_service,
        config=reporting_config,
        clock=deterministic_clock,
    )


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def companies(company_service, coa_service):
    """Two companies sharing the seed chart: Lagos (NGN) and Nairobi (KES)."""
    lagos = company_service.upsert_company(Company("lagos", "Lagos Trading Ltd", "NGN"))
    nairobi = company_service.upsert_company(Company("nairobi", "Nairobi Services Ltd", "KES"))
    coa_service.upsert_coa("lagos", seed_accounts("lagos"))
    coa_service.upsert_coa("nairobi", seed_accounts("nairobi"))
    return {"lagos": lagos, "nairobi": nairobi}


@pytest.fixture
def add_rate(fx_service):
    """Record a rate: ``rate`` base units per one unit of ``target``."""

    def _add(company_id: str, base: str, target: str, on: date, rate: str) -> ExchangeRate:
        return fx_service.upsert_exchange_rate(
            company_id,
            ExchangeRate(
                id=ExchangeRate.default_id(base, target, on),
                base=base,
                target=target,
                date=on,
                rate=Decimal(rate),
            ),
        )

    return _add


# =============================================================================
# SQL store
# =============================================================================


@pytest.fixture
def sqlite_engine():
    """Fresh in-memory SQLite database with the record table created."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(sqlite_engine):
    return get_session_factory()
