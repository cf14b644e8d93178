"""
Pytest fixtures for the GST settlement engine test suite.

Provides:
- Structured logging set-up and log capture
- Storage adapters (in-memory, SQLite-backed SQLAlchemy)
- A deterministic clock and the packaged configuration
- Factories for GSTINs, vendors and orders

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL for tests marked ``postgres``.
  Those tests are skipped when it is not set.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from gst_config import get_active_config
from gst_engines.gstin import compute_check_character
from gst_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url, reset_engine
from gst_kernel.domain.clock import DeterministicClock
from gst_kernel.domain.orders import Order, OrderItem, VendorProfile
from gst_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from gst_kernel.storage.memory import InMemoryStorage
from gst_kernel.storage.sql import SqlAlchemyStorage
from gst_modules.bootstrap import build_engine

# Checksum-correct identifiers
VENDOR_GSTIN_MH = "27AAPFU0939F1ZV"
VENDOR_GSTIN_KA = "29ABCDE1234F1ZW"
CUSTOMER_GSTIN_DL = "07AAACR5055K1Z9"
CUSTOMER_GSTIN_TN = "33AAACH7409R1Z8"

# 15 July 2024, 12:00 IST: fiscal year 2024-25, Q2
JULY_2024 = datetime(2024, 7, 15, 6, 30, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (DATABASE_URL)"
    )


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
    Capture gst_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.settlement.settle_order(order, vendor)
            logs = captured_logs()
            assert any(r["message"] == "settlement_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("gst_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Configuration, clock, storage
# =============================================================================


@pytest.fixture(scope="session")
def config():
    """The packaged default configuration."""
    return get_active_config()


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(JULY_2024)


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def sql_storage(tmp_path):
    """SqlAlchemyStorage on a throwaway SQLite file."""
    init_engine_from_url(f"sqlite:///{tmp_path / 'gst_test.db'}")
    create_tables()
    yield SqlAlchemyStorage(get_session_factory())
    reset_engine()


@pytest.fixture(params=["memory", "sql"])
def storage(request):
    """Run the test against both storage adapters."""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def postgres_url():
    url = os.environ.get("DATABASE_URL")
    if not url or not url.startswith("postgresql"):
        pytest.skip("DATABASE_URL does not point at PostgreSQL")
    return url


@pytest.fixture
def engine(config, memory_storage, deterministic_clock):
    """A fully wired engine over in-memory storage."""
    return build_engine(config, memory_storage, deterministic_clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_gstin():
    """Build a checksum-correct GSTIN: ``make_gstin("27", "AAPFU0939F")``."""

    def _make(state_code: str = "27", pan: str = "AAPFU0939F", entity: str = "1") -> str:
        first14 = f"{state_code}{pan}{entity}Z"
        return first14 + compute_check_character(first14)

    return _make


@pytest.fixture
def make_vendor():
    def _make(
        vendor_id: str = "V1",
        tax_id: str | None = VENDOR_GSTIN_MH,
        has_tax_id: bool = True,
        jurisdiction: str = "27",
        commission_pct: Decimal | None = None,
    ) -> VendorProfile:
        return VendorProfile(
            vendor_id=vendor_id,
            tax_id=tax_id,
            has_tax_id=has_tax_id,
            jurisdiction=jurisdiction,
            business_name=f"{vendor_id} Traders",
            commission_pct=commission_pct,
        )

    return _make


@pytest.fixture
def make_order():
    def _make(
        order_id: str = "ORD-1",
        vendor_id: str = "V1",
        items: tuple[tuple[str, str, int, int], ...] = (("P1", "8471", 1, 100000),),
        buyer_jurisdiction: str = "27",
        seller_jurisdiction: str = "27",
        customer_tax_id: str | None = None,
        completed_at: datetime | None = JULY_2024,
        customer_id: str = "C1",
    ) -> Order:
        return Order(
            order_id=order_id,
            vendor_id=vendor_id,
            customer_id=customer_id,
            items=tuple(
                OrderItem(product_id=p, classification_code=c, quantity=q, unit_price=u)
                for p, c, q, u in items
            ),
            buyer_jurisdiction=buyer_jurisdiction,
            seller_jurisdiction=seller_jurisdiction,
            customer_tax_id=customer_tax_id,
            completed_at=completed_at,
        )

    return _make
