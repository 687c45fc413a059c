"""
Pytest fixtures for the loan request test suite.

Provides:
- Structured logging capture
- A deterministic clock and default configuration
- A wired LifecycleController with its catalog
- Sample articles, kits and requests at each lifecycle stage
- An in-memory SQLite session for ORM tests
"""

import json
import logging
from datetime import date, timedelta
from io import StringIO
from uuid import uuid4

import pytest

from loan_kernel.db.engine import (
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from loan_kernel.domain.clock import DeterministicClock
from loan_kernel.domain.models import (
    Article,
    ArticleType,
    Kit,
    KitItem,
    PartialReturnRecord,
    ReturnEntry,
)
from loan_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from loan_modules._orm_registry import create_all_tables
from loan_modules.requests.catalog import RequestCatalog
from loan_modules.requests.config import LoanRequestConfig
from loan_modules.requests.service import LifecycleController, RequestLine


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
    Capture loan_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, controller):
            controller.approve(...)
            logs = captured_logs()
            assert any(r["message"] == "request_transitioned" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("loan_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2025-01-15 09:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def config():
    return LoanRequestConfig.with_defaults()


@pytest.fixture
def catalog():
    return RequestCatalog()


@pytest.fixture
def controller(config, catalog, deterministic_clock):
    return LifecycleController(config=config, catalog=catalog, clock=deterministic_clock)


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def multimeter():
    return Article(bin_code="BIN-TEST-001", name="Digital Multimeter", unit="units")


@pytest.fixture
def oscilloscope():
    return Article(bin_code="BIN-TEST-002", name="Oscilloscope", unit="units")


@pytest.fixture
def cable_ties():
    return Article(
        bin_code="BIN-CONS-001",
        name="Cable Ties",
        article_type=ArticleType.CONSUMABLE,
        unit="packs",
    )


@pytest.fixture
def return_date(deterministic_clock):
    return deterministic_clock.today() + timedelta(days=14)


@pytest.fixture
def office_kit():
    return Kit(
        id=uuid4(),
        bin_code="KIT-OFFICE-001",
        name="Office Starter Kit",
        category="office",
        items=(
            KitItem(Article(bin_code="BIN-OFF-001", name="Wireless Mouse"), 1),
            KitItem(Article(bin_code="BIN-OFF-002", name="Mechanical Keyboard"), 1),
            KitItem(Article(bin_code="BIN-STAT-001", name="Notebook Set"), 3),
        ),
    )


@pytest.fixture
def create_request(controller, multimeter, oscilloscope, return_date):
    """Factory for a manual request (pending-approval) with two items."""

    def _create(quantities=(5, 2), articles=None, requester="Ana Lopez", department="Engineering"):
        chosen = articles or (multimeter, oscilloscope)
        return controller.create_request(
            requester=requester,
            department=department,
            project="Test Bench",
            expected_return_date=return_date,
            lines=[RequestLine(a, q) for a, q in zip(chosen, quantities)],
        )

    return _create


@pytest.fixture
def approved_request(controller, create_request):
    request = create_request()
    return controller.approve(request.id, actor="supervisor")


@pytest.fixture
def delivered_request(controller, approved_request):
    """A request packed whole and handed over (pending-to-return)."""
    controller.tracker.select_all(approved_request.id, True)
    result = controller.pack(approved_request.id, actor="packer")
    return controller.mark_delivered(result.moved.id, actor="courier")


@pytest.fixture
def make_return():
    """Factory for PartialReturnRecord with one entry per (item, good, defective)."""

    def _make(*entries, returned_by="Ana Lopez", processed_by="warehouse", record_id=None):
        return PartialReturnRecord(
            id=record_id or uuid4(),
            return_date=date(2025, 1, 20),
            returned_by=returned_by,
            processed_by=processed_by,
            returned_items=tuple(
                ReturnEntry(item_id=item_id, quantity_good=good, quantity_defective=defective)
                for item_id, good, defective in entries
            ),
        )

    return _make


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session():
    """In-memory SQLite session with every loan table created."""
    init_engine_from_url("sqlite://")
    create_all_tables()
    db = get_session()
    yield db
    db.rollback()
    db.close()
    drop_tables()
    reset_engine()
