"""
Pytest fixtures for the procurement kernel test suite.

Provides:
- An in-memory SQLite database per test (StaticPool, fresh schema)
- A DeterministicClock and a fixed test configuration
- A RecordingNotifier that keeps every outbound message for assertions
- Factories for catalog items and directory users
- Structured log capture
"""

import json
import logging
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig, TokenSettings
from procurement_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from procurement_kernel.domain.approval import ItemStatus, Role, UserStatus
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procurement_kernel.services.record_store import ITEMS, USERS
from procurement_kernel.services.wiring import build_services

TEST_SECRET = "test-secret-do-not-use"

REQUESTER = "requester@example.com"
MANAGER = "manager@example.com"
CONTROLLER = "controller@example.com"


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
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.approve(...)
            assert any(r["message"] == "request_finalized" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement_kernel")
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
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    session = get_session()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Service fixtures
# =============================================================================


class RecordingNotifier:
    """Notifier that records every call as (kind, payload...) tuples."""

    def __init__(self):
        self.sent: list[tuple] = []

    def notify_submitted(self, snapshot, invitations):
        self.sent.append(("submitted", snapshot, invitations))

    def notify_stage_advanced(self, snapshot, invitations):
        self.sent.append(("stage_advanced", snapshot, invitations))

    def notify_approved(self, snapshot, cc):
        self.sent.append(("approved", snapshot, cc))

    def notify_terminal(self, result, snapshot, subtitle):
        self.sent.append(("terminal", result, snapshot, subtitle))

    def notify_low_stock(self, items, recipients):
        self.sent.append(("low_stock", items, recipients))

    def notify_user_requested(self, user, recipients):
        self.sent.append(("user_requested", user, recipients))

    def of(self, kind: str) -> list[tuple]:
        return [m for m in self.sent if m[0] == kind]


class FailingNotifier:
    """Notifier whose transport is down."""

    def __getattr__(self, name):
        if name.startswith("notify_"):
            def _fail(*args, **kwargs):
                raise ConnectionError("smtp unavailable")
            return _fail
        raise AttributeError(name)


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def test_config() -> ProcurementConfig:
    return ProcurementConfig(
        name="test",
        version="1",
        tokens=TokenSettings(secret=TEST_SECRET, ttl_minutes=60),
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(session, test_config, notifier, deterministic_clock):
    return build_services(session, test_config, notifier, deterministic_clock)


@pytest.fixture
def failing_services(session, test_config, deterministic_clock):
    """Service graph whose notifier raises on every delivery."""
    return build_services(session, test_config, FailingNotifier(), deterministic_clock)


@pytest.fixture
def workflow(services):
    return services.workflow


@pytest.fixture
def store(services):
    return services.store


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def make_item(store, deterministic_clock):
    """Factory: insert a catalog item directly and return its SKU."""

    def _make(
        sku: str = "SKU-1",
        quantity: int = 10,
        status: ItemStatus = ItemStatus.ACTIVE,
        name: str = "Widget",
        unit_of_measure: str = "pcs",
    ) -> str:
        store.append_record(
            ITEMS,
            {
                "sku": sku,
                "name": name,
                "unit_of_measure": unit_of_measure,
                "quantity": quantity,
                "status": status.value,
                "created_at": deterministic_clock.now(),
            },
        )
        return sku

    return _make


@pytest.fixture
def make_user(store, deterministic_clock):
    """Factory: insert a directory user directly."""

    def _make(
        email: str,
        role: Role = Role.USER,
        status: UserStatus = UserStatus.ACTIVE,
        name: str = "",
    ) -> str:
        store.append_record(
            USERS,
            {
                "email": email.lower(),
                "name": name or email.split("@")[0],
                "role": role.value,
                "status": status.value,
                "created_at": deterministic_clock.now(),
            },
        )
        return email.lower()

    return _make


@pytest.fixture
def directory(make_user):
    """Standard requester / manager / controller accounts."""
    make_user(REQUESTER, Role.USER)
    make_user(MANAGER, Role.MANAGER)
    make_user(CONTROLLER, Role.CONTROLLER)
    return {"user": REQUESTER, "manager": MANAGER, "controller": CONTROLLER}
