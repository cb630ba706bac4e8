"""Shared test fixtures for the RepairDesk test suite."""

import os
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.audit import AuditLogger
from core.config import RepairDeskConfig
from core.event_bus import EventBus
from core.models import JobCreate
from core.stores import InMemoryJobStore, InMemoryVendorStore
from utils.user_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test shop - use for single-shop tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "testshop@test.local"

# Secondary test shop - use for isolation tests
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "testshop-b@test.local"

EVENT_NAMES = (
    "JobCreated", "JobStatusChanged", "JobOutsourced",
    "JobReceivedBack", "JobDelivered", "JobReturned",
)


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test shop's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test shop's ID (for isolation tests)."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Act as the primary test shop."""
    with user_context(test_user_id):
        yield test_user_id


@pytest.fixture
def as_test_user_b(test_user_b_id):
    """Act as the secondary test shop."""
    with user_context(test_user_b_id):
        yield test_user_b_id


# =============================================================================
# CORE FIXTURES: in-memory stores, mocked audit, real event bus
# =============================================================================


@pytest.fixture
def config():
    return RepairDeskConfig()


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def vendor_store():
    return InMemoryVendorStore()


@pytest.fixture
def audit():
    """Audit logger stand-in; the audit table is covered by the Postgres tests."""
    return Mock(spec=AuditLogger)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus):
    """Every event published on the bus, in order."""
    events = []
    for name in EVENT_NAMES:
        event_bus.subscribe(name, events.append)
    return events


@pytest.fixture
def vendor_service(vendor_store, audit):
    from core.services.vendor_service import VendorService
    return VendorService(vendor_store, audit)


@pytest.fixture
def job_service(job_store, audit, event_bus, config):
    from core.services.job_service import JobService
    return JobService(job_store, audit, event_bus, config)


@pytest.fixture
def outsource_service(job_store, vendor_service, audit, event_bus, config):
    from core.services.outsource_service import OutsourceService
    return OutsourceService(job_store, vendor_service, audit, event_bus, config)


@pytest.fixture
def make_job(as_test_user, job_service):
    """Factory creating a walk-in job for the primary test shop."""

    def _make(**overrides):
        data = {
            "customer_name": "Ravi Kumar",
            "phone": "9876543210",
            "device_type": "Phone",
            "brand": "Samsung",
            "model": "Galaxy S21",
            "issue": "Cracked screen",
            "total_amount": "1000",
            "advance_amount": "200",
        }
        data.update(overrides)
        return job_service.create(JobCreate(**data))

    return _make


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """
    Session-scoped PostgresClient for store tests.

    Skips unless REPAIRDESK_TEST_DATABASE_URL is set. The role must be subject
    to RLS (not a superuser) for the isolation tests to mean anything.
    """
    url = os.getenv("REPAIRDESK_TEST_DATABASE_URL")
    if not url:
        pytest.skip("REPAIRDESK_TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(url)
    yield client
    client.close()


@pytest.fixture(scope="session")
def db_admin():
    """Admin connection (bypasses RLS) for setup and teardown."""
    url = os.getenv("REPAIRDESK_TEST_ADMIN_DATABASE_URL") or os.getenv("REPAIRDESK_TEST_DATABASE_URL")
    if not url:
        pytest.skip("REPAIRDESK_TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(url)
    yield client
    client.close()


@pytest.fixture
def clean_db(db, db_admin):
    """Empty job, vendor and audit tables; ensure both test shops exist."""
    db_admin.execute("TRUNCATE jobs, vendors, audit_log")
    db_admin.execute("""
        INSERT INTO users (id, email, created_at)
        VALUES
            (%s, %s, now()),
            (%s, %s, now())
        ON CONFLICT (id) DO UPDATE SET email = EXCLUDED.email
    """, (TEST_USER_ID, TEST_USER_EMAIL, TEST_USER_B_ID, TEST_USER_B_EMAIL))
    yield db
