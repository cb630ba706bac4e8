"""API test fixtures: authenticated TestClient over in-memory services."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import build_services, create_app
from auth.types import Session, SessionProvider
from utils.timezone import now_utc


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def services(job_store, vendor_store, audit, event_bus, config):
    return build_services(job_store, vendor_store, audit, event_bus, config)


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def mock_session_provider(test_user_id):
    now = now_utc()
    mock = Mock(spec=SessionProvider)
    mock.validate_session.return_value = Session(
        token="test-token",
        user_id=test_user_id,
        created_at=now,
        expires_at=now + timedelta(hours=24),
        last_activity_at=now,
    )
    return mock


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(mock_session_provider, services):
    return create_app(services, mock_session_provider)


@pytest.fixture
def client(app):
    """Authenticated test client."""
    c = TestClient(app, raise_server_exceptions=False)
    c.cookies.set("session_token", "test-token")
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no session cookie)."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def act(client):
    """POST an action and return the parsed response."""

    def _act(domain: str, action: str, **data):
        return client.post("/api/actions", json={"domain": domain, "action": action, "data": data})

    return _act


@pytest.fixture
def created_job(act):
    """A walk-in job created through the API: total 1000, advance 200."""
    response = act(
        "job", "create",
        customer_name="Ravi Kumar", phone="9876543210",
        device_type="Phone", brand="Samsung", model="Galaxy S21",
        issue="Cracked screen", total_amount="1000", advance_amount="200",
    )
    assert response.status_code == 200
    return response.json()["data"]
