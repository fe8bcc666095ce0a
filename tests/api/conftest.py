"""API test fixtures — TestClient over the fully wired app, in-memory storage."""

import pytest
from starlette.testclient import TestClient

from core.config import AppConfig
from main import build_services, create_app


# =============================================================================
# SERVICES & APP
# =============================================================================


@pytest.fixture
def services():
    services = build_services(AppConfig())
    yield services
    services["dispatcher"].shutdown()


@pytest.fixture
def app(services):
    """App with request IDs, error handlers, and data/actions routes."""
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


# =============================================================================
# HELPERS
# =============================================================================


@pytest.fixture
def act(client):
    """POST an action and return the response."""

    def _act(domain: str, action: str, data: dict):
        return client.post("/api/actions", json={"domain": domain, "action": action, "data": data})

    return _act


@pytest.fixture
def ticket_payload():
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "phone": "07700900123",
        "device_brand": "Lenovo",
        "device_model": "ThinkPad X1",
        "issue_description": "Cracked display",
        "estimated_cost_cents": 10000,
    }


@pytest.fixture
def created_ticket(act, ticket_payload):
    return act("ticket", "create", ticket_payload).json()["data"]
