"""Shared test fixtures for the RepairHub test suite.

Every store runs on in-memory collections, so no Valkey, Vault or gateway
is needed to run the suite.
"""

from unittest.mock import Mock
from uuid import uuid4

import pytest

import clients.vault_client as vault_module
from core.config import BillingConfig, TrackingConfig
from core.dispatcher import NotificationDispatcher
from core.event_bus import EventBus
from core.identifiers import TrackingIdGenerator
from core.models import RepairTicket, TicketCreate, TicketStatus, Invoice, Customer
from core.persistence import InMemoryCollection, InMemoryCounter
from core.services.customer_service import CustomerService
from core.services.invoice_service import InvoiceService
from core.services.notification_service import NotificationService
from core.services.reconciliation_service import ReconciliationService
from core.services.ticket_service import TicketService
from utils.timezone import now_utc, days_from_now


@pytest.fixture(autouse=True)
def reset_vault_cache():
    """Never let a cached secret leak between tests."""
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()
    yield
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()


# =============================================================================
# CONFIG
# =============================================================================


@pytest.fixture
def billing_config() -> BillingConfig:
    """8% tax, 70/30 labor/parts split, 7 days to pay."""
    return BillingConfig()


# =============================================================================
# STORES
# =============================================================================


@pytest.fixture
def ticket_service():
    return TicketService(InMemoryCollection())


@pytest.fixture
def customer_service(event_bus):
    return CustomerService(InMemoryCollection(), event_bus)


@pytest.fixture
def invoice_service(billing_config):
    return InvoiceService(InMemoryCollection(), InMemoryCollection(), billing_config)


@pytest.fixture
def notification_service():
    service = NotificationService(InMemoryCollection(), InMemoryCollection(), InMemoryCollection())
    service.initialize_templates()
    return service


# =============================================================================
# ENGINE
# =============================================================================


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus):
    """Every event published on the bus, in order."""
    events = []
    for name in (
        "TicketCreated", "TicketStatusChanged", "TicketCompleted", "TicketPaymentReceived",
        "InvoiceGenerated", "InvoicePaid", "InvoiceOverdue", "InvoiceDeleted", "CustomerCreated",
    ):
        event_bus.subscribe(name, events.append)
    return events


@pytest.fixture
def tracking_ids():
    return TrackingIdGenerator(InMemoryCounter(), TrackingConfig())


@pytest.fixture
def reconciliation(ticket_service, invoice_service, tracking_ids, event_bus, billing_config, customer_service):
    return ReconciliationService(
        ticket_service, invoice_service, tracking_ids, event_bus, billing_config,
        customers=customer_service,
    )


@pytest.fixture
def mock_dispatcher():
    return Mock(spec=NotificationDispatcher)


# =============================================================================
# SAMPLE DATA
# =============================================================================


@pytest.fixture
def ticket_data():
    """A walk-in laptop repair quoted at £100.00, nothing paid yet."""
    return TicketCreate(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="07700900123",
        device_brand="Lenovo",
        device_model="ThinkPad X1",
        issue_type="screen",
        issue_description="Cracked display",
        estimated_cost_cents=10000,
    )


@pytest.fixture
def make_ticket():
    """Build a RepairTicket directly, bypassing the engine."""

    def _make(**overrides) -> RepairTicket:
        now = now_utc()
        fields = dict(
            id=uuid4(),
            tracking_id="CH 0000001 UK",
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            phone="07700900123",
            device_brand="Lenovo",
            device_model="ThinkPad X1",
            status=TicketStatus.DIAGNOSING,
            estimated_cost_cents=10000,
            total_paid_cents=0,
            balance_due_cents=10000,
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return RepairTicket(**fields)

    return _make


@pytest.fixture
def make_invoice():
    """Build an Invoice directly, bypassing the store."""

    def _make(**overrides) -> Invoice:
        now = now_utc()
        fields = dict(
            id=uuid4(),
            invoice_number="INV-2025-0001",
            repair_ticket_id=uuid4(),
            tracking_id="CH 0000001 UK",
            first_name="Ada",
            last_name="Lovelace",
            customer_email="ada@example.com",
            customer_phone="07700900123",
            labor_cost_cents=7000,
            parts_cost_cents=3000,
            tax_rate_bps=800,
            tax_amount_cents=800,
            total_amount_cents=10800,
            due_at=days_from_now(7, now),
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return Invoice(**fields)

    return _make


@pytest.fixture
def make_customer():
    """Build a Customer directly, bypassing the store."""

    def _make(**overrides) -> Customer:
        now = now_utc()
        fields = dict(
            id=str(uuid4()),
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            phone="07700900123",
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return Customer(**fields)

    return _make
