"""Tests for application wiring: config overrides, handlers and key migration."""

import json
import logging
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from clients.valkey_client import ValkeyClient
from core.config import AppConfig
from core.event_bus import EventBus
from core.models import CustomerCreate, TemplateType
from core.persistence import ValkeyCollection, InMemoryCollection
from main import build_services, configure_logging, load_config, migrate_legacy_keys, register_handlers


@pytest.fixture
def fake_valkey():
    """ValkeyClient stand-in over a plain dict."""
    store = {}
    valkey = MagicMock(spec=ValkeyClient)
    valkey.get.side_effect = store.get
    valkey.exists.side_effect = lambda key: key in store
    valkey.set.side_effect = store.__setitem__
    valkey.get_json.side_effect = lambda key: json.loads(store[key]) if key in store else None
    valkey.set_json.side_effect = lambda key, value: store.__setitem__(key, json.dumps(value))

    def incr(key):
        store[key] = str(int(store.get(key, "0")) + 1)
        return int(store[key])

    valkey.incr.side_effect = incr
    valkey.store = store
    return valkey


class TestLoadConfig:

    def test_defaults(self):
        config = load_config({})

        assert config.billing.tax_rate_bps == 800
        assert config.billing.labor_share_bps == 7000
        assert config.tracking.prefix == "CH"
        assert config.gateway_enabled is False

    def test_overrides(self):
        config = load_config({
            "REPAIRHUB_TAX_RATE_BPS": "2000",
            "REPAIRHUB_TRACKING_PREFIX": "RH",
            "REPAIRHUB_GATEWAY_ENABLED": "true",
        })

        assert config.billing.tax_rate_bps == 2000
        assert config.tracking.prefix == "RH"
        assert config.gateway_enabled is True

    def test_out_of_range_override_raises(self):
        with pytest.raises(ValidationError):
            load_config({"REPAIRHUB_LABOR_SHARE_BPS": "12000"})

    def test_unrelated_variables_ignored(self):
        assert load_config({"PATH": "/usr/bin"}).model_dump() == AppConfig().model_dump()


class TestConfigureLogging:

    def test_sets_root_level(self):
        root = logging.getLogger()
        saved = (root.handlers[:], root.level)
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG
            assert logging.getLogger("urllib3").level == logging.WARNING
        finally:
            root.handlers = saved[0]
            root.setLevel(saved[1])


class TestRegisterHandlers:

    def test_subscribes_notification_handlers(self, mock_dispatcher):
        bus = EventBus()

        register_handlers(bus, mock_dispatcher)

        for event_type in (
            "TicketStatusChanged", "TicketCompleted", "TicketPaymentReceived", "InvoiceOverdue", "CustomerCreated",
        ):
            assert bus.subscriber_count(event_type) == 1

    def test_every_published_event_has_a_subscriber(self, mock_dispatcher):
        bus = EventBus()

        register_handlers(bus, mock_dispatcher)

        for event_type in ("TicketCreated", "InvoiceGenerated", "InvoicePaid", "InvoiceDeleted"):
            assert bus.subscriber_count(event_type) == 1


class TestBuildServices:

    def test_in_memory_by_default(self):
        services = build_services(AppConfig())
        try:
            assert isinstance(services["ticket"].collection, InMemoryCollection)
            assert services["notification"].get_active_template(
                services["notification"].get_templates()[0].type
            ) is not None
            assert set(services) == {
                "customer", "ticket", "invoice", "notification", "reconciliation", "event_bus", "dispatcher",
            }
        finally:
            services["dispatcher"].shutdown()

    def test_valkey_backed(self, fake_valkey):
        services = build_services(AppConfig(), valkey=fake_valkey)
        try:
            assert isinstance(services["ticket"].collection, ValkeyCollection)
            assert "computerhub_notification_templates" in fake_valkey.store
        finally:
            services["dispatcher"].shutdown()

    def test_invoice_numbers_use_a_persisted_counter_per_year(self, fake_valkey, ticket_data):
        services = build_services(AppConfig(), valkey=fake_valkey)
        try:
            ticket = services["reconciliation"].create_ticket(ticket_data)
            invoice = services["invoice"].get_by_ticket_id(ticket.id)

            year = invoice.created_at.year
            assert invoice.invoice_number == f"INV-{year}-0001"
            assert fake_valkey.store[f"repairhub_invoice_counter:{year}"] == "1"
            assert fake_valkey.store["repairhub_ticket_counter"] == "1"
        finally:
            services["dispatcher"].shutdown()

    def test_customer_creation_sends_welcome(self):
        services = build_services(AppConfig())
        try:
            customer = services["customer"].create(CustomerCreate(first_name="Ada", email="ada@example.com"))

            assert services["dispatcher"].drain(timeout=5)
            sent = services["notification"].list_for_user(customer.id)
            assert [n.template_type for n in sent] == [TemplateType.WELCOME]
        finally:
            services["dispatcher"].shutdown()


class TestMigrateLegacyKeys:

    def test_copies_legacy_notification_keys(self, fake_valkey):
        fake_valkey.store["repairhub_notifications"] = "[]"
        fake_valkey.store["repairhub_notification_preferences"] = '[{"user_id": "cust-1"}]'

        migrated = migrate_legacy_keys(fake_valkey, AppConfig())

        assert migrated == 2
        assert fake_valkey.store["computerhub_notification_preferences"] == '[{"user_id": "cust-1"}]'
        assert fake_valkey.store["repairhub_notifications_backup"] == "[]"
        assert "repairhub_notifications" in fake_valkey.store

    def test_existing_new_key_is_not_overwritten(self, fake_valkey):
        fake_valkey.store["repairhub_notifications"] = '["old"]'
        fake_valkey.store["computerhub_notifications"] = '["new"]'

        assert migrate_legacy_keys(fake_valkey, AppConfig()) == 0
        assert fake_valkey.store["computerhub_notifications"] == '["new"]'

    def test_copies_legacy_customer_key(self, fake_valkey):
        fake_valkey.store["repairhub_customers"] = '[{"id": "cust_1", "name": "Ada"}]'

        assert migrate_legacy_keys(fake_valkey, AppConfig()) == 1
        assert fake_valkey.store["computerhub_customers"] == '[{"id": "cust_1", "name": "Ada"}]'

    def test_second_run_is_a_no_op(self, fake_valkey):
        fake_valkey.store["repairhub_notifications"] = "[]"

        migrate_legacy_keys(fake_valkey, AppConfig())
        assert migrate_legacy_keys(fake_valkey, AppConfig()) == 0
