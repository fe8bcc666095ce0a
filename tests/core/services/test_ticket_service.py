"""Tests for TicketService (ticket store)."""

import logging
from uuid import uuid4

import pytest

from core.models import TicketStatus
from core.persistence import InMemoryCollection
from core.legacy import legacy_uuid
from core.services.ticket_service import TicketService


class TestCreate:

    def test_create_then_get(self, ticket_service, make_ticket):
        ticket = make_ticket()

        ticket_service.create(ticket)

        assert ticket_service.get_by_id(ticket.id).model_dump() == ticket.model_dump()
        assert ticket_service.get_by_tracking_id("CH 0000001 UK").id == ticket.id

    def test_duplicate_tracking_id_rejected(self, ticket_service, make_ticket):
        ticket_service.create(make_ticket())

        with pytest.raises(ValueError, match="already in use"):
            ticket_service.create(make_ticket())

    def test_duplicate_id_rejected(self, ticket_service, make_ticket):
        ticket = make_ticket()
        ticket_service.create(ticket)

        with pytest.raises(ValueError, match="already exists"):
            ticket_service.create(make_ticket(id=ticket.id, tracking_id="CH 0000002 UK"))

    def test_persists_as_json_records(self, make_ticket):
        collection = InMemoryCollection()
        TicketService(collection).create(make_ticket())

        record = collection.load()[0]
        assert record["tracking_id"] == "CH 0000001 UK"
        assert record["status"] == "diagnosing"
        assert isinstance(record["created_at"], str)


class TestGet:

    def test_missing_returns_none(self, ticket_service):
        assert ticket_service.get_by_id(uuid4()) is None
        assert ticket_service.get_by_tracking_id("CH 9999999 UK") is None

    def test_list_all_keeps_creation_order(self, ticket_service, make_ticket):
        first = ticket_service.create(make_ticket(tracking_id="CH 0000001 UK"))
        second = ticket_service.create(make_ticket(tracking_id="CH 0000002 UK"))

        assert [t.id for t in ticket_service.list_all()] == [first.id, second.id]

    def test_list_for_customer(self, ticket_service, make_ticket):
        ticket_service.create(make_ticket(tracking_id="CH 0000001 UK", customer_id="cust-1"))
        ticket_service.create(make_ticket(tracking_id="CH 0000002 UK"))

        tickets = ticket_service.list_for_customer("cust-1")
        assert [t.tracking_id for t in tickets] == ["CH 0000001 UK"]


class TestUpdate:

    def test_merges_fields_and_refreshes_updated_at(self, ticket_service, make_ticket):
        ticket = ticket_service.create(make_ticket())

        updated = ticket_service.update(ticket.id, {"status": TicketStatus.IN_PROGRESS, "phone": "0800"})

        assert updated.status == TicketStatus.IN_PROGRESS
        assert updated.phone == "0800"
        assert updated.first_name == "Ada"
        assert updated.updated_at >= ticket.updated_at
        assert ticket_service.get_by_id(ticket.id).model_dump() == updated.model_dump()

    def test_no_cross_field_validation(self, ticket_service, make_ticket):
        ticket = ticket_service.create(make_ticket())

        updated = ticket_service.update(ticket.id, {"balance_due_cents": 1})

        assert updated.balance_due_cents == 1
        assert updated.estimated_cost_cents == 10000

    def test_identity_fields_are_ignored(self, ticket_service, make_ticket, caplog):
        ticket = ticket_service.create(make_ticket())

        with caplog.at_level(logging.WARNING, logger="core.services.ticket_service"):
            updated = ticket_service.update(ticket.id, {"tracking_id": "CH 0000099 UK", "id": uuid4()})

        assert updated.id == ticket.id
        assert updated.tracking_id == "CH 0000001 UK"
        assert "tracking_id" in caplog.text

    def test_missing_returns_none(self, ticket_service):
        assert ticket_service.update(uuid4(), {"phone": "0800"}) is None


class TestDelete:

    def test_delete_removes(self, ticket_service, make_ticket):
        ticket = ticket_service.create(make_ticket())

        assert ticket_service.delete(ticket.id) is True
        assert ticket_service.get_by_id(ticket.id) is None

    def test_delete_missing_returns_false(self, ticket_service):
        assert ticket_service.delete(uuid4()) is False


class TestLegacyRecords:

    @pytest.fixture
    def stored_by_browser(self):
        """A ticket as the old app's createTicket wrote it, deposit included."""
        return {
            "customerId": "walk-in",
            "customerName": "Grace Brewster Hopper",
            "customerEmail": "grace@example.com",
            "customerPhone": "07700900456",
            "deviceBrand": "Apple",
            "deviceModel": "MacBook Air",
            "deviceImei": "",
            "deviceSerial": "",
            "issueType": "screen",
            "issueDescription": "Cracked display",
            "estimatedCost": 120,
            "estimatedTime": "2-3 days",
            "assignedTechnician": "",
            "status": "in_progress",
            "totalPaid": 20.5,
            "balanceDue": 99.5,
            "payments": [
                {"id": "1712345690000", "amount": 20.5, "method": "card", "date": "2024-04-05T19:21:30.000Z"},
            ],
            "id": "1712345678901",
            "trackingId": "CH 0000007 UK",
            "createdAt": "2024-04-05T19:21:18.901Z",
            "updatedAt": "2024-04-05T19:21:18.901Z",
        }

    def test_store_reads_browser_records(self, stored_by_browser):
        service = TicketService(InMemoryCollection([stored_by_browser]))

        ticket = service.get_by_tracking_id("CH 0000007 UK")

        assert ticket.id == legacy_uuid("1712345678901")
        assert ticket.customer_name == "Grace Brewster Hopper"
        assert ticket.status == TicketStatus.IN_PROGRESS
        assert ticket.estimated_cost_cents == 12000
        assert ticket.total_paid_cents == 2050
        assert ticket.balance_due_cents == 9950
        assert ticket.payments[0].amount_cents == 2050

    def test_one_browser_record_does_not_break_the_store(self, stored_by_browser, make_ticket):
        current = make_ticket(tracking_id="CH 0000008 UK").model_dump(mode="json")
        service = TicketService(InMemoryCollection([stored_by_browser, current]))

        assert [t.tracking_id for t in service.list_all()] == ["CH 0000007 UK", "CH 0000008 UK"]

    def test_browser_record_found_by_mapped_id(self, stored_by_browser):
        service = TicketService(InMemoryCollection([stored_by_browser]))

        assert service.get_by_id(legacy_uuid("1712345678901")).tracking_id == "CH 0000007 UK"

    def test_update_rewrites_in_canonical_shape(self, stored_by_browser):
        collection = InMemoryCollection([stored_by_browser])
        service = TicketService(collection)

        service.update(legacy_uuid("1712345678901"), {"phone": "0800"})

        record = collection.load()[0]
        assert record["estimated_cost_cents"] == 12000
        assert record["id"] == str(legacy_uuid("1712345678901"))
        assert "estimatedCost" not in record
