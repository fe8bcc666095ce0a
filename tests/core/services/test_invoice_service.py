"""Tests for InvoiceService (invoice store and payment ledger)."""

from datetime import timedelta
from uuid import uuid4

import pytest

from core.legacy import legacy_uuid
from core.models import (
    InvoiceCreate, InvoiceUpdate, InvoicePaymentStatus, InvoiceSource,
    PaymentCreate, PaymentMethod, PaymentStatus,
)
from core.persistence import InMemoryCollection
from core.services.invoice_service import InvoiceService
from utils.timezone import now_utc


@pytest.fixture
def invoice_data():
    """Labor £70 + parts £30 at 8%."""
    return InvoiceCreate(
        repair_ticket_id=uuid4(),
        tracking_id="CH 0000001 UK",
        first_name="Ada",
        last_name="Lovelace",
        customer_email="ada@example.com",
        labor_cost_cents=7000,
        parts_cost_cents=3000,
        tax_rate_bps=800,
    )


class TestCreate:

    def test_computes_tax_and_total(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)

        assert invoice.tax_amount_cents == 800
        assert invoice.total_amount_cents == 10800
        assert invoice.payment_status == InvoicePaymentStatus.PENDING
        assert invoice.paid_at is None

    def test_numbers_continue_within_the_year(self, invoice_service, invoice_data):
        year = now_utc().year

        first = invoice_service.create(invoice_data)
        second = invoice_service.create(invoice_data.model_copy(update={"tracking_id": "CH 0000002 UK"}))

        assert first.invoice_number == f"INV-{year}-0001"
        assert second.invoice_number == f"INV-{year}-0002"

    def test_due_in_configured_days(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)
        assert invoice.due_at - invoice.created_at == timedelta(days=7)

    def test_explicit_due_date_is_kept(self, invoice_service, invoice_data):
        due = now_utc() + timedelta(days=30)

        invoice = invoice_service.create(invoice_data.model_copy(update={"due_at": due}))

        assert invoice.due_at == due

    def test_fully_paid_on_creation(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data.model_copy(update={"amount_paid_cents": 10800}))

        assert invoice.payment_status == InvoicePaymentStatus.PAID
        assert invoice.paid_at is not None

    def test_partially_paid_on_creation(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data.model_copy(update={"amount_paid_cents": 100}))
        assert invoice.payment_status == InvoicePaymentStatus.PARTIALLY_PAID

    def test_explicit_tax_amount_is_used(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data.model_copy(update={
            "labor_cost_cents": 6481, "parts_cost_cents": 2778, "tax_amount_cents": 741,
        }))

        assert invoice.tax_amount_cents == 741
        assert invoice.total_amount_cents == 10000

    def test_discount_is_taken_off(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data.model_copy(update={"discount_cents": 800}))
        assert invoice.total_amount_cents == 10000

    def test_discount_above_total_raises(self, invoice_service, invoice_data):
        with pytest.raises(ValueError, match="exceeds"):
            invoice_service.create(invoice_data.model_copy(update={"discount_cents": 20000}))

        assert invoice_service.list_all() == []


class TestLookup:

    def test_by_id_tracking_id_and_ticket(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)

        assert invoice_service.get_by_id(invoice.id).id == invoice.id
        assert invoice_service.get_by_tracking_id("CH 0000001 UK").id == invoice.id
        assert invoice_service.get_by_ticket_id(invoice_data.repair_ticket_id).id == invoice.id

    def test_missing_returns_none(self, invoice_service):
        assert invoice_service.get_by_id(uuid4()) is None
        assert invoice_service.get_by_tracking_id("CH 0000404 UK") is None
        assert invoice_service.get_by_ticket_id(uuid4()) is None

    def test_list_for_customer_email(self, invoice_service, invoice_data):
        invoice_service.create(invoice_data)
        invoice_service.create(invoice_data.model_copy(update={
            "tracking_id": "CH 0000002 UK", "customer_email": "someone@else.com",
        }))

        invoices = invoice_service.list_for_customer_email("ada@example.com")
        assert [i.tracking_id for i in invoices] == ["CH 0000001 UK"]


class TestUpdate:

    def test_cost_change_recomputes_tax_and_total(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)

        updated = invoice_service.update(invoice.id, InvoiceUpdate(labor_cost_cents=17000))

        assert updated.tax_amount_cents == 1600
        assert updated.total_amount_cents == 21600

    def test_snapshot_change_keeps_explicit_tax(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data.model_copy(update={
            "labor_cost_cents": 6481, "parts_cost_cents": 2778, "tax_amount_cents": 741,
        }))

        updated = invoice_service.update(invoice.id, InvoiceUpdate(first_name="Augusta"))

        assert updated.first_name == "Augusta"
        assert updated.tax_amount_cents == 741
        assert updated.total_amount_cents == 10000

    def test_status_follows_amount_paid(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)

        partial = invoice_service.update(invoice.id, InvoiceUpdate(amount_paid_cents=5000))
        paid = invoice_service.update(invoice.id, InvoiceUpdate(amount_paid_cents=10800))

        assert partial.payment_status == InvoicePaymentStatus.PARTIALLY_PAID
        assert partial.paid_at is None
        assert paid.payment_status == InvoicePaymentStatus.PAID
        assert paid.paid_at is not None

    def test_raising_total_reopens_paid_invoice(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data.model_copy(update={"amount_paid_cents": 10800}))

        updated = invoice_service.update(invoice.id, InvoiceUpdate(parts_cost_cents=13000))

        assert updated.payment_status == InvoicePaymentStatus.PARTIALLY_PAID
        assert updated.paid_at is None

    def test_cancelled_is_sticky(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)
        invoice_service.update(invoice.id, InvoiceUpdate(payment_status=InvoicePaymentStatus.CANCELLED))

        updated = invoice_service.update(invoice.id, InvoiceUpdate(amount_paid_cents=10800))

        assert updated.payment_status == InvoicePaymentStatus.CANCELLED

    def test_total_invariant_holds_after_every_write(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)

        for change in (
            InvoiceUpdate(discount_cents=500),
            InvoiceUpdate(parts_cost_cents=0),
            InvoiceUpdate(labor_cost_cents=1234, tax_amount_cents=99),
            InvoiceUpdate(notes="rush job"),
        ):
            i = invoice_service.update(invoice.id, change)
            assert i.total_amount_cents == (
                i.labor_cost_cents + i.parts_cost_cents + i.tax_amount_cents - i.discount_cents
            )

    def test_missing_returns_none(self, invoice_service):
        assert invoice_service.update(uuid4(), InvoiceUpdate(notes="x")) is None


class TestDelete:

    def test_delete_keeps_ledger(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)
        invoice_service.record_payment(PaymentCreate(
            invoice_id=invoice.id, amount_cents=500, method=PaymentMethod.CASH,
        ))

        assert invoice_service.delete(invoice.id) is True
        assert invoice_service.get_by_id(invoice.id) is None
        assert len(invoice_service.list_payments_for_invoice(invoice.id)) == 1

    def test_delete_missing_returns_false(self, invoice_service):
        assert invoice_service.delete(uuid4()) is False

    def test_deleted_invoice_number_is_not_reissued(self, invoice_service, invoice_data):
        year = now_utc().year
        invoice_service.create(invoice_data)
        newest = invoice_service.create(invoice_data.model_copy(update={"tracking_id": "CH 0000002 UK"}))
        invoice_service.delete(newest.id)

        replacement = invoice_service.create(invoice_data.model_copy(update={"tracking_id": "CH 0000003 UK"}))

        assert replacement.invoice_number == f"INV-{year}-0003"


class TestListOverdue:

    def test_only_pending_past_due(self, invoice_service, invoice_data):
        pending = invoice_service.create(invoice_data)
        invoice_service.create(invoice_data.model_copy(update={
            "tracking_id": "CH 0000002 UK", "amount_paid_cents": 10800,
        }))
        later = now_utc() + timedelta(days=8)

        overdue = invoice_service.list_overdue(later)

        assert [i.id for i in overdue] == [pending.id]

    def test_nothing_overdue_before_due_date(self, invoice_service, invoice_data):
        invoice_service.create(invoice_data)
        assert invoice_service.list_overdue(now_utc()) == []

    def test_oldest_due_first(self, invoice_service, invoice_data):
        recent = invoice_service.create(invoice_data.model_copy(update={"due_at": now_utc() - timedelta(days=1)}))
        old = invoice_service.create(invoice_data.model_copy(update={
            "tracking_id": "CH 0000002 UK", "due_at": now_utc() - timedelta(days=20),
        }))

        assert [i.id for i in invoice_service.list_overdue()] == [old.id, recent.id]


class TestLedger:

    def test_record_payment(self, invoice_service):
        invoice_id = uuid4()

        payment = invoice_service.record_payment(PaymentCreate(
            invoice_id=invoice_id, amount_cents=2500, method=PaymentMethod.ONLINE,
            transaction_id="txn_123",
        ))

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.is_completed
        assert payment.processed_at is not None
        assert invoice_service.get_payment(payment.id).transaction_id == "txn_123"

    def test_recording_does_not_touch_invoice(self, invoice_service, invoice_data):
        invoice = invoice_service.create(invoice_data)

        invoice_service.record_payment(PaymentCreate(
            invoice_id=invoice.id, amount_cents=10800, method=PaymentMethod.CARD,
        ))

        assert invoice_service.get_by_id(invoice.id).amount_paid_cents == 0

    def test_list_for_invoice_filters(self, invoice_service):
        mine, other = uuid4(), uuid4()
        for invoice_id, amount in ((mine, 100), (other, 200), (mine, 300)):
            invoice_service.record_payment(PaymentCreate(
                invoice_id=invoice_id, amount_cents=amount, method=PaymentMethod.CASH,
            ))

        assert [p.amount_cents for p in invoice_service.list_payments_for_invoice(mine)] == [100, 300]
        assert len(invoice_service.list_payments()) == 3

    def test_missing_payment_returns_none(self, invoice_service):
        assert invoice_service.get_payment(uuid4()) is None


class TestLegacyRecords:

    @pytest.fixture
    def stored_by_browser(self):
        """An invoice and its payment as the old app's processPayment left them."""
        invoice = {
            "id": "1712345679000",
            "repairTicketId": "1712345678901",
            "trackingId": "CH 0000007 UK",
            "customerName": "Grace Hopper",
            "customerEmail": "grace@example.com",
            "customerPhone": "07700900456",
            "deviceInfo": "Apple MacBook Air",
            "issueDescription": "Cracked display",
            "laborCost": 70,
            "partsCost": 30,
            "taxAmount": 8,
            "totalAmount": 108,
            "paymentStatus": "paid",
            "paymentMethod": "cash",
            "paidAt": "2024-04-06T10:00:00.000Z",
            "dueDate": "2024-04-12T19:21:19.000Z",
            "createdAt": "2024-04-05T19:21:19.000Z",
            "updatedAt": "2024-04-06T10:00:00.000Z",
        }
        payment = {
            "id": "1712345680000",
            "invoiceId": "1712345679000",
            "amount": 108,
            "method": "cash",
            "status": "completed",
            "processedAt": "2024-04-06T10:00:00.000Z",
            "createdAt": "2024-04-06T10:00:00.000Z",
        }
        return invoice, payment

    @pytest.fixture
    def legacy_service(self, stored_by_browser, billing_config):
        invoice, payment = stored_by_browser
        return InvoiceService(InMemoryCollection([invoice]), InMemoryCollection([payment]), billing_config)

    def test_reads_browser_invoice(self, legacy_service):
        invoice = legacy_service.get_by_tracking_id("CH 0000007 UK")

        assert invoice.id == legacy_uuid("1712345679000")
        assert invoice.repair_ticket_id == legacy_uuid("1712345678901")
        assert invoice.total_amount_cents == 10800
        assert invoice.tax_rate_bps == 800
        assert invoice.is_paid
        assert invoice.invoice_number == "LEGACY-1712345679000"

    def test_found_by_mapped_ticket_id(self, legacy_service):
        assert legacy_service.get_by_ticket_id(legacy_uuid("1712345678901")) is not None

    def test_ledger_payment_points_at_the_invoice(self, legacy_service):
        payments = legacy_service.list_payments_for_invoice(legacy_uuid("1712345679000"))

        assert len(payments) == 1
        assert payments[0].amount_cents == 10800

    def test_new_invoices_number_normally_alongside(self, legacy_service, invoice_data):
        invoice = legacy_service.create(invoice_data)
        assert invoice.invoice_number == f"INV-{now_utc().year}-0001"
