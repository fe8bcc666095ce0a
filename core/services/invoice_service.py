"""
Invoice store for billing and the payment ledger.

Invoices are always created from tickets. They snapshot the ticket's customer
and device details; only the reconciliation engine refreshes them. Tax and
total are recomputed here on every write, so
total == labor + parts + tax - discount holds for every stored invoice.

Payments live in a separate ledger collection and reference invoices by id.
"""

import logging
import threading
from datetime import datetime
from uuid import UUID, uuid4

from core.config import BillingConfig
from core.identifiers import InvoiceNumberGenerator
from core.legacy import normalize_invoice_record, normalize_payment_record
from core.models import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoicePaymentStatus,
    Payment, PaymentCreate,
)
from core.persistence import Collection
from core.pricing import invoice_total, derive_payment_status
from utils.timezone import now_utc, days_from_now

logger = logging.getLogger(__name__)


class InvoiceService:
    """Store for invoices and ledger payments."""

    def __init__(
        self,
        invoices: Collection,
        payments: Collection,
        config: BillingConfig | None = None,
        numbers: InvoiceNumberGenerator | None = None,
    ):
        self.invoices = invoices
        self.payments = payments
        self.config = config or BillingConfig()
        self.numbers = numbers or InvoiceNumberGenerator(prefix=self.config.invoice_prefix)
        self._lock = threading.RLock()
        self._ledger_lock = threading.RLock()

    def _load(self) -> list[Invoice]:
        return [
            Invoice.model_validate(normalize_invoice_record(record))
            for record in self.invoices.load()
        ]

    def _save(self, invoices: list[Invoice]) -> None:
        self.invoices.save([inv.model_dump(mode="json") for inv in invoices])

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice.

        Args:
            data: Invoice data; tax and total are computed from it

        Returns:
            Created invoice. Status follows from amount_paid_cents.

        Raises:
            ValueError: If the discount exceeds subtotal plus tax
        """
        tax_amount, total_amount = invoice_total(
            data.labor_cost_cents,
            data.parts_cost_cents,
            data.tax_rate_bps,
            data.discount_cents,
            tax_cents=data.tax_amount_cents,
        )

        with self._lock:
            invoices = self._load()
            now = now_utc()

            status = derive_payment_status(data.amount_paid_cents, total_amount)
            invoice = Invoice(
                id=uuid4(),
                invoice_number=self.numbers.next_invoice_number(
                    now.year, (inv.invoice_number for inv in invoices),
                ),
                tax_amount_cents=tax_amount,
                total_amount_cents=total_amount,
                payment_status=status,
                paid_at=now if status == InvoicePaymentStatus.PAID else None,
                due_at=data.due_at or days_from_now(self.config.invoice_due_days, now),
                created_at=now,
                updated_at=now,
                **data.model_dump(exclude={"due_at", "tax_amount_cents"}),
            )

            invoices.append(invoice)
            self._save(invoices)

        logger.info(
            f"Created invoice {invoice.invoice_number} for {invoice.tracking_id} "
            f"(total={invoice.total_amount_cents}, status={invoice.payment_status.value})"
        )
        return invoice

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found, None otherwise.
        """
        for invoice in self._load():
            if invoice.id == invoice_id:
                return invoice
        return None

    def get_by_tracking_id(self, tracking_id: str) -> Invoice | None:
        for invoice in self._load():
            if invoice.tracking_id == tracking_id:
                return invoice
        return None

    def get_by_ticket_id(self, ticket_id: UUID) -> Invoice | None:
        for invoice in self._load():
            if invoice.repair_ticket_id == ticket_id:
                return invoice
        return None

    def update(self, invoice_id: UUID, data: InvoiceUpdate) -> Invoice | None:
        """
        Merge fields into an invoice, recompute tax, total and status.

        Tax is recomputed from the rate when labor or parts change without an
        explicit tax amount, and kept otherwise. Unless payment_status is given
        it is re-derived from the amount paid; cancelled invoices stay
        cancelled.

        Args:
            invoice_id: Invoice UUID
            data: Fields to change (unset fields are left alone)

        Returns:
            Updated invoice, or None if not found

        Raises:
            ValueError: If the discount exceeds subtotal plus tax
        """
        changes = data.model_dump(exclude_unset=True)

        with self._lock:
            invoices = self._load()
            for index, current in enumerate(invoices):
                if current.id != invoice_id:
                    continue

                merged = current.model_dump()
                merged.update(changes)

                tax_cents = changes.get("tax_amount_cents")
                if tax_cents is None and not changes.keys() & {"labor_cost_cents", "parts_cost_cents"}:
                    tax_cents = current.tax_amount_cents

                merged["tax_amount_cents"], merged["total_amount_cents"] = invoice_total(
                    merged["labor_cost_cents"],
                    merged["parts_cost_cents"],
                    merged["tax_rate_bps"],
                    merged["discount_cents"],
                    tax_cents=tax_cents,
                )

                now = now_utc()
                if "payment_status" not in changes and not current.is_cancelled:
                    merged["payment_status"] = derive_payment_status(
                        merged["amount_paid_cents"], merged["total_amount_cents"]
                    )
                if merged["payment_status"] == InvoicePaymentStatus.PAID:
                    merged["paid_at"] = merged["paid_at"] or now
                elif merged["payment_status"] != InvoicePaymentStatus.CANCELLED:
                    merged["paid_at"] = None

                merged["updated_at"] = now
                updated = Invoice.model_validate(merged)

                invoices[index] = updated
                self._save(invoices)
                return updated

        return None

    def delete(self, invoice_id: UUID) -> bool:
        """
        Remove an invoice. Its ledger payments are kept.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            invoices = self._load()
            remaining = [inv for inv in invoices if inv.id != invoice_id]
            if len(remaining) == len(invoices):
                return False
            self._save(remaining)

        logger.info(f"Deleted invoice {invoice_id}")
        return True

    def list_all(self) -> list[Invoice]:
        """All invoices in creation order."""
        return self._load()

    def list_for_customer_email(self, email: str) -> list[Invoice]:
        return [inv for inv in self._load() if inv.customer_email == email]

    def list_overdue(self, now: datetime | None = None) -> list[Invoice]:
        """
        Pending invoices whose due date has passed.

        Returns:
            Overdue invoices ordered by due date, oldest first
        """
        overdue = [
            inv for inv in self._load()
            if inv.effective_status(now) == InvoicePaymentStatus.OVERDUE
        ]
        return sorted(overdue, key=lambda inv: inv.due_at)

    # -------------------------------------------------------------------------
    # Payment ledger
    # -------------------------------------------------------------------------

    def record_payment(self, data: PaymentCreate) -> Payment:
        """
        Append a payment to the ledger.

        Does not touch the invoice; attaching the payment and deriving the
        invoice status is up to the caller.

        Returns:
            Recorded payment
        """
        now = now_utc()
        payment = Payment(
            id=uuid4(),
            processed_at=now,
            created_at=now,
            **data.model_dump(),
        )

        with self._ledger_lock:
            records = self.payments.load()
            records.append(payment.model_dump(mode="json"))
            self.payments.save(records)

        logger.info(
            f"Recorded {payment.method.value} payment of {payment.amount_cents} "
            f"against invoice {payment.invoice_id}"
        )
        return payment

    def get_payment(self, payment_id: UUID) -> Payment | None:
        for payment in self.list_payments():
            if payment.id == payment_id:
                return payment
        return None

    def list_payments(self) -> list[Payment]:
        return [
            Payment.model_validate(normalize_payment_record(record))
            for record in self.payments.load()
        ]

    def list_payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        """Ledger payments referencing an invoice, oldest first."""
        return [p for p in self.list_payments() if p.invoice_id == invoice_id]
