"""
Reconciliation engine for tickets, invoices and payments.

Keeps a ticket's cost and payment state, its invoice and the payment ledger
consistent as the ticket moves through its lifecycle:

- After every ticket create/update, total paid and balance due are re-derived
  from the payment list and the quoted cost.
- A ticket with a financial footprint (paid + outstanding > 0) always has an
  invoice. Projected invoices follow the ticket's amounts; manual invoices
  keep the costs they were finalized with.
- Notifications go out through events after the write has been persisted.
"""

import logging
import threading
from datetime import datetime
from uuid import UUID, uuid4

from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import (
    TicketCreated, TicketStatusChanged, TicketCompleted, TicketPaymentReceived,
    InvoiceGenerated, InvoicePaid, InvoiceOverdue, InvoiceDeleted,
)
from core.exceptions import NotFoundError, InvalidAmountError, InvoiceStateError
from core.identifiers import TrackingIdGenerator
from core.models import (
    RepairTicket, TicketCreate, TicketUpdate, TicketStatus,
    TicketPayment, TicketPaymentMethod,
    Invoice, InvoiceCreate, InvoiceUpdate, InvoicePaymentStatus, InvoiceSource,
    Payment, PaymentCreate, PaymentMethod,
)
from core.pricing import project_costs
from core.services.customer_service import CustomerService
from core.services.invoice_service import InvoiceService
from core.services.ticket_service import TicketService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Present on TicketUpdate as optional, but a stored ticket always has a value
_NON_NULLABLE = {"estimated_cost_cents", "status", "payments"}


def derive_totals(payments: list[TicketPayment], estimated_cost_cents: int) -> tuple[int, int]:
    """
    Total paid and balance due for a ticket.

    Returns:
        (total_paid_cents, balance_due_cents); the balance is never negative
    """
    total_paid = sum(p.amount_cents for p in payments)
    return total_paid, max(0, estimated_cost_cents - total_paid)


def invoice_snapshot(ticket: RepairTicket) -> dict:
    """Ticket fields an invoice copies for display."""
    return {
        "first_name": ticket.first_name,
        "last_name": ticket.last_name,
        "customer_email": ticket.email,
        "customer_phone": ticket.phone,
        "device_info": ticket.device_info,
        "issue_description": ticket.issue_description,
    }


class ReconciliationService:
    """Ticket, invoice and payment flows across both stores."""

    def __init__(
        self,
        tickets: TicketService,
        invoices: InvoiceService,
        tracking_ids: TrackingIdGenerator,
        event_bus: EventBus,
        config: BillingConfig | None = None,
        customers: CustomerService | None = None,
    ):
        self.tickets = tickets
        self.invoices = invoices
        self.tracking_ids = tracking_ids
        self.event_bus = event_bus
        self.config = config or BillingConfig()
        self.customers = customers
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Tickets
    # -------------------------------------------------------------------------

    def create_ticket(self, data: TicketCreate) -> RepairTicket:
        """
        Open a repair ticket.

        Assigns a tracking ID, derives totals from any upfront payments and
        projects an invoice when the ticket has a financial footprint. No
        status notification is sent on creation.
        Contact fields left empty are filled from the customer record the
        ticket points at, when there is one.

        Args:
            data: Intake data

        Returns:
            Stored ticket
        """
        data = self._with_customer_contact(data)
        payments = [TicketPayment.from_create(p) for p in data.payments]
        total_paid, balance_due = derive_totals(payments, data.estimated_cost_cents)

        with self._lock:
            now = now_utc()
            ticket = RepairTicket(
                id=uuid4(),
                tracking_id=self.tracking_ids.next_tracking_id(),
                total_paid_cents=total_paid,
                balance_due_cents=balance_due,
                payments=payments,
                created_at=now,
                updated_at=now,
                **data.model_dump(exclude={"payments"}),
            )
            self.tickets.create(ticket)

            if ticket.footprint_cents > 0:
                self.project_invoice(ticket)

        self.event_bus.publish(TicketCreated.create(ticket=ticket))
        return ticket

    def update_ticket(self, ticket_id: UUID, updates: TicketUpdate) -> RepairTicket:
        """
        Apply changes to a ticket and reconcile its invoice.

        Totals are re-derived, the invoice is refreshed (or projected when the
        ticket gains a footprint) and notifications are published for a status
        change, a move into completed and an increase in total paid.

        Args:
            ticket_id: Ticket UUID
            updates: Fields to change

        Returns:
            Updated ticket

        Raises:
            NotFoundError: If the ticket doesn't exist
        """
        changes = {
            field: value
            for field, value in updates.model_dump(exclude_unset=True).items()
            if value is not None or field not in _NON_NULLABLE
        }

        with self._lock:
            current = self.tickets.get_by_id(ticket_id)
            if current is None:
                raise NotFoundError("Ticket", ticket_id)

            previous_status = current.status
            previous_paid = current.total_paid_cents

            payments = updates.payments if updates.payments is not None else current.payments
            estimated = changes.get("estimated_cost_cents", current.estimated_cost_cents)
            changes["total_paid_cents"], changes["balance_due_cents"] = derive_totals(payments, estimated)

            updated = self.tickets.update(ticket_id, changes)
            if updated is None:
                raise NotFoundError("Ticket", ticket_id)

            self._sync_invoice(updated)

        if updated.status != previous_status:
            self.event_bus.publish(TicketStatusChanged.create(
                ticket=updated, previous_status=previous_status.value,
            ))
            if updated.status == TicketStatus.COMPLETED:
                self.event_bus.publish(TicketCompleted.create(ticket=updated))

        if updated.total_paid_cents > previous_paid:
            self.event_bus.publish(TicketPaymentReceived.create(
                ticket=updated, amount_cents=updated.total_paid_cents - previous_paid,
            ))

        return updated

    def delete_ticket(self, ticket_id: UUID) -> bool:
        """
        Delete a ticket. Its invoice is kept.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            return self.tickets.delete(ticket_id)

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def project_invoice(
        self,
        ticket: RepairTicket,
        labor_cents: int | None = None,
        parts_cents: int | None = None,
    ) -> Invoice:
        """
        Invoice for a ticket in any state, created if missing.

        An existing invoice for the ticket is returned unchanged. Without
        explicit costs, the ticket's footprint is taken as the tax-inclusive
        gross and split into labor and parts, so the invoice total equals what
        the ticket says the customer owes.

        Args:
            ticket: Ticket to invoice
            labor_cents: Labor cost, or None to derive it
            parts_cents: Parts cost, or None to derive it

        Returns:
            The ticket's invoice

        Raises:
            InvalidAmountError: If only one of labor and parts is given
        """
        if (labor_cents is None) != (parts_cents is None):
            raise InvalidAmountError("Give both labor and parts costs, or neither")

        with self._lock:
            existing = self._find_invoice(ticket)
            if existing is not None:
                return existing

            if labor_cents is None:
                labor_cents, parts_cents, tax_cents = project_costs(
                    ticket.footprint_cents,
                    self.config.tax_rate_bps,
                    self.config.labor_share_bps,
                )
                return self._create_invoice(
                    ticket, labor_cents, parts_cents, InvoiceSource.PROJECTED, tax_cents=tax_cents,
                )

            return self._create_invoice(ticket, labor_cents, parts_cents, InvoiceSource.MANUAL)

    def finalize_invoice(
        self,
        ticket_id: UUID,
        labor_cents: int,
        parts_cents: int,
        discount_cents: int = 0,
    ) -> Invoice | None:
        """
        Generate the invoice for a completed, fully paid ticket.

        Args:
            ticket_id: Ticket UUID
            labor_cents: Labor cost
            parts_cents: Parts cost
            discount_cents: Discount taken off after tax

        Returns:
            The ticket's invoice (existing or new), or None when the ticket is
            not completed or still has a balance due

        Raises:
            NotFoundError: If the ticket doesn't exist
            InvalidAmountError: If a cost or the discount is negative
        """
        if min(labor_cents, parts_cents, discount_cents) < 0:
            raise InvalidAmountError("Invoice costs and discount must not be negative")

        with self._lock:
            ticket = self.tickets.get_by_id(ticket_id)
            if ticket is None:
                raise NotFoundError("Ticket", ticket_id)

            if ticket.status not in (TicketStatus.COMPLETED, TicketStatus.INVOICED):
                logger.warning(
                    f"Not invoicing {ticket.tracking_id}: status is {ticket.status.value}, not completed"
                )
                return None

            if ticket.balance_due_cents != 0:
                logger.warning(
                    f"Not invoicing {ticket.tracking_id}: balance due is {ticket.balance_due_cents}"
                )
                return None

            invoice = self._find_invoice(ticket)
            if invoice is None:
                invoice = self._create_invoice(
                    ticket, labor_cents, parts_cents, InvoiceSource.MANUAL,
                    discount_cents=discount_cents,
                )

            if ticket.status != TicketStatus.INVOICED:
                self.tickets.update(ticket.id, {"status": TicketStatus.INVOICED})

        return invoice

    def delete_invoice(self, invoice_id: UUID) -> bool:
        """
        Delete an invoice by hand. Ledger payments are kept.

        A linked ticket marked invoiced goes back to completed.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            invoice = self.invoices.get_by_id(invoice_id)
            if invoice is None or not self.invoices.delete(invoice_id):
                return False

            ticket = self._find_ticket(invoice)
            if ticket is not None and ticket.status == TicketStatus.INVOICED:
                self.tickets.update(ticket.id, {"status": TicketStatus.COMPLETED})

        self.event_bus.publish(InvoiceDeleted.create(invoice=invoice))
        return True

    def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        """
        Cancel an invoice.

        Returns:
            Cancelled invoice

        Raises:
            NotFoundError: If the invoice doesn't exist
            InvoiceStateError: If the invoice is fully paid
        """
        with self._lock:
            invoice = self.invoices.get_by_id(invoice_id)
            if invoice is None:
                raise NotFoundError("Invoice", invoice_id)

            if invoice.is_paid:
                raise InvoiceStateError(f"Invoice {invoice.invoice_number} is paid and cannot be cancelled")

            if invoice.is_cancelled:
                return invoice

            cancelled = self.invoices.update(
                invoice_id, InvoiceUpdate(payment_status=InvoicePaymentStatus.CANCELLED)
            )

        logger.info(f"Cancelled invoice {cancelled.invoice_number}")
        return cancelled

    def send_overdue_reminders(self, now: datetime | None = None) -> list[Invoice]:
        """
        Publish a reminder for every overdue invoice.

        Returns:
            Overdue invoices, oldest due date first
        """
        overdue = self.invoices.list_overdue(now)

        for invoice in overdue:
            ticket = self._find_ticket(invoice)
            user_id = ticket.customer_id if ticket is not None else "walk-in"
            self.event_bus.publish(InvoiceOverdue.create(invoice=invoice, user_id=user_id))

        if overdue:
            logger.info(f"Sent payment reminders for {len(overdue)} overdue invoice(s)")
        return overdue

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def process_payment(
        self,
        target_id: UUID,
        amount_cents: int,
        method: PaymentMethod,
        transaction_id: str | None = None,
    ) -> Payment:
        """
        Take a payment against a ticket or an invoice.

        A ticket, or an invoice whose ticket still exists, is paid at ticket
        level: the payment is added to the ticket and reconciled like any
        other update, then recorded in the ledger against the invoice. An
        invoice with no live ticket is paid directly.

        Args:
            target_id: Ticket or invoice UUID
            amount_cents: Amount paid, must be positive
            method: How the customer paid
            transaction_id: Card/online processor reference

        Returns:
            Ledger payment

        Raises:
            InvalidAmountError: If the amount is not positive
            NotFoundError: If no ticket or invoice has this id
            InvoiceStateError: If the invoice is cancelled
            ValueError: If an online payment is taken at ticket level
        """
        if amount_cents <= 0:
            raise InvalidAmountError(f"Payment amount must be positive, got {amount_cents}")

        with self._lock:
            ticket = self.tickets.get_by_id(target_id)
            invoice = None
            if ticket is None:
                invoice = self.invoices.get_by_id(target_id)
                if invoice is None:
                    raise NotFoundError("Ticket or invoice", target_id)
                ticket = self._find_ticket(invoice)

            if ticket is not None:
                return self._pay_ticket(ticket, amount_cents, method, transaction_id)
            return self._pay_invoice(invoice, amount_cents, method, transaction_id)

    def _pay_ticket(
        self,
        ticket: RepairTicket,
        amount_cents: int,
        method: PaymentMethod,
        transaction_id: str | None,
    ) -> Payment:
        if method == PaymentMethod.ONLINE:
            raise ValueError("Online payments can only be taken against an invoice")

        existing = self._find_invoice(ticket)
        if existing is not None and existing.is_cancelled:
            raise InvoiceStateError(f"Invoice {existing.invoice_number} is cancelled")

        ticket_payment = TicketPayment(
            amount_cents=amount_cents,
            method=TicketPaymentMethod(method.value),
        )
        updated = self.update_ticket(
            ticket.id, TicketUpdate(payments=[*ticket.payments, ticket_payment])
        )

        # A payment always gives the ticket a footprint, so the invoice exists
        invoice = self._find_invoice(updated)
        payment = self.invoices.record_payment(PaymentCreate(
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            method=method,
            transaction_id=transaction_id,
            notes=f"Ticket payment {updated.tracking_id}",
        ))
        self.invoices.update(invoice.id, InvoiceUpdate(
            payment_ids=[*invoice.payment_ids, payment.id],
            payment_method=method,
        ))

        return payment

    def _pay_invoice(
        self,
        invoice: Invoice,
        amount_cents: int,
        method: PaymentMethod,
        transaction_id: str | None,
    ) -> Payment:
        if invoice.is_cancelled:
            raise InvoiceStateError(f"Invoice {invoice.invoice_number} is cancelled")

        payment = self.invoices.record_payment(PaymentCreate(
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            method=method,
            transaction_id=transaction_id,
        ))
        updated = self.invoices.update(invoice.id, InvoiceUpdate(
            amount_paid_cents=invoice.amount_paid_cents + amount_cents,
            payment_ids=[*invoice.payment_ids, payment.id],
            payment_method=method,
        ))

        self._publish_if_paid(invoice.payment_status, updated)
        return payment

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _with_customer_contact(self, data: TicketCreate) -> TicketCreate:
        if self.customers is None:
            return data
        customer = self.customers.get_by_id(data.customer_id)
        if customer is None:
            return data

        contact = {
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "email": customer.email,
            "phone": customer.phone,
        }
        missing = {k: v for k, v in contact.items() if getattr(data, k) is None and v is not None}
        return data.model_copy(update=missing)

    def _find_invoice(self, ticket: RepairTicket) -> Invoice | None:
        return (
            self.invoices.get_by_ticket_id(ticket.id)
            or self.invoices.get_by_tracking_id(ticket.tracking_id)
        )

    def _find_ticket(self, invoice: Invoice) -> RepairTicket | None:
        if invoice.repair_ticket_id is not None:
            ticket = self.tickets.get_by_id(invoice.repair_ticket_id)
            if ticket is not None:
                return ticket
        return self.tickets.get_by_tracking_id(invoice.tracking_id)

    def _create_invoice(
        self,
        ticket: RepairTicket,
        labor_cents: int,
        parts_cents: int,
        source: InvoiceSource,
        tax_cents: int | None = None,
        discount_cents: int = 0,
    ) -> Invoice:
        invoice = self.invoices.create(InvoiceCreate(
            repair_ticket_id=ticket.id,
            tracking_id=ticket.tracking_id,
            labor_cost_cents=labor_cents,
            parts_cost_cents=parts_cents,
            tax_rate_bps=self.config.tax_rate_bps,
            tax_amount_cents=tax_cents,
            discount_cents=discount_cents,
            amount_paid_cents=ticket.total_paid_cents,
            source=source,
            **invoice_snapshot(ticket),
        ))

        self.event_bus.publish(InvoiceGenerated.create(invoice=invoice))
        self._publish_if_paid(InvoicePaymentStatus.PENDING, invoice)
        return invoice

    def _sync_invoice(self, ticket: RepairTicket) -> Invoice | None:
        """Bring the ticket's invoice in line with the ticket, creating it if due."""
        invoice = self._find_invoice(ticket)
        if invoice is None:
            if ticket.footprint_cents > 0:
                return self.project_invoice(ticket)
            return None

        changes = {**invoice_snapshot(ticket), "amount_paid_cents": ticket.total_paid_cents}
        if invoice.source == InvoiceSource.PROJECTED:
            labor, parts, tax = project_costs(
                ticket.footprint_cents,
                invoice.tax_rate_bps,
                self.config.labor_share_bps,
            )
            changes.update(labor_cost_cents=labor, parts_cost_cents=parts, tax_amount_cents=tax)

        updated = self.invoices.update(invoice.id, InvoiceUpdate(**changes))
        self._publish_if_paid(invoice.payment_status, updated)
        return updated

    def _publish_if_paid(self, previous_status: InvoicePaymentStatus, invoice: Invoice) -> None:
        if invoice.is_paid and previous_status != InvoicePaymentStatus.PAID:
            logger.info(f"Invoice {invoice.invoice_number} paid in full")
            self.event_bus.publish(InvoicePaid.create(invoice=invoice))
