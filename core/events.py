"""
Domain events for the repair shop.

Immutable event objects that represent state changes in tickets and invoices.
The reconciliation engine publishes what happened; handlers turn events into
customer notifications without the engine knowing who's listening.

Event Categories:
- TicketEvent: Ticket lifecycle (create, status change, completion, payment)
- InvoiceEvent: Invoice lifecycle (generated, paid, overdue, deleted)
- CustomerEvent: Customer records (created)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class RepairEvent:
    """Base class for all repair shop domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# TICKET EVENTS
# =============================================================================


@dataclass(frozen=True)
class TicketEvent(RepairEvent):
    """Events related to ticket lifecycle."""
    pass


@dataclass(frozen=True)
class TicketCreated(TicketEvent):
    """A ticket was opened at intake."""
    ticket: Any = None  # RepairTicket - using Any to avoid circular import

    @classmethod
    def create(cls, ticket: Any) -> "TicketCreated":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketStatusChanged(TicketEvent):
    """Ticket status moved to a different value."""
    ticket: Any = None
    previous_status: str | None = None

    @classmethod
    def create(cls, ticket: Any, previous_status: str) -> "TicketStatusChanged":
        return cls(ticket=ticket, previous_status=previous_status)


@dataclass(frozen=True)
class TicketCompleted(TicketEvent):
    """Ticket moved into the completed status."""
    ticket: Any = None

    @classmethod
    def create(cls, ticket: Any) -> "TicketCompleted":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketPaymentReceived(TicketEvent):
    """Ticket total paid went up by amount_cents."""
    ticket: Any = None
    amount_cents: int = 0

    @classmethod
    def create(cls, ticket: Any, amount_cents: int) -> "TicketPaymentReceived":
        return cls(ticket=ticket, amount_cents=amount_cents)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(RepairEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoiceGenerated(InvoiceEvent):
    """An invoice was created for a ticket."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceGenerated":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice was fully paid."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceOverdue(InvoiceEvent):
    """Pending invoice is past its due date."""
    invoice: Any = None
    user_id: str = "walk-in"

    @classmethod
    def create(cls, invoice: Any, user_id: str) -> "InvoiceOverdue":
        return cls(invoice=invoice, user_id=user_id)


@dataclass(frozen=True)
class InvoiceDeleted(InvoiceEvent):
    """Invoice was removed by hand."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceDeleted":
        return cls(invoice=invoice)


# =============================================================================
# CUSTOMER EVENTS
# =============================================================================


@dataclass(frozen=True)
class CustomerEvent(RepairEvent):
    """Events related to customer records."""
    pass


@dataclass(frozen=True)
class CustomerCreated(CustomerEvent):
    """A customer record was added."""
    customer: Any = None

    @classmethod
    def create(cls, customer: Any) -> "CustomerCreated":
        return cls(customer=customer)
