"""
Activity trail for ticket and invoice lifecycle events.

Events that don't notify anyone still leave one line in the log, so the
history of a ticket can be followed from the log alone.
"""

import logging
from typing import Callable

from core.events import RepairEvent, TicketEvent, InvoiceEvent

logger = logging.getLogger(__name__)


def describe(event: RepairEvent) -> str:
    """One-line summary of an event: what happened, to which record."""
    name = type(event).__name__
    if isinstance(event, TicketEvent):
        return f"{name} {event.ticket.tracking_id}"
    if isinstance(event, InvoiceEvent):
        invoice = event.invoice
        return (
            f"{name} {invoice.invoice_number} ({invoice.tracking_id}, "
            f"total={invoice.total_amount_cents}, paid={invoice.amount_paid_cents})"
        )
    return name


def handle_activity() -> Callable:
    """
    Factory that returns a handler logging each event it receives.

    Returns:
        Handler callable for any RepairEvent
    """

    def handler(event: RepairEvent):
        logger.info(f"[{event.event_id}] {describe(event)}")

    return handler
