"""
Handlers for payment events.

TicketPaymentReceived confirms the payment to the customer; InvoiceOverdue
reminds them that an invoice is due.
"""

import logging
from typing import Callable

from core.events import TicketPaymentReceived, InvoiceOverdue
from core.handlers.notification_variables import ticket_variables, invoice_variables, format_pounds
from core.models import TemplateType

logger = logging.getLogger(__name__)


def handle_ticket_payment_received(dispatcher) -> Callable:
    """
    Factory that returns a TicketPaymentReceived handler.

    Args:
        dispatcher: NotificationDispatcher instance

    Returns:
        Handler callable that queues a payment confirmation
    """

    def handler(event: TicketPaymentReceived):
        ticket = event.ticket
        dispatcher.send(ticket.customer_id, TemplateType.PAYMENT_CONFIRMATION, {
            **ticket_variables(ticket),
            "amount": format_pounds(event.amount_cents),
            "balanceDue": format_pounds(ticket.balance_due_cents),
        })

    return handler


def handle_invoice_overdue(dispatcher) -> Callable:
    """
    Factory that returns an InvoiceOverdue handler.

    Args:
        dispatcher: NotificationDispatcher instance

    Returns:
        Handler callable that queues a payment reminder
    """

    def handler(event: InvoiceOverdue):
        invoice = event.invoice
        logger.info(f"Invoice {invoice.invoice_number} overdue, reminding {event.user_id}")
        dispatcher.send(event.user_id, TemplateType.PAYMENT_REMINDER, invoice_variables(invoice))

    return handler
