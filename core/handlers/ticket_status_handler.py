"""
Handler for TicketStatusChanged events.

Tells the customer their repair moved to a new status.
"""

import logging
from typing import Callable

from core.events import TicketStatusChanged
from core.handlers.notification_variables import status_variables
from core.models import TemplateType

logger = logging.getLogger(__name__)


def handle_ticket_status_changed(dispatcher) -> Callable:
    """
    Factory that returns a TicketStatusChanged handler.

    Args:
        dispatcher: NotificationDispatcher instance

    Returns:
        Handler callable that queues a status update notification
    """

    def handler(event: TicketStatusChanged):
        ticket = event.ticket
        logger.debug(
            f"{ticket.tracking_id}: {event.previous_status} -> {ticket.status.value}"
        )
        dispatcher.send(ticket.customer_id, TemplateType.STATUS_UPDATE, status_variables(ticket))

    return handler
