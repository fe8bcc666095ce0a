"""
Handler for TicketCompleted events.

On ticket completion, tells the customer the device is ready for pickup.
"""

import logging
from typing import Callable

from core.events import TicketCompleted
from core.handlers.notification_variables import ticket_variables
from core.models import TemplateType

logger = logging.getLogger(__name__)


def handle_ticket_completed(dispatcher) -> Callable:
    """
    Factory that returns a TicketCompleted handler.

    Dependencies are captured at wiring time via closure.

    Args:
        dispatcher: NotificationDispatcher instance

    Returns:
        Handler callable that queues a completion notice
    """

    def handler(event: TicketCompleted):
        ticket = event.ticket
        logger.debug(f"{ticket.tracking_id} completed, queueing completion notice")
        dispatcher.send(ticket.customer_id, TemplateType.COMPLETION_NOTICE, ticket_variables(ticket))

    return handler
