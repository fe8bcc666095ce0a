"""
Handler for CustomerCreated events.

Welcomes a new customer on whichever channels their record has details for.
"""

from typing import Callable

from core.events import CustomerCreated
from core.handlers.notification_variables import customer_variables
from core.models import TemplateType


def handle_customer_created(dispatcher) -> Callable:
    """
    Factory that returns a CustomerCreated handler.

    Args:
        dispatcher: NotificationDispatcher instance

    Returns:
        Handler callable that queues a welcome message
    """

    def handler(event: CustomerCreated):
        customer = event.customer
        dispatcher.send(customer.id, TemplateType.WELCOME, customer_variables(customer))

    return handler
