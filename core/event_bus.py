"""
In-process pub/sub for repair shop domain events.

Publishing is synchronous: every handler runs on the publisher's thread
before publish() returns. By then the ticket or invoice write is already
persisted, so a failing handler is logged and skipped, never re-raised.
"""

import logging
from typing import Callable, Dict, List

from core.events import RepairEvent

logger = logging.getLogger(__name__)


class EventBus:
    """
    Routes events to handlers by event class name.

    Handlers subscribe with a name ('TicketCompleted') or the event class
    itself and are called in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: "str | type[RepairEvent]", callback: Callable):
        """
        Register a handler.

        Args:
            event_type: Event class, or its name
            callback: Called with the event instance
        """
        name = event_type if isinstance(event_type, str) else event_type.__name__
        self._subscribers.setdefault(name, []).append(callback)

    def subscriber_count(self, event_type: str) -> int:
        return len(self._subscribers.get(event_type, []))

    def publish(self, event: RepairEvent):
        """Deliver an event to its handlers, logging any that fail."""
        event_type = type(event).__name__

        for callback in self._subscribers.get(event_type, []):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )
