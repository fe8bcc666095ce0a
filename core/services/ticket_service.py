"""
Ticket store for repair tickets.

Owns the canonical ticket records. Every operation is a whole-collection
read-modify-write over the persisted array. The store merges what it is
given; keeping total paid and balance due consistent is the reconciliation
engine's job.
"""

import logging
import threading
from uuid import UUID

from core.legacy import normalize_ticket_record
from core.models import RepairTicket
from core.persistence import Collection
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"id", "tracking_id", "created_at"}


class TicketService:
    """Store for repair ticket records."""

    def __init__(self, collection: Collection):
        self.collection = collection
        self._lock = threading.RLock()

    def _load(self) -> list[RepairTicket]:
        return [
            RepairTicket.model_validate(normalize_ticket_record(record))
            for record in self.collection.load()
        ]

    def _save(self, tickets: list[RepairTicket]) -> None:
        self.collection.save([t.model_dump(mode="json") for t in tickets])

    def create(self, ticket: RepairTicket) -> RepairTicket:
        """
        Persist a new ticket.

        Args:
            ticket: Fully built ticket (id and tracking ID already assigned)

        Returns:
            The stored ticket

        Raises:
            ValueError: If the id or tracking ID is already taken
        """
        with self._lock:
            tickets = self._load()
            for existing in tickets:
                if existing.id == ticket.id:
                    raise ValueError(f"Ticket {ticket.id} already exists")
                if existing.tracking_id == ticket.tracking_id:
                    raise ValueError(f"Tracking ID {ticket.tracking_id} already in use")

            tickets.append(ticket)
            self._save(tickets)

        logger.info(f"Created ticket {ticket.tracking_id}")
        return ticket

    def get_by_id(self, ticket_id: UUID) -> RepairTicket | None:
        """
        Get ticket by ID.

        Returns:
            Ticket if found, None otherwise.
        """
        for ticket in self._load():
            if ticket.id == ticket_id:
                return ticket
        return None

    def get_by_tracking_id(self, tracking_id: str) -> RepairTicket | None:
        for ticket in self._load():
            if ticket.tracking_id == tracking_id:
                return ticket
        return None

    def update(self, ticket_id: UUID, changes: dict) -> RepairTicket | None:
        """
        Merge fields into a ticket and refresh updated_at.

        No cross-field validation happens here.

        Args:
            ticket_id: Ticket UUID
            changes: Field name -> new value

        Returns:
            Updated ticket, or None if not found
        """
        for field in changes:
            if field in _IMMUTABLE_FIELDS:
                logger.warning(f"Ignoring attempt to change '{field}' on ticket {ticket_id}")

        valid_changes = {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}

        with self._lock:
            tickets = self._load()
            for index, current in enumerate(tickets):
                if current.id != ticket_id:
                    continue

                merged = current.model_dump()
                merged.update(valid_changes)
                merged["updated_at"] = now_utc()
                updated = RepairTicket.model_validate(merged)

                tickets[index] = updated
                self._save(tickets)
                return updated

        return None

    def delete(self, ticket_id: UUID) -> bool:
        """
        Remove a ticket entirely.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            tickets = self._load()
            remaining = [t for t in tickets if t.id != ticket_id]
            if len(remaining) == len(tickets):
                return False
            self._save(remaining)

        logger.info(f"Deleted ticket {ticket_id}")
        return True

    def list_all(self) -> list[RepairTicket]:
        """All tickets in creation order."""
        return self._load()

    def list_for_customer(self, customer_id: str) -> list[RepairTicket]:
        return [t for t in self._load() if t.customer_id == customer_id]
