"""
Customer service for the shop's contact records.

Handles create, read, update and search over the persisted customer array.
Tickets refer to customers by id; nothing here touches tickets.
"""

import logging
import threading
from uuid import uuid4

from core.event_bus import EventBus
from core.events import CustomerCreated
from core.legacy import normalize_customer_record
from core.models import Customer, CustomerCreate, CustomerUpdate
from core.persistence import Collection
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class CustomerService:
    """Service for customer operations."""

    def __init__(self, collection: Collection, event_bus: EventBus | None = None):
        self.collection = collection
        self.event_bus = event_bus
        self._lock = threading.RLock()

    def _load(self) -> list[Customer]:
        return [
            Customer.model_validate(normalize_customer_record(record))
            for record in self.collection.load()
        ]

    def _save(self, customers: list[Customer]) -> None:
        self.collection.save([c.model_dump(mode="json") for c in customers])

    def create(self, data: CustomerCreate) -> Customer:
        """
        Create a new customer.

        Args:
            data: Customer creation data

        Returns:
            Created customer
        """
        now = now_utc()
        customer = Customer(
            id=str(uuid4()),
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )

        with self._lock:
            customers = self._load()
            customers.append(customer)
            self._save(customers)

        logger.info(f"Created customer {customer.id}")
        if self.event_bus is not None:
            self.event_bus.publish(CustomerCreated.create(customer=customer))
        return customer

    def get_by_id(self, customer_id: str) -> Customer | None:
        """
        Get customer by ID.

        Returns:
            Customer if found, None otherwise.
        """
        for customer in self._load():
            if customer.id == customer_id:
                return customer
        return None

    def get_by_email(self, email: str) -> Customer | None:
        """First customer with this email, compared case-insensitively."""
        wanted = email.strip().lower()
        for customer in self._load():
            if customer.email and customer.email.lower() == wanted:
                return customer
        return None

    def update(self, customer_id: str, data: CustomerUpdate) -> Customer | None:
        """
        Update customer fields.

        Args:
            customer_id: Customer id
            data: Fields to update (unset fields are left alone)

        Returns:
            Updated customer, or None if not found
        """
        changes = data.model_dump(exclude_unset=True)

        with self._lock:
            customers = self._load()
            for index, current in enumerate(customers):
                if current.id != customer_id:
                    continue

                if not changes:
                    return current

                merged = current.model_dump()
                merged.update(changes)
                merged["updated_at"] = now_utc()
                updated = Customer.model_validate(merged)

                customers[index] = updated
                self._save(customers)
                return updated

        return None

    def search(self, query: str | None) -> list[Customer]:
        """
        Customers whose name, email or phone contains the query.

        Case-insensitive. A blank query returns every customer.
        """
        term = (query or "").strip().lower()
        customers = self._load()
        if not term:
            return customers

        return [
            c for c in customers
            if term in f"{c.first_name or ''} {c.last_name or ''}".lower()
            or term in (c.email or "").lower()
            or term in (c.phone or "").lower()
        ]

    def list_all(self) -> list[Customer]:
        return self._load()
