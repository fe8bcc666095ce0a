"""Repair ticket domain models.

All amounts are stored in cents (integer) to avoid floating point issues.
£10.00 = 1000 cents.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, EmailStr

from utils.timezone import now_utc


class TicketStatus(str, Enum):
    """Repair workflow status. Any status may follow any other."""

    DIAGNOSING = "diagnosing"
    WAITING_CUSTOMER = "waiting_customer"
    WAITING_PARTS = "waiting_parts"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class TicketPaymentMethod(str, Enum):
    """Ways a customer can pay at the counter."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"


class TicketPaymentCreate(BaseModel):
    """A payment taken against a ticket."""

    amount_cents: int = Field(..., gt=0)
    method: TicketPaymentMethod
    notes: str | None = Field(None, max_length=500)


class TicketPayment(BaseModel):
    """Payment embedded in a ticket. Immutable once added."""

    id: UUID = Field(default_factory=uuid4)
    amount_cents: int = Field(..., gt=0)
    method: TicketPaymentMethod
    date: datetime = Field(default_factory=now_utc)
    notes: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def from_create(cls, data: TicketPaymentCreate) -> "TicketPayment":
        return cls(amount_cents=data.amount_cents, method=data.method, notes=data.notes)


class TicketCreate(BaseModel):
    """Data taken at intake to open a repair ticket."""

    customer_id: str = Field("walk-in", max_length=100)
    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    device_brand: str | None = Field(None, max_length=255)
    device_model: str | None = Field(None, max_length=255)
    device_imei: str | None = Field(None, max_length=50)
    device_serial: str | None = Field(None, max_length=100)
    issue_type: str | None = Field(None, max_length=100)
    issue_description: str | None = Field(None, max_length=5000)
    assigned_technician: str | None = Field(None, max_length=255)
    estimated_cost_cents: int = Field(0, ge=0)
    estimated_time: str | None = Field(None, max_length=100)
    status: TicketStatus = TicketStatus.DIAGNOSING
    payments: list[TicketPaymentCreate] = Field(default_factory=list)


class TicketUpdate(BaseModel):
    """Data that can be updated on a ticket. All fields optional.

    `payments` replaces the whole payment list when given.
    """

    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    device_brand: str | None = Field(None, max_length=255)
    device_model: str | None = Field(None, max_length=255)
    device_imei: str | None = Field(None, max_length=50)
    device_serial: str | None = Field(None, max_length=100)
    issue_type: str | None = Field(None, max_length=100)
    issue_description: str | None = Field(None, max_length=5000)
    assigned_technician: str | None = Field(None, max_length=255)
    estimated_cost_cents: int | None = Field(None, ge=0)
    estimated_time: str | None = Field(None, max_length=100)
    status: TicketStatus | None = None
    payments: list[TicketPayment] | None = None


class RepairTicket(BaseModel):
    """Full repair ticket entity as stored."""

    id: UUID
    tracking_id: str
    customer_id: str = "walk-in"
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    device_brand: str | None = None
    device_model: str | None = None
    device_imei: str | None = None
    device_serial: str | None = None
    issue_type: str | None = None
    issue_description: str | None = None
    assigned_technician: str | None = None
    estimated_cost_cents: int = 0
    estimated_time: str | None = None
    status: TicketStatus = TicketStatus.DIAGNOSING
    total_paid_cents: int = 0
    balance_due_cents: int = 0
    payments: list[TicketPayment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def customer_name(self) -> str:
        """Human-readable customer name for display."""
        parts = [p for p in [self.first_name, self.last_name] if p]
        return " ".join(parts) if parts else "Walk-in Customer"

    @property
    def device_info(self) -> str:
        """Brand and model as one line."""
        parts = [p for p in [self.device_brand, self.device_model] if p]
        return " ".join(parts)

    @property
    def grand_total_cents(self) -> int:
        """Amount the customer owes in total (the quote is tax-inclusive)."""
        return self.estimated_cost_cents

    @property
    def footprint_cents(self) -> int:
        """Paid plus outstanding. Non-zero means the ticket needs an invoice."""
        return self.total_paid_cents + self.balance_due_cents

    @property
    def is_settled(self) -> bool:
        """Whether nothing is left to pay."""
        return self.balance_due_cents == 0
