"""Invoice domain models.

All amounts are stored in cents (integer) to avoid floating point issues.
£10.00 = 1000 cents. Tax rate is basis points (10000 = 100%).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.payment import PaymentMethod
from utils.timezone import is_past


class InvoicePaymentStatus(str, Enum):
    """Invoice payment status.

    OVERDUE is never stored; it is reported by Invoice.effective_status.
    """

    PENDING = "pending"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceSource(str, Enum):
    """Where an invoice's cost breakdown came from."""

    PROJECTED = "projected"  # derived from the ticket's amounts
    MANUAL = "manual"  # labor/parts entered explicitly


class InvoiceCreate(BaseModel):
    """Data required to create an invoice (always from a ticket)."""

    repair_ticket_id: UUID | None = None
    tracking_id: str
    first_name: str | None = None
    last_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    device_info: str = ""
    issue_description: str | None = None
    labor_cost_cents: int = Field(..., ge=0)
    parts_cost_cents: int = Field(..., ge=0)
    tax_rate_bps: int = Field(0, ge=0, le=10000)
    tax_amount_cents: int | None = Field(None, ge=0)  # tax already inside a gross amount
    discount_cents: int = Field(0, ge=0)
    amount_paid_cents: int = Field(0, ge=0)
    source: InvoiceSource = InvoiceSource.PROJECTED
    notes: str | None = Field(None, max_length=2000)
    due_at: datetime | None = None


class InvoiceUpdate(BaseModel):
    """Fields the engine refreshes on an invoice. All optional."""

    first_name: str | None = None
    last_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    device_info: str | None = None
    issue_description: str | None = None
    labor_cost_cents: int | None = Field(None, ge=0)
    parts_cost_cents: int | None = Field(None, ge=0)
    tax_amount_cents: int | None = Field(None, ge=0)
    discount_cents: int | None = Field(None, ge=0)
    amount_paid_cents: int | None = Field(None, ge=0)
    payment_status: InvoicePaymentStatus | None = None
    payment_method: PaymentMethod | None = None
    payment_ids: list[UUID] | None = None
    paid_at: datetime | None = None
    notes: str | None = Field(None, max_length=2000)


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    invoice_number: str
    repair_ticket_id: UUID | None
    tracking_id: str
    first_name: str | None = None
    last_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    device_info: str = ""
    issue_description: str | None = None
    labor_cost_cents: int
    parts_cost_cents: int
    tax_rate_bps: int
    tax_amount_cents: int
    discount_cents: int = 0
    total_amount_cents: int
    amount_paid_cents: int = 0
    payment_status: InvoicePaymentStatus = InvoicePaymentStatus.PENDING
    payment_method: PaymentMethod | None = None
    payment_ids: list[UUID] = Field(default_factory=list)
    source: InvoiceSource = InvoiceSource.PROJECTED
    notes: str | None = None
    paid_at: datetime | None = None
    due_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def customer_name(self) -> str:
        """Human-readable customer name for display."""
        parts = [p for p in [self.first_name, self.last_name] if p]
        return " ".join(parts) if parts else "Walk-in Customer"

    @property
    def subtotal_cents(self) -> int:
        """Labor plus parts before tax and discount."""
        return self.labor_cost_cents + self.parts_cost_cents

    @property
    def balance_due_cents(self) -> int:
        """Remaining amount to be paid in cents. Never negative."""
        return max(0, self.total_amount_cents - self.amount_paid_cents)

    @property
    def total_amount_pounds(self) -> float:
        """Total amount in pounds for display."""
        return self.total_amount_cents / 100

    @property
    def is_paid(self) -> bool:
        """Whether invoice is fully paid."""
        return self.payment_status == InvoicePaymentStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        return self.payment_status == InvoicePaymentStatus.CANCELLED

    def effective_status(self, now: datetime | None = None) -> InvoicePaymentStatus:
        """Stored status, reported as OVERDUE when pending past its due date."""
        if self.payment_status == InvoicePaymentStatus.PENDING and is_past(self.due_at, now):
            return InvoicePaymentStatus.OVERDUE
        return self.payment_status
