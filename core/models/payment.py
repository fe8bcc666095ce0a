"""Payment ledger models.

Ledger entries reference an invoice and are never edited after recording.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    """Ways an invoice can be settled."""

    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(str, Enum):
    """Settlement status of a ledger entry."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentCreate(BaseModel):
    """Data required to record a ledger payment."""

    invoice_id: UUID
    amount_cents: int = Field(..., gt=0)
    method: PaymentMethod
    transaction_id: str | None = Field(None, max_length=255)
    status: PaymentStatus = PaymentStatus.COMPLETED
    notes: str | None = Field(None, max_length=500)


class Payment(BaseModel):
    """Full ledger payment as stored."""

    id: UUID
    invoice_id: UUID
    amount_cents: int
    method: PaymentMethod
    transaction_id: str | None = None
    status: PaymentStatus
    notes: str | None = None
    processed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED
