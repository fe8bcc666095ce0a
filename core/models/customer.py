"""Customer (contact) domain models."""

from datetime import datetime

from pydantic import BaseModel, Field, EmailStr, model_validator


class CustomerCreate(BaseModel):
    """Data required to create a customer."""

    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=5000)

    @model_validator(mode="after")
    def require_a_name(self) -> "CustomerCreate":
        if not (self.first_name or self.last_name):
            raise ValueError("At least one of first_name or last_name is required")
        return self


class CustomerUpdate(BaseModel):
    """Data that can be updated on a customer. All fields optional."""

    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=5000)


class Customer(BaseModel):
    """Full customer entity as stored.

    `id` is an opaque string: tickets refer to customers by it, next to the
    'walk-in' and 'online-customer' placeholders.
    """

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        """Human-readable name for display."""
        parts = [p for p in [self.first_name, self.last_name] if p]
        return " ".join(parts) if parts else "Unnamed Customer"
