"""Application configuration for billing, identifiers and storage."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Invoice pricing configuration.

    Rates are basis points (10000 = 100%). The shop historically charged 8%
    on invoices and 20% VAT on ticket quotes; a single rate is applied to
    every invoice until that is settled.
    """

    tax_rate_bps: int = Field(
        default=800,
        description="Tax applied to labor + parts on every invoice",
        ge=0,
        le=10000,
    )
    labor_share_bps: int = Field(
        default=7000,
        description="Share of a projected invoice subtotal booked as labor (rest is parts)",
        ge=0,
        le=10000,
    )
    invoice_due_days: int = Field(
        default=7,
        description="Days between invoice creation and its due date",
        ge=0,
        le=365,
    )
    invoice_prefix: str = Field(
        default="INV",
        description="Prefix of generated invoice numbers",
        min_length=1,
        max_length=10,
    )


class TrackingConfig(BaseModel):
    """Tracking ID format: '<prefix> <zero-padded counter> <suffix>'."""

    prefix: str = Field(default="CH", min_length=1, max_length=4)
    suffix: str = Field(default="UK", min_length=1, max_length=4)
    width: int = Field(default=7, description="Zero-padded counter width", ge=1, le=12)


class StorageConfig(BaseModel):
    """Key names of the persisted collections in Valkey."""

    tickets_key: str = "repairhub_tickets"
    invoices_key: str = "repairhub_invoices"
    payments_key: str = "repairhub_payments"
    ticket_counter_key: str = "repairhub_ticket_counter"
    invoice_counter_key: str = Field(
        default="repairhub_invoice_counter",
        description="Per-year invoice counters live under '<key>:<year>'",
    )
    customers_key: str = "computerhub_customers"
    notifications_key: str = "computerhub_notifications"
    templates_key: str = "computerhub_notification_templates"
    preferences_key: str = "computerhub_notification_preferences"

    # Legacy key -> current key, migrated once on startup
    legacy_keys: dict[str, str] = Field(
        default_factory=lambda: {
            "repairhub_customers": "computerhub_customers",
            "repairhub_notifications": "computerhub_notifications",
            "repairhub_notification_templates": "computerhub_notification_templates",
            "repairhub_notification_preferences": "computerhub_notification_preferences",
        }
    )


class AppConfig(BaseModel):
    """Top-level configuration grouping every section."""

    billing: BillingConfig = Field(default_factory=BillingConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    gateway_enabled: bool = Field(
        default=False,
        description="Deliver notifications through the email/SMS gateway (history only when off)",
    )
