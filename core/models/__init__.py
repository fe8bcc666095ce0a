"""Core domain models."""

from core.models.customer import Customer, CustomerCreate, CustomerUpdate
from core.models.ticket import (
    RepairTicket, TicketCreate, TicketUpdate, TicketStatus,
    TicketPayment, TicketPaymentCreate, TicketPaymentMethod,
)
from core.models.payment import Payment, PaymentCreate, PaymentMethod, PaymentStatus
from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoicePaymentStatus, InvoiceSource,
)
from core.models.notification import (
    Notification, NotificationTemplate, NotificationPreferences, NotificationStatus,
    TemplateType, TemplateChannel, Channel,
)

__all__ = [
    # Customer
    "Customer", "CustomerCreate", "CustomerUpdate",
    # Ticket
    "RepairTicket", "TicketCreate", "TicketUpdate", "TicketStatus",
    "TicketPayment", "TicketPaymentCreate", "TicketPaymentMethod",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod", "PaymentStatus",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoicePaymentStatus", "InvoiceSource",
    # Notification
    "Notification", "NotificationTemplate", "NotificationPreferences", "NotificationStatus",
    "TemplateType", "TemplateChannel", "Channel",
]
