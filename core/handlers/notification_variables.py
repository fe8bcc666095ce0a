"""Template variables for ticket, invoice and customer notifications."""

from core.models import RepairTicket, Invoice, Customer

STATUS_MESSAGES = {
    "diagnosing": "Your repair request has been received and is being diagnosed.",
    "waiting_customer": "We need a quick word with you before we can continue. Please get in touch.",
    "waiting_parts": "We're waiting on parts for your repair and will update you when they arrive.",
    "in_progress": "Your device is currently being repaired by our technicians.",
    "completed": "Your device repair is complete and ready for pickup!",
    "cancelled": "Your repair request has been cancelled. Please contact us for more information.",
}


def format_pounds(cents: int) -> str:
    """1050 -> '10.50'"""
    return f"{cents / 100:.2f}"


def ticket_variables(ticket: RepairTicket) -> dict[str, str]:
    """Customer and tracking placeholders shared by every ticket template."""
    return {
        "customerFirstname": ticket.first_name or "",
        "customerSurname": ticket.last_name or "",
        "customerName": ticket.customer_name,
        "customerEmail": ticket.email or "",
        "customerPhone": ticket.phone or "",
        "trackingId": ticket.tracking_id,
    }


def status_variables(ticket: RepairTicket) -> dict[str, str]:
    return {
        **ticket_variables(ticket),
        "status": ticket.status.value.replace("_", " ").capitalize(),
        "additionalInfo": STATUS_MESSAGES.get(ticket.status.value, ""),
    }


def invoice_variables(invoice: Invoice) -> dict[str, str]:
    return {
        "customerFirstname": invoice.first_name or "",
        "customerSurname": invoice.last_name or "",
        "customerName": invoice.customer_name,
        "customerEmail": invoice.customer_email or "",
        "customerPhone": invoice.customer_phone or "",
        "trackingId": invoice.tracking_id,
        "invoiceNumber": invoice.invoice_number,
        "amount": format_pounds(invoice.balance_due_cents),
    }


def customer_variables(customer: Customer) -> dict[str, str]:
    return {
        "customerFirstname": customer.first_name or "",
        "customerSurname": customer.last_name or "",
        "customerName": customer.display_name,
        "customerEmail": customer.email or "",
        "customerPhone": customer.phone or "",
    }
