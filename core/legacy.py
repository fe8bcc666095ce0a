"""
Read-path normalization for records written by the browser-era app.

Those records use camelCase keys, keep money in pounds as floats and use
`Date.now()` strings for ids. Each normalizer returns a dict the matching
pydantic model accepts; canonical records pass through unchanged.

Legacy ids map to a deterministic UUID5, so a ticket and the invoice that
references it still line up after normalization.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from uuid import UUID, NAMESPACE_URL, uuid5

from core.models import TicketStatus, InvoicePaymentStatus

logger = logging.getLogger(__name__)

LEGACY_NAMESPACE = uuid5(NAMESPACE_URL, "repairhub:legacy-id")

_TICKET_KEYS = {
    "trackingId": "tracking_id",
    "customerId": "customer_id",
    "customerFirstname": "first_name",
    "customerSurname": "last_name",
    "customerEmail": "email",
    "customerPhone": "phone",
    "deviceBrand": "device_brand",
    "deviceModel": "device_model",
    "deviceImei": "device_imei",
    "deviceSerial": "device_serial",
    "issueType": "issue_type",
    "issueDescription": "issue_description",
    "assignedTechnician": "assigned_technician",
    "estimatedTime": "estimated_time",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_TICKET_MONEY = {
    "estimatedCost": "estimated_cost_cents",
    "totalPaid": "total_paid_cents",
    "balanceDue": "balance_due_cents",
}

_INVOICE_KEYS = {
    "invoiceNumber": "invoice_number",
    "trackingId": "tracking_id",
    "customerFirstname": "first_name",
    "customerSurname": "last_name",
    "customerEmail": "customer_email",
    "customerPhone": "customer_phone",
    "deviceInfo": "device_info",
    "issueDescription": "issue_description",
    "paymentStatus": "payment_status",
    "paymentMethod": "payment_method",
    "paidAt": "paid_at",
    "dueDate": "due_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_INVOICE_MONEY = {
    "laborCost": "labor_cost_cents",
    "partsCost": "parts_cost_cents",
    "taxAmount": "tax_amount_cents",
    "totalAmount": "total_amount_cents",
}

_STORED_INVOICE_STATUSES = {
    s.value for s in InvoicePaymentStatus if s != InvoicePaymentStatus.OVERDUE
}

_PAYMENT_KEYS = {
    "transactionId": "transaction_id",
    "processedAt": "processed_at",
    "createdAt": "created_at",
}

_CUSTOMER_KEYS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def legacy_uuid(value) -> UUID | None:
    """
    UUID for a stored id.

    UUID strings parse as themselves; anything else (e.g. '1712345678901')
    maps to a UUID5 under LEGACY_NAMESPACE. Empty values give None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return uuid5(LEGACY_NAMESPACE, str(value))


def pounds_to_cents(value) -> int:
    """
    Convert a pound amount to cents, rounding half up.

    Float noise from the old app (69.99999999999999) rounds to the intended
    cent. Missing or unparseable amounts are 0.
    """
    if value is None or value == "":
        return 0
    try:
        cents = Decimal(str(value)) * 100
    except InvalidOperation:
        logger.warning(f"Unparseable legacy amount {value!r}, treating as 0")
        return 0
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _rename(record: dict, keys: dict[str, str]) -> dict:
    return {keys.get(key, key): value for key, value in record.items()}


def _convert_money(record: dict, money: dict[str, str]) -> None:
    for legacy_key, cents_key in money.items():
        value = record.pop(legacy_key, None)
        if cents_key not in record and value is not None:
            record[cents_key] = pounds_to_cents(value)


def _split_name(record: dict, name_key: str = "customerName") -> None:
    legacy_name = record.pop(name_key, None)
    if legacy_name and not (record.get("first_name") or record.get("last_name")):
        first, _, last = legacy_name.strip().partition(" ")
        record["first_name"] = first or None
        record["last_name"] = last.strip() or None


def _ticket_status(value) -> str:
    """'In Progress', 'in-progress' and 'in_progress' all mean the same status."""
    status = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return TicketStatus(status).value
    except ValueError:
        logger.warning(f"Unknown legacy ticket status {value!r}, reading as diagnosing")
        return TicketStatus.DIAGNOSING.value


def normalize_ticket_payment(record: dict) -> dict | None:
    """Canonical embedded payment, or None for one with no positive amount."""
    normalized = dict(record)
    normalized["id"] = legacy_uuid(normalized.get("id"))
    if normalized["id"] is None:
        del normalized["id"]

    amount = normalized.pop("amount", None)
    if "amount_cents" not in normalized:
        normalized["amount_cents"] = pounds_to_cents(amount)

    if normalized["amount_cents"] <= 0:
        logger.warning(f"Dropping legacy ticket payment {record.get('id')!r} with no positive amount")
        return None
    return normalized


def normalize_ticket_record(record: dict) -> dict:
    """
    Bring a stored ticket record into the canonical shape.

    Renames camelCase keys, converts pound amounts to cents, splits a lone
    'customerName' into first and last name, maps legacy ids and statuses,
    and fills missing financial fields with zero.
    """
    normalized = _rename(record, _TICKET_KEYS)
    _convert_money(normalized, _TICKET_MONEY)
    _split_name(normalized)

    if "id" in normalized:
        normalized["id"] = legacy_uuid(normalized["id"])
    if "status" in normalized:
        normalized["status"] = _ticket_status(normalized["status"])

    # The intake form stored the estimate in days as a number
    if normalized.get("estimated_time") is not None:
        normalized["estimated_time"] = str(normalized["estimated_time"])

    if not normalized.get("customer_id"):
        normalized["customer_id"] = "walk-in"

    normalized.setdefault("estimated_cost_cents", 0)
    normalized.setdefault("total_paid_cents", 0)
    normalized.setdefault("balance_due_cents", 0)

    payments = (normalize_ticket_payment(p) for p in normalized.get("payments") or [])
    normalized["payments"] = [p for p in payments if p is not None]

    return normalized


def normalize_invoice_record(record: dict) -> dict:
    """
    Bring a stored invoice record into the canonical shape.

    Besides the key, id and money conversions, fills in what the old app
    never stored: an invoice number ('LEGACY-<old id>'), the tax rate (derived
    from tax over subtotal) and the amount paid (the total when paid, else 0).
    'overdue' was stored by the old app; it is read back as pending and
    derived from the due date again.
    """
    legacy_id = record.get("id")
    normalized = _rename(record, _INVOICE_KEYS)
    _convert_money(normalized, _INVOICE_MONEY)
    _split_name(normalized)

    normalized["id"] = legacy_uuid(normalized.get("id"))
    if "repairTicketId" in normalized:
        normalized["repair_ticket_id"] = legacy_uuid(normalized.pop("repairTicketId"))
    normalized.setdefault("repair_ticket_id", None)

    if not normalized.get("invoice_number"):
        normalized["invoice_number"] = f"LEGACY-{legacy_id}"

    labor = normalized.setdefault("labor_cost_cents", 0)
    parts = normalized.setdefault("parts_cost_cents", 0)
    tax = normalized.setdefault("tax_amount_cents", 0)
    normalized.setdefault("total_amount_cents", labor + parts + tax)
    if "tax_rate_bps" not in normalized:
        subtotal = labor + parts
        normalized["tax_rate_bps"] = min(10000, round(tax * 10000 / subtotal)) if subtotal else 0

    status = normalized.get("payment_status") or InvoicePaymentStatus.PENDING.value
    if status not in _STORED_INVOICE_STATUSES:
        status = InvoicePaymentStatus.PENDING.value
    normalized["payment_status"] = status

    if "amount_paid_cents" not in normalized:
        paid = status == InvoicePaymentStatus.PAID.value
        normalized["amount_paid_cents"] = normalized["total_amount_cents"] if paid else 0

    if not normalized.get("payment_method"):
        normalized["payment_method"] = None

    return normalized


def normalize_payment_record(record: dict) -> dict:
    """Bring a stored ledger payment into the canonical shape."""
    normalized = _rename(record, _PAYMENT_KEYS)
    normalized["id"] = legacy_uuid(normalized.get("id"))
    if "invoiceId" in normalized:
        normalized["invoice_id"] = legacy_uuid(normalized.pop("invoiceId"))

    amount = normalized.pop("amount", None)
    if "amount_cents" not in normalized:
        normalized["amount_cents"] = pounds_to_cents(amount)

    normalized.setdefault("status", "completed")
    normalized.setdefault("processed_at", None)
    normalized.setdefault("created_at", normalized["processed_at"])
    return normalized


def normalize_customer_record(record: dict) -> dict:
    """
    Bring a stored customer record into the canonical shape.

    Customer ids stay opaque strings ('cust_1712345678901_x1y2z3' included),
    since tickets refer to customers by that string.
    """
    normalized = _rename(record, _CUSTOMER_KEYS)
    _split_name(normalized, name_key="name")
    normalized["id"] = str(normalized["id"])
    if normalized.get("email") == "":
        normalized["email"] = None
    return normalized
