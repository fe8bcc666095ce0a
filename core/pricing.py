"""
Cent and basis-point arithmetic for invoices.

All amounts are integer cents, all rates basis points (10000 = 100%).
Division always floors, like the rest of the billing code, and every split
hands the remainder to the second part so that parts always add back up.
"""

from core.models.invoice import InvoicePaymentStatus

BPS_SCALE = 10000


def tax_for(subtotal_cents: int, tax_rate_bps: int) -> int:
    """Tax owed on a subtotal."""
    return (subtotal_cents * tax_rate_bps) // BPS_SCALE


def invoice_total(
    labor_cents: int,
    parts_cents: int,
    tax_rate_bps: int,
    discount_cents: int = 0,
    tax_cents: int | None = None,
) -> tuple[int, int]:
    """
    Tax and total for an invoice.

    Tax is charged on labor + parts before the discount is taken off.
    When tax_cents is given (tax already contained in a tax-inclusive
    amount) it is used as is instead of being computed from the rate.

    Returns:
        (tax_amount_cents, total_amount_cents)

    Raises:
        ValueError: If the discount exceeds the taxed subtotal
    """
    subtotal = labor_cents + parts_cents
    tax = tax_for(subtotal, tax_rate_bps) if tax_cents is None else tax_cents
    total = subtotal + tax - discount_cents
    if total < 0:
        raise ValueError(
            f"Discount {discount_cents} exceeds invoice subtotal plus tax {subtotal + tax}"
        )
    return tax, total


def back_out_tax(gross_cents: int, tax_rate_bps: int) -> int:
    """
    Pre-tax subtotal contained in a tax-inclusive amount.

    The subtotal is floored; whatever is left over is the tax, so
    subtotal + tax == gross exactly.
    """
    return (gross_cents * BPS_SCALE) // (BPS_SCALE + tax_rate_bps)


def split_cost(subtotal_cents: int, labor_share_bps: int) -> tuple[int, int]:
    """
    Split a subtotal into (labor, parts) by the configured labor share.

    This is a placeholder costing heuristic for tickets that carry a single
    quoted amount and no itemized breakdown.
    """
    labor = (subtotal_cents * labor_share_bps) // BPS_SCALE
    return labor, subtotal_cents - labor


def project_costs(
    gross_cents: int,
    tax_rate_bps: int,
    labor_share_bps: int,
) -> tuple[int, int, int]:
    """
    Derive (labor, parts, tax) from a ticket's tax-inclusive amount owed.

    labor + parts + tax always equals gross_cents.
    """
    subtotal = back_out_tax(gross_cents, tax_rate_bps)
    labor, parts = split_cost(subtotal, labor_share_bps)
    return labor, parts, gross_cents - subtotal


def derive_payment_status(amount_paid_cents: int, total_amount_cents: int) -> InvoicePaymentStatus:
    """
    Payment status implied by the amount paid against the invoice total.

    paid when paid >= total, partially_paid when 0 < paid < total,
    pending otherwise.
    """
    if amount_paid_cents >= total_amount_cents:
        return InvoicePaymentStatus.PAID
    if amount_paid_cents > 0:
        return InvoicePaymentStatus.PARTIALLY_PAID
    return InvoicePaymentStatus.PENDING
