"""GET /api/data — unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response


VALID_TYPES = {"customers", "tickets", "invoices", "payments", "notifications", "preferences", "templates"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    customer_svc = services["customer"]
    ticket_svc = services["ticket"]
    invoice_svc = services["invoice"]
    notification_svc = services["notification"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        tracking_id: str | None = Query(None),
        customer_id: str | None = Query(None),
        email: str | None = Query(None),
        invoice_id: str | None = Query(None),
        user_id: str | None = Query(None),
        filter: str | None = Query(None),
        search: str | None = Query(None),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        if type == "customers":
            data = _handle_customers(customer_svc, id, email, search)
        elif type == "tickets":
            data = _handle_tickets(ticket_svc, id, tracking_id, customer_id)
        elif type == "invoices":
            data = _handle_invoices(invoice_svc, id, tracking_id, email, filter)
        elif type == "payments":
            data = _handle_payments(invoice_svc, id, invoice_id)
        elif type == "notifications":
            if not user_id:
                raise ValueError("'notifications' type requires 'user_id' parameter")
            data = [n.model_dump(mode="json") for n in notification_svc.list_for_user(user_id)]
        elif type == "preferences":
            if not user_id:
                raise ValueError("'preferences' type requires 'user_id' parameter")
            data = notification_svc.get_preferences(user_id).model_dump(mode="json")
        else:
            data = [t.model_dump(mode="json") for t in notification_svc.get_templates()]

        return success_response(data, request.state.request_id).model_dump(mode="json")

    return router


def _handle_customers(customer_svc, id, email, search):
    if id or email:
        customer = customer_svc.get_by_id(id) if id else customer_svc.get_by_email(email)
        if customer is None:
            raise ValueError(f"Customer {id or email} not found")
        return customer.model_dump(mode="json")

    return [c.model_dump(mode="json") for c in customer_svc.search(search)]


def _handle_tickets(ticket_svc, id, tracking_id, customer_id):
    if id or tracking_id:
        ticket = ticket_svc.get_by_id(UUID(id)) if id else ticket_svc.get_by_tracking_id(tracking_id)
        if ticket is None:
            raise ValueError(f"Ticket {id or tracking_id} not found")
        return ticket.model_dump(mode="json")

    if customer_id:
        tickets = ticket_svc.list_for_customer(customer_id)
    else:
        tickets = ticket_svc.list_all()
    return [t.model_dump(mode="json") for t in tickets]


def _dump_invoice(invoice) -> dict:
    data = invoice.model_dump(mode="json")
    data["effective_status"] = invoice.effective_status().value
    data["balance_due_cents"] = invoice.balance_due_cents
    return data


def _handle_invoices(invoice_svc, id, tracking_id, email, filter):
    if id or tracking_id:
        invoice = invoice_svc.get_by_id(UUID(id)) if id else invoice_svc.get_by_tracking_id(tracking_id)
        if invoice is None:
            raise ValueError(f"Invoice {id or tracking_id} not found")
        return _dump_invoice(invoice)

    if filter == "overdue":
        invoices = invoice_svc.list_overdue()
    elif filter is not None:
        raise ValueError(f"Unknown invoice filter '{filter}' (supported: overdue)")
    elif email:
        invoices = invoice_svc.list_for_customer_email(email)
    else:
        invoices = invoice_svc.list_all()

    return [_dump_invoice(i) for i in invoices]


def _handle_payments(invoice_svc, id, invoice_id):
    if id:
        payment = invoice_svc.get_payment(UUID(id))
        if payment is None:
            raise ValueError(f"Payment {id} not found")
        return payment.model_dump(mode="json")

    if invoice_id:
        payments = invoice_svc.list_payments_for_invoice(UUID(invoice_id))
    else:
        payments = invoice_svc.list_payments()
    return [p.model_dump(mode="json") for p in payments]
