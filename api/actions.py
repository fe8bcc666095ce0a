"""POST /api/actions — unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from api.base import success_response
from core.exceptions import InvoiceStateError, NotFoundError
from core.models import (
    CustomerCreate, CustomerUpdate,
    TicketCreate, TicketUpdate,
    PaymentMethod,
    NotificationPreferences, TemplateType, Channel,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


class PaymentRequest(BaseModel):
    """Body of a process_payment action. Amount checks happen in the engine."""

    amount_cents: int
    method: PaymentMethod
    transaction_id: str | None = Field(None, max_length=255)


class FinalizeRequest(BaseModel):
    labor_cost_cents: int
    parts_cost_cents: int
    discount_cents: int = 0


class SendRequest(BaseModel):
    user_id: str
    template_type: TemplateType
    variables: dict[str, str] = Field(default_factory=dict)
    channels: list[Channel] | None = None


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "ticket": TicketHandler(services["reconciliation"]),
        "invoice": InvoiceHandler(services["reconciliation"], services["ticket"]),
        "notification": NotificationHandler(services["notification"]),
        "customer": CustomerHandler(services["customer"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result, request.state.request_id).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class TicketHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "process_payment"}

    def __init__(self, reconciliation):
        self.reconciliation = reconciliation

    def _handle_create(self, data: dict):
        ticket = self.reconciliation.create_ticket(TicketCreate(**data))
        return ticket.model_dump(mode="json")

    def _handle_update(self, data: dict):
        ticket_id = UUID(data.pop("id"))
        ticket = self.reconciliation.update_ticket(ticket_id, TicketUpdate(**data))
        return ticket.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        ticket_id = UUID(data["id"])
        deleted = self.reconciliation.delete_ticket(ticket_id)
        if not deleted:
            raise ValueError(f"Ticket {ticket_id} not found")
        return {"deleted": True}

    def _handle_process_payment(self, data: dict):
        ticket_id = UUID(data.pop("id"))
        request = PaymentRequest(**data)
        payment = self.reconciliation.process_payment(
            ticket_id, request.amount_cents, request.method, request.transaction_id,
        )
        return payment.model_dump(mode="json")


class InvoiceHandler:
    ALLOWED_ACTIONS = {"generate", "finalize", "process_payment", "cancel", "delete", "send_reminders"}

    def __init__(self, reconciliation, ticket_service):
        self.reconciliation = reconciliation
        self.ticket_service = ticket_service

    def _handle_generate(self, data: dict):
        ticket_id = UUID(data["ticket_id"])
        ticket = self.ticket_service.get_by_id(ticket_id)
        if ticket is None:
            raise ValueError(f"Ticket {ticket_id} not found")

        invoice = self.reconciliation.project_invoice(
            ticket, data.get("labor_cost_cents"), data.get("parts_cost_cents"),
        )
        return invoice.model_dump(mode="json")

    def _handle_finalize(self, data: dict):
        ticket_id = UUID(data.pop("ticket_id"))
        request = FinalizeRequest(**data)
        invoice = self.reconciliation.finalize_invoice(
            ticket_id, request.labor_cost_cents, request.parts_cost_cents, request.discount_cents,
        )
        if invoice is None:
            raise InvoiceStateError(
                f"Ticket {ticket_id} must be completed with nothing left to pay before it is invoiced"
            )
        return invoice.model_dump(mode="json")

    def _handle_process_payment(self, data: dict):
        invoice_id = UUID(data.pop("id"))
        request = PaymentRequest(**data)
        payment = self.reconciliation.process_payment(
            invoice_id, request.amount_cents, request.method, request.transaction_id,
        )
        return payment.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        invoice = self.reconciliation.cancel_invoice(UUID(data["id"]))
        return invoice.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        invoice_id = UUID(data["id"])
        deleted = self.reconciliation.delete_invoice(invoice_id)
        if not deleted:
            raise ValueError(f"Invoice {invoice_id} not found")
        return {"deleted": True}

    def _handle_send_reminders(self, data: dict):
        overdue = self.reconciliation.send_overdue_reminders()
        return {"reminded": [inv.invoice_number for inv in overdue]}


class NotificationHandler:
    ALLOWED_ACTIONS = {"save_preferences", "send"}

    def __init__(self, service):
        self.service = service

    def _handle_save_preferences(self, data: dict):
        preferences = self.service.save_preferences(NotificationPreferences(**data))
        return preferences.model_dump(mode="json")

    def _handle_send(self, data: dict):
        request = SendRequest(**data)
        sent = self.service.send(
            request.user_id, request.template_type, request.variables, request.channels,
        )
        return [n.model_dump(mode="json") for n in sent]


class CustomerHandler:
    ALLOWED_ACTIONS = {"create", "update"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        customer = self.service.create(CustomerCreate(**data))
        return customer.model_dump(mode="json")

    def _handle_update(self, data: dict):
        customer_id = str(data.pop("id"))
        customer = self.service.update(customer_id, CustomerUpdate(**data))
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer.model_dump(mode="json")
