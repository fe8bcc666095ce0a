"""
Application wiring for the repair shop back end.

Builds the object graph (stores, engine, notifications, event handlers),
configures logging and creates the FastAPI app:

    uvicorn main:create_app --factory
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from api import create_actions_router, create_data_router, register_error_handlers, RequestIDMiddleware
from clients import ValkeyClient, GatewayClient, get_valkey_url, get_gateway_config
from core.config import AppConfig
from core.dispatcher import NotificationDispatcher
from core.event_bus import EventBus
from core.handlers.activity_log_handler import handle_activity
from core.handlers.customer_welcome_handler import handle_customer_created
from core.handlers.invoice_payment_handler import handle_ticket_payment_received, handle_invoice_overdue
from core.handlers.ticket_completion_handler import handle_ticket_completed
from core.handlers.ticket_status_handler import handle_ticket_status_changed
from core.identifiers import TrackingIdGenerator, InvoiceNumberGenerator
from core.persistence import (
    InMemoryCollection, InMemoryCounter, ValkeyCollection, ValkeyCounter, migrate_key,
)
from core.services.customer_service import CustomerService
from core.services.invoice_service import InvoiceService
from core.services.notification_service import NotificationService
from core.services.reconciliation_service import ReconciliationService
from core.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Environment variable -> (config section, field)
_ENV_OVERRIDES = {
    "REPAIRHUB_TAX_RATE_BPS": ("billing", "tax_rate_bps"),
    "REPAIRHUB_LABOR_SHARE_BPS": ("billing", "labor_share_bps"),
    "REPAIRHUB_INVOICE_DUE_DAYS": ("billing", "invoice_due_days"),
    "REPAIRHUB_INVOICE_PREFIX": ("billing", "invoice_prefix"),
    "REPAIRHUB_TRACKING_PREFIX": ("tracking", "prefix"),
    "REPAIRHUB_TRACKING_SUFFIX": ("tracking", "suffix"),
    "REPAIRHUB_GATEWAY_ENABLED": (None, "gateway_enabled"),
}


def configure_logging(level: str | None = None) -> None:
    """Console logging for the whole process. Level defaults to REPAIRHUB_LOG_LEVEL or INFO."""
    level = (level or os.getenv("REPAIRHUB_LOG_LEVEL", "INFO")).upper()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # Per-request connection chatter
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config(env: dict[str, str] | None = None) -> AppConfig:
    """
    Build the configuration from defaults plus REPAIRHUB_* overrides.

    Args:
        env: Variables to read (default os.environ)

    Raises:
        pydantic.ValidationError: If an override is out of range or malformed
    """
    env = os.environ if env is None else env

    sections: dict = {"billing": {}, "tracking": {}}
    top_level: dict = {}
    for variable, (section, field) in _ENV_OVERRIDES.items():
        if variable not in env:
            continue
        target = top_level if section is None else sections[section]
        target[field] = env[variable]

    config = AppConfig.model_validate({**sections, **top_level})
    logger.debug(f"Loaded config: {config.model_dump()}")
    return config


def build_services(
    config: AppConfig,
    valkey: ValkeyClient | None = None,
    gateway: GatewayClient | None = None,
) -> dict:
    """
    Build stores, engine and notification pipeline.

    Without a Valkey client every collection lives in process memory.

    Returns:
        Services dict keyed by name, as the API routers expect
    """
    storage = config.storage

    if valkey is not None:
        def collection(key):
            return ValkeyCollection(valkey, key)

        def invoice_counter(year):
            return ValkeyCounter(valkey, f"{storage.invoice_counter_key}:{year}")

        counter = ValkeyCounter(valkey, storage.ticket_counter_key)
    else:
        def collection(key):
            return InMemoryCollection()

        def invoice_counter(year):
            return InMemoryCounter()

        counter = InMemoryCounter()

    event_bus = EventBus()

    ticket_service = TicketService(collection(storage.tickets_key))
    invoice_service = InvoiceService(
        collection(storage.invoices_key),
        collection(storage.payments_key),
        config.billing,
        InvoiceNumberGenerator(invoice_counter, prefix=config.billing.invoice_prefix),
    )
    customer_service = CustomerService(collection(storage.customers_key), event_bus)
    notification_service = NotificationService(
        collection(storage.notifications_key),
        collection(storage.templates_key),
        collection(storage.preferences_key),
        gateway=gateway,
    )
    notification_service.initialize_templates()

    dispatcher = NotificationDispatcher(notification_service)
    register_handlers(event_bus, dispatcher)

    reconciliation = ReconciliationService(
        ticket_service,
        invoice_service,
        TrackingIdGenerator(counter, config.tracking),
        event_bus,
        config.billing,
        customers=customer_service,
    )

    return {
        "customer": customer_service,
        "ticket": ticket_service,
        "invoice": invoice_service,
        "notification": notification_service,
        "reconciliation": reconciliation,
        "event_bus": event_bus,
        "dispatcher": dispatcher,
    }


def register_handlers(event_bus: EventBus, dispatcher: NotificationDispatcher) -> None:
    """Subscribe the notification and activity handlers to the domain events."""
    event_bus.subscribe("TicketStatusChanged", handle_ticket_status_changed(dispatcher))
    event_bus.subscribe("TicketCompleted", handle_ticket_completed(dispatcher))
    event_bus.subscribe("TicketPaymentReceived", handle_ticket_payment_received(dispatcher))
    event_bus.subscribe("InvoiceOverdue", handle_invoice_overdue(dispatcher))
    event_bus.subscribe("CustomerCreated", handle_customer_created(dispatcher))

    activity = handle_activity()
    for event_type in ("TicketCreated", "InvoiceGenerated", "InvoicePaid", "InvoiceDeleted"):
        event_bus.subscribe(event_type, activity)


def migrate_legacy_keys(valkey: ValkeyClient, config: AppConfig) -> int:
    """
    Copy legacy notification keys to their current names.

    Returns:
        Number of keys migrated
    """
    migrated = sum(
        migrate_key(valkey, old_key, new_key)
        for old_key, new_key in config.storage.legacy_keys.items()
    )
    if migrated:
        logger.info(f"Migrated {migrated} legacy key(s)")
    return migrated


def create_app(services: dict | None = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        services: Prebuilt services (tests); when omitted, configuration is
            read from .env / the environment and secrets from Vault

    Returns:
        App with request IDs, error envelopes and the data/actions routes
    """
    if services is None:
        load_dotenv(Path(__file__).parent / ".env")
        configure_logging()
        config = load_config()

        valkey = ValkeyClient(get_valkey_url())
        migrate_legacy_keys(valkey, config)

        gateway = GatewayClient(**get_gateway_config()) if config.gateway_enabled else None
        services = build_services(config, valkey, gateway)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        services["dispatcher"].shutdown()

    app = FastAPI(title="RepairHub", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    logger.info("RepairHub API ready")
    return app
