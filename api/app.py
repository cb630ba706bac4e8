"""Application assembly: services, routers, middleware."""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.security_middleware import AuthMiddleware
from auth.types import SessionProvider
from core.audit import AuditLogger
from core.config import RepairDeskConfig
from core.event_bus import EventBus
from core.services.job_service import JobService
from core.services.outsource_service import OutsourceService
from core.services.vendor_service import VendorService
from core.stores import JobStore, VendorStore

logger = logging.getLogger(__name__)


def build_services(
    job_store: JobStore,
    vendor_store: VendorStore,
    audit: AuditLogger,
    event_bus: EventBus,
    config: RepairDeskConfig | None = None,
) -> dict:
    """Services keyed by action domain, as the routers expect them."""
    config = config or RepairDeskConfig()
    vendor = VendorService(vendor_store, audit)
    return {
        "job": JobService(job_store, audit, event_bus, config),
        "outsource": OutsourceService(job_store, vendor, audit, event_bus, config),
        "vendor": vendor,
    }


def create_app(services: dict, session_provider: SessionProvider) -> FastAPI:
    """FastAPI app with auth middleware, error handlers, and data/actions routes."""
    app = FastAPI(title="RepairDesk")
    # Added last = outermost: request id is assigned before auth runs
    app.add_middleware(AuthMiddleware, session_provider=session_provider)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"}).model_dump(mode="json")

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


def create_postgres_app(session_provider: SessionProvider, config: RepairDeskConfig | None = None) -> FastAPI:
    """
    Production wiring: Postgres stores, Vault secrets, customer notifications.

    Requires VAULT_* environment variables (a .env file is honored).
    """
    from dotenv import load_dotenv

    from clients.message_gateway_client import MessageGatewayClient
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url, get_message_gateway_config
    from core.handlers.customer_notification_handler import register_customer_notifications
    from core.stores.postgres_store import PostgresJobStore, PostgresVendorStore

    load_dotenv()
    config = config or RepairDeskConfig()

    postgres = PostgresClient(get_database_url())
    event_bus = EventBus()
    register_customer_notifications(
        event_bus,
        MessageGatewayClient(**get_message_gateway_config()),
        config,
    )

    services = build_services(
        PostgresJobStore(postgres),
        PostgresVendorStore(postgres),
        AuditLogger(postgres),
        event_bus,
        config,
    )
    logger.info(f"{config.shop_name} API assembled")
    return create_app(services, session_provider)
