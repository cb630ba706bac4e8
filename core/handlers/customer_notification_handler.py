"""
Handlers for JobDelivered and JobReturned events.

Sends the customer a short message through the message gateway when their
device leaves the shop. Gateway failures are left to the event bus, which
logs them; the job has already been committed.
"""

import logging
from typing import Callable

from core.config import RepairDeskConfig
from core.events import JobDelivered, JobReturned
from core.reconciliation import format_money

logger = logging.getLogger(__name__)


def delivery_message(job, config: RepairDeskConfig) -> str:
    device = job.device or "device"
    body = (
        f"Hi {job.customer_name}, your {device} has been delivered. "
        f"Amount paid: {format_money(job.total_amount, config.currency_symbol)}."
    )
    if job.warranty:
        body = f"{body} Warranty: {job.warranty}."
    return f"{body} Thank you for choosing {config.shop_name}!"


def return_message(job, config: RepairDeskConfig) -> str:
    device = job.device or "device"
    if job.total_amount > 0:
        charge = f"Charges: {format_money(job.total_amount, config.currency_symbol)}."
    else:
        charge = "No charges apply."
    return (
        f"Hi {job.customer_name}, your {device} has been returned without repair. "
        f"{charge} - {config.shop_name}"
    )


def handle_job_delivered(gateway, config: RepairDeskConfig) -> Callable:
    """
    Factory that returns a JobDelivered handler.

    Args:
        gateway: MessageGatewayClient instance
        config: Shop configuration (notification toggle, shop name)

    Returns:
        Handler callable that messages the customer
    """

    def handler(event: JobDelivered):
        if not config.notify_on_delivery:
            return
        job = event.job
        gateway.send_message(to=job.phone, body=delivery_message(job, config))

    return handler


def handle_job_returned(gateway, config: RepairDeskConfig) -> Callable:
    """Factory that returns a JobReturned handler."""

    def handler(event: JobReturned):
        if not config.notify_on_return:
            return
        job = event.job
        gateway.send_message(to=job.phone, body=return_message(job, config))

    return handler


def register_customer_notifications(event_bus, gateway, config: RepairDeskConfig) -> None:
    """Subscribe the customer notification handlers to the event bus."""
    event_bus.subscribe("JobDelivered", handle_job_delivered(gateway, config))
    event_bus.subscribe("JobReturned", handle_job_returned(gateway, config))
    logger.info("Customer notification handlers registered")
