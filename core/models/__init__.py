"""Core domain models."""

from core.models.outsource import (
    OutsourcedInfo, OutsourceRequest, ReceiveBackRequest, ReceiveBackOutcome,
)
from core.models.job import (
    Job, JobCreate, JobUpdate, JobStatus, ServiceType, StatusHistoryEntry, JobImages,
)
from core.models.payment import PaymentRequest, PaymentType, BreakdownItem
from core.models.job_return import ReturnRequest, ReturnType
from core.models.vendor import Vendor, VendorUpsert, VendorStats
from core.models.customer import CustomerSummary

__all__ = [
    # Job
    "Job", "JobCreate", "JobUpdate", "JobStatus", "ServiceType", "StatusHistoryEntry", "JobImages",
    # Outsourcing
    "OutsourcedInfo", "OutsourceRequest", "ReceiveBackRequest", "ReceiveBackOutcome",
    # Payment
    "PaymentRequest", "PaymentType", "BreakdownItem",
    # Return
    "ReturnRequest", "ReturnType",
    # Vendor
    "Vendor", "VendorUpsert", "VendorStats",
    # Customer
    "CustomerSummary",
]
