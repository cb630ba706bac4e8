"""Outsourcing domain models: the vendor sub-record and its requests."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class OutsourcedInfo(BaseModel):
    """Vendor sub-record attached to a job once it has been outsourced."""

    vendor_name: str
    vendor_phone: str | None = None
    cost: Decimal
    assigned_at: datetime


class ReceiveBackOutcome(str, Enum):
    """Status a job returns to when the vendor hands the device back."""

    REPAIRED = "ready"
    NOT_REPAIRED = "received"
    NEEDS_WORK = "in-progress"


class OutsourceRequest(BaseModel):
    """Hand a job over to a third-party vendor."""

    vendor_name: str = Field("", max_length=200)
    vendor_phone: str | None = Field(None, max_length=20)
    cost: Decimal | None = None
    note: str | None = Field(None, max_length=500)


class ReceiveBackRequest(BaseModel):
    """Take a job back from its vendor."""

    outcome: ReceiveBackOutcome
    final_cost: Decimal | None = None
    note: str | None = Field(None, max_length=500)
