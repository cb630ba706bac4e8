"""Vendor (third-party repair shop) domain models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class VendorUpsert(BaseModel):
    """Create a vendor by name, or refresh the phone of an existing one."""

    name: str = Field(..., min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)


class Vendor(BaseModel):
    """Full vendor entity as stored."""

    id: UUID
    user_id: UUID
    name: str
    phone: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class VendorStats(BaseModel):
    """Outsourcing totals for one vendor, derived from jobs."""

    vendor_name: str
    vendor_phone: str | None = None
    total_jobs: int = 0
    active_jobs: int = 0
    total_cost: Decimal = Decimal("0")
