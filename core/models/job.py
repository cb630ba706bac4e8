"""Job (repair order) domain models.

Amounts are ``Decimal`` rupee values with two decimal places. The balance is
always derived from total and advance and is never stored.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.outsource import OutsourcedInfo


class JobStatus(str, Enum):
    """Job lifecycle status."""

    RECEIVED = "received"
    IN_PROGRESS = "in-progress"
    WAITING = "waiting"
    READY = "ready"
    OUTSOURCED = "outsourced"
    DELIVERED = "delivered"
    RETURNED = "returned"

    @property
    def is_terminal(self) -> bool:
        """Delivered and returned jobs accept no further status changes."""
        return self in (JobStatus.DELIVERED, JobStatus.RETURNED)


class ServiceType(str, Enum):
    """Where the repair happens."""

    WALK_IN = "walk-in"
    HOME_SERVICE = "home-service"


class StatusHistoryEntry(BaseModel):
    """One immutable entry of a job's status history."""

    status: JobStatus
    timestamp: datetime
    note: str | None = None

    model_config = {"frozen": True}


class JobImages(BaseModel):
    """References to externally stored before/after photos."""

    before: list[str] = Field(default_factory=list)
    after: list[str] = Field(default_factory=list)


def _blank_amount_to_zero(value):
    # Intake forms submit "" for untouched amount inputs
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    return value


class JobCreate(BaseModel):
    """Data required to take a device in."""

    customer_name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=20)
    device_type: str | None = Field(None, max_length=100)
    brand: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    issue: str | None = Field(None, max_length=2000)
    technician: str | None = Field(None, max_length=100)
    service_type: ServiceType = ServiceType.WALK_IN
    address: str | None = Field(None, max_length=500)
    visit_date: datetime | None = None
    estimated_delivery: date | None = None
    total_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    advance_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    is_warranty: bool = False
    warranty: str | None = Field(None, max_length=1000)
    images: JobImages = Field(default_factory=JobImages)
    note: str | None = Field(None, max_length=500)

    @field_validator("total_amount", "advance_amount", mode="before")
    @classmethod
    def blank_amount_is_zero(cls, value):
        """Treat empty form inputs as zero."""
        return _blank_amount_to_zero(value)


class JobUpdate(BaseModel):
    """Data that can be edited on a job. All fields optional."""

    customer_name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, min_length=1, max_length=20)
    device_type: str | None = Field(None, max_length=100)
    brand: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    issue: str | None = Field(None, max_length=2000)
    technician: str | None = Field(None, max_length=100)
    service_type: ServiceType | None = None
    address: str | None = Field(None, max_length=500)
    visit_date: datetime | None = None
    estimated_delivery: date | None = None
    total_amount: Decimal | None = Field(None, ge=0, decimal_places=2)
    advance_amount: Decimal | None = Field(None, ge=0, decimal_places=2)
    is_warranty: bool | None = None
    warranty: str | None = Field(None, max_length=1000)
    images: JobImages | None = None
    status: JobStatus | None = None
    note: str | None = Field(None, max_length=500)


class Job(BaseModel):
    """Full job entity as stored."""

    id: UUID
    user_id: UUID
    customer_name: str
    phone: str
    device_type: str | None
    brand: str | None
    model: str | None
    issue: str | None
    technician: str | None = None
    service_type: ServiceType
    address: str | None
    visit_date: datetime | None
    estimated_delivery: date | None
    status: JobStatus
    total_amount: Decimal
    advance_amount: Decimal
    is_warranty: bool
    warranty: str | None
    outsourced: OutsourcedInfo | None = None
    images: JobImages = Field(default_factory=JobImages)
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def balance(self) -> Decimal:
        """Amount still owed by the customer."""
        return self.total_amount - self.advance_amount

    @property
    def is_terminal(self) -> bool:
        """Whether the job is delivered or returned."""
        return self.status.is_terminal

    @property
    def device(self) -> str:
        """Display name of the device, e.g. 'Samsung Galaxy S21'."""
        parts = [p for p in (self.brand, self.model) if p]
        if not parts and self.device_type:
            return self.device_type
        return " ".join(parts)

    def history_newest_first(self) -> list[StatusHistoryEntry]:
        """Status history for display. Stored order is left untouched."""
        return sorted(self.status_history, key=lambda e: e.timestamp, reverse=True)
