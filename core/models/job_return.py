"""Return/reject request models."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class ReturnType(str, Enum):
    """How a job that will not be delivered repaired is billed."""

    WITHOUT_REPAIR = "without-repair"
    SERVICE_CHARGE = "service-charge"


class ReturnRequest(BaseModel):
    """Hand the device back to the customer unrepaired."""

    type: ReturnType
    service_charge: Decimal | None = None
    note: str | None = Field(None, max_length=500)
