"""
Outsourcing rules: handing a job to a vendor and taking it back.

Pure functions producing the new ``outsourced`` sub-record. The outsource
service wraps them with the vendor upsert and the lifecycle transition.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from core.exceptions import InvalidAmountError, MissingRequiredFieldError
from core.models import Job, OutsourcedInfo, OutsourceRequest, ReceiveBackRequest
from core.reconciliation import non_negative_amount


@dataclass(frozen=True)
class Assignment:
    """Validated vendor assignment."""

    vendor_name: str
    vendor_phone: str | None
    outsourced: OutsourcedInfo


def plan_assignment(request: OutsourceRequest, now: datetime) -> Assignment:
    """
    Validate an outsource request and build the vendor sub-record.

    Raises:
        MissingRequiredFieldError: If vendor name is empty
        InvalidAmountError: If cost is missing, negative or non-numeric
    """
    vendor_name = (request.vendor_name or "").strip()
    if not vendor_name:
        raise MissingRequiredFieldError("vendor_name", "Vendor name is required to outsource a job")

    if request.cost is None:
        raise InvalidAmountError("cost", "vendor cost is required")
    cost = non_negative_amount(request.cost, "cost")

    vendor_phone = (request.vendor_phone or "").strip() or None

    return Assignment(
        vendor_name=vendor_name,
        vendor_phone=vendor_phone,
        outsourced=OutsourcedInfo(
            vendor_name=vendor_name,
            vendor_phone=vendor_phone,
            cost=cost,
            assigned_at=now,
        ),
    )


def plan_receive_back(job: Job, request: ReceiveBackRequest) -> OutsourcedInfo:
    """
    Overwrite the vendor cost with the final amount paid.

    Vendor identity and assignment time are retained.

    Raises:
        InvalidAmountError: If final cost is missing, negative or non-numeric
    """
    if request.final_cost is None:
        raise InvalidAmountError("final_cost", "final vendor cost is required")
    final_cost = non_negative_amount(request.final_cost, "final_cost")

    if job.outsourced is None:
        # Jobs migrated into 'outsourced' without a vendor record
        raise MissingRequiredFieldError("outsourced", f"Job {job.id} has no vendor record")

    return job.outsourced.model_copy(update={"cost": final_cost})


def cost_delta(job: Job, final_cost: Decimal) -> Decimal:
    """Difference between the final and the estimated vendor cost."""
    if job.outsourced is None:
        return final_cost
    return final_cost - job.outsourced.cost
