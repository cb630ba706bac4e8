"""
Return/reject workflow.

Computes the final total of a job handed back unrepaired. Only the total
changes; the advance already collected is kept as-is, never refunded.
"""

from dataclasses import dataclass
from decimal import Decimal

from core.exceptions import InvalidAmountError
from core.models import Job, ReturnRequest, ReturnType
from core.reconciliation import non_negative_amount


@dataclass(frozen=True)
class ReturnOutcome:
    """New total of a returned job."""

    return_type: ReturnType
    total_amount: Decimal
    service_charge: Decimal | None


def compute_return(job: Job, request: ReturnRequest) -> ReturnOutcome:
    """
    Compute the total of a job being returned.

    - without-repair: total = advance, nothing further is owed
    - service-charge: total = the charge, advance untouched

    Raises:
        InvalidAmountError: If a service-charge return has no valid charge
    """
    if request.type == ReturnType.WITHOUT_REPAIR:
        return ReturnOutcome(
            return_type=request.type,
            total_amount=job.advance_amount,
            service_charge=None,
        )

    if request.service_charge is None:
        raise InvalidAmountError("service_charge", "required for a service-charge return")

    charge = non_negative_amount(request.service_charge, "service_charge")
    return ReturnOutcome(
        return_type=request.type,
        total_amount=charge,
        service_charge=charge,
    )
