"""
Financial reconciliation for payment collection.

Pure functions: nothing here touches storage or the clock. The job service
feeds in the persisted pre-state and writes back the outcome together with
the lifecycle transition.

Rules:
- balance = total - advance, always derived
- a collected payment settles the job completely (advance == total)
- a discount is silently capped at half of the outstanding balance
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation

from core.exceptions import InvalidAmountError
from core.models import BreakdownItem, Job, PaymentRequest, PaymentType

logger = logging.getLogger(__name__)

# Fixed business rule, not configurable
MAX_DISCOUNT_RATIO = Decimal("0.5")

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PaymentOutcome:
    """New monetary state of a job after a payment is collected."""

    total_amount: Decimal
    advance_amount: Decimal
    balance_before: Decimal
    requested_discount: Decimal
    applied_discount: Decimal
    breakdown: tuple[BreakdownItem, ...]
    warranty: str | None

    @property
    def was_clamped(self) -> bool:
        """Whether the requested discount exceeded the cap."""
        return self.applied_discount < self.requested_discount


def to_amount(value, field: str) -> Decimal:
    """
    Coerce a raw monetary input to a two-place Decimal.

    Raises:
        InvalidAmountError: If value is missing, non-numeric, or not finite
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidAmountError(field, "amount is required")
    if isinstance(value, bool):
        raise InvalidAmountError(field, "amount must be numeric")
    try:
        amount = Decimal(str(value)).quantize(_CENTS)
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(field, f"'{value}' is not a valid amount")
    if not amount.is_finite():
        raise InvalidAmountError(field, "amount must be finite")
    return amount


def non_negative_amount(value, field: str) -> Decimal:
    """Like to_amount, but also rejects negative values."""
    amount = to_amount(value, field)
    if amount < 0:
        raise InvalidAmountError(field, "amount cannot be negative")
    return amount


def balance(total_amount: Decimal, advance_amount: Decimal) -> Decimal:
    """Amount still owed: total minus advance."""
    return total_amount - advance_amount


def clamp_discount(requested: Decimal, current_balance: Decimal) -> Decimal:
    """
    Cap a discount at half of the outstanding balance.

    The cap rounds down to the cent so it never exceeds half the balance.
    A job that is already settled or overpaid allows no discount at all.
    """
    cap = (max(current_balance, Decimal("0")) * MAX_DISCOUNT_RATIO).quantize(_CENTS, rounding=ROUND_DOWN)
    return min(requested, cap)


def clean_breakdown(items: list[BreakdownItem]) -> tuple[BreakdownItem, ...]:
    """Drop items with neither a description nor an amount, keep order."""
    return tuple(item for item in items if not item.is_empty)


def format_amount(value: Decimal) -> str:
    """Render an amount for notes: whole rupees without decimals."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.quantize(_CENTS)}"


def format_money(value: Decimal, symbol: str = "₹") -> str:
    """Render an amount with its currency symbol, e.g. '₹1200'."""
    return f"{symbol}{format_amount(value)}"


def summarize_breakdown(items: tuple[BreakdownItem, ...] | list[BreakdownItem], symbol: str = "₹") -> str | None:
    """
    Summarize breakdown items as '<desc>: ₹<amount>, ... (Total: ₹<sum>)'.

    Returns None when there is nothing to summarize.
    """
    if not items:
        return None

    parts = []
    total = Decimal("0")
    for item in items:
        amount = item.amount if item.amount is not None else Decimal("0")
        total += amount
        parts.append(f"{item.description.strip()}: {format_money(amount, symbol)}")

    return f"{', '.join(parts)} (Total: {format_money(total, symbol)})"


def compute_payment(job: Job, request: PaymentRequest) -> PaymentOutcome:
    """
    Compute the monetary state of a job after collecting payment.

    Args:
        job: Persisted pre-state of the job
        request: Payment to collect

    Returns:
        PaymentOutcome with the settled total and advance

    Raises:
        InvalidAmountError: If the discount is missing, negative or non-numeric
    """
    current_balance = balance(job.total_amount, job.advance_amount)

    requested = Decimal("0")
    applied = Decimal("0")

    if request.type == PaymentType.DISCOUNT:
        requested = non_negative_amount(request.discount_amount, "discount_amount")
        applied = clamp_discount(requested, current_balance)
        if applied < requested:
            logger.warning(
                f"Discount on job {job.id} clamped from {requested} to {applied} "
                f"(balance {current_balance})"
            )

    new_total = job.total_amount - applied

    return PaymentOutcome(
        total_amount=new_total,
        advance_amount=new_total,
        balance_before=current_balance,
        requested_discount=requested,
        applied_discount=applied,
        breakdown=clean_breakdown(request.breakdown),
        warranty=request.warranty if request.warranty else None,
    )
