"""
Job lifecycle state machine.

================================================================================
STATE MACHINE
================================================================================

    received ──┬─> in-progress ─┬─> waiting ─┐
               │                │            │
               ├────────────────┴────────────┴─> ready ─┬─> delivered (terminal)
               │                                        └─> returned  (terminal)
               └─> outsourced ──(receive-back only)──> ready | received | in-progress

Every state except outsourced can reach delivered, returned and outsourced
directly. The only way out of outsourced is the receive-back operation.

RULES:
1. Legality is checked before any financial computation runs
2. Each successful operation appends exactly one history entry
3. History is append-only; stored order is creation order
4. delivered and returned accept no further status changes

Note text for every operation is produced here so that callers never
format history notes themselves.
================================================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from core.exceptions import InvalidTransitionError
from core.models import (
    BreakdownItem, Job, JobStatus, ReceiveBackOutcome, ReturnType, StatusHistoryEntry,
)
from core.reconciliation import format_money, summarize_breakdown
from utils.timezone import now_utc

S = JobStatus

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    S.RECEIVED: frozenset({S.IN_PROGRESS, S.WAITING, S.READY, S.OUTSOURCED, S.DELIVERED, S.RETURNED}),
    S.IN_PROGRESS: frozenset({S.WAITING, S.READY, S.OUTSOURCED, S.DELIVERED, S.RETURNED}),
    S.WAITING: frozenset({S.IN_PROGRESS, S.READY, S.OUTSOURCED, S.DELIVERED, S.RETURNED}),
    S.READY: frozenset({S.IN_PROGRESS, S.OUTSOURCED, S.DELIVERED, S.RETURNED}),
    S.OUTSOURCED: frozenset({S.READY, S.RECEIVED, S.IN_PROGRESS}),
    S.DELIVERED: frozenset(),
    S.RETURNED: frozenset(),
}

INITIAL_STATUS = S.RECEIVED


def allowed_targets(current: JobStatus) -> frozenset[JobStatus]:
    """Statuses reachable from ``current``."""
    return ALLOWED_TRANSITIONS[current]


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Whether ``target`` is in the transition table for ``current``."""
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(
    current: JobStatus,
    target: JobStatus,
    via_receive_back: bool = False,
) -> None:
    """
    Check that a status change is legal.

    Args:
        current: Persisted status of the job
        target: Requested status
        via_receive_back: True only for the receive-back operation

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if current.is_terminal:
        raise InvalidTransitionError(current.value, target.value, f"job is already {current.value}")

    if via_receive_back and current != S.OUTSOURCED:
        raise InvalidTransitionError(current.value, target.value, "job is not outsourced")

    if current == S.OUTSOURCED and not via_receive_back:
        raise InvalidTransitionError(
            current.value, target.value, "an outsourced job must be received back from its vendor"
        )

    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)


def _append(
    job: Job,
    status: JobStatus,
    note: str | None,
    changes: dict[str, Any] | None,
    now: datetime,
) -> Job:
    entry = StatusHistoryEntry(status=status, timestamp=now, note=note)
    update = dict(changes or {})
    update.update(
        status=status,
        updated_at=now,
        status_history=[*job.status_history, entry],
    )
    return job.model_copy(update=update)


def apply_transition(
    job: Job,
    target: JobStatus,
    note: str | None = None,
    changes: dict[str, Any] | None = None,
    now: datetime | None = None,
    via_receive_back: bool = False,
) -> Job:
    """
    Move a job to ``target`` and append one history entry.

    Financial side effects arrive precomputed in ``changes``; this function
    only guards legality and keeps the history in step.

    Returns:
        New Job instance; the input is not mutated.

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    validate_transition(job.status, target, via_receive_back=via_receive_back)
    return _append(job, target, note, changes, now or now_utc())


def record_edit(
    job: Job,
    note: str | None = None,
    changes: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Job:
    """
    Apply a non-status edit, appending one history entry at the current status.

    Raises:
        InvalidTransitionError: If the job is delivered or returned
    """
    if job.is_terminal:
        raise InvalidTransitionError(job.status.value, job.status.value, f"job is already {job.status.value}")
    return _append(job, job.status, note, changes, now or now_utc())


def seed_history(note: str | None, now: datetime) -> list[StatusHistoryEntry]:
    """History of a freshly created job."""
    return [StatusHistoryEntry(status=INITIAL_STATUS, timestamp=now, note=note)]


# =============================================================================
# NOTES
# =============================================================================


def _with_remark(base: str, remark: str | None) -> str:
    remark = (remark or "").strip()
    return f"{base} {remark}" if remark else base


def created_note(remark: str | None = None) -> str:
    return _with_remark("Job received.", remark)


def edit_note(
    changed_fields: list[str],
    new_status: JobStatus | None = None,
    remark: str | None = None,
) -> str:
    """Note for a generic edit; a caller-supplied remark wins."""
    if remark and remark.strip():
        return remark.strip()
    if new_status is not None:
        return f"Status updated to {new_status.value}."
    if changed_fields:
        return f"Details updated: {', '.join(sorted(changed_fields))}."
    return "Details updated."


def payment_note(
    mode: str,
    breakdown: tuple[BreakdownItem, ...] | list[BreakdownItem] = (),
    applied_discount: Decimal = Decimal("0"),
    symbol: str = "₹",
) -> str:
    """'Payment collected via <mode>' plus discount and breakdown summary."""
    note = f"Payment collected via {mode.strip() or 'Other'}"
    if applied_discount > 0:
        note = f"{note} (Discount: {format_money(applied_discount, symbol)})"

    summary = summarize_breakdown(breakdown, symbol)
    if summary:
        note = f"{note}. {summary}"
    return note


def return_note(
    return_type: ReturnType,
    service_charge: Decimal | None = None,
    remark: str | None = None,
    symbol: str = "₹",
) -> str:
    if return_type == ReturnType.WITHOUT_REPAIR:
        return _with_remark("Returned without repair.", remark)
    return _with_remark(
        f"Returned. Service charge: {format_money(service_charge or Decimal('0'), symbol)}.",
        remark,
    )


def outsource_note(vendor_name: str, cost: Decimal, remark: str | None = None, symbol: str = "₹") -> str:
    return _with_remark(f"Outsourced to {vendor_name} (cost {format_money(cost, symbol)}).", remark)


_OUTCOME_LABELS = {
    ReceiveBackOutcome.REPAIRED: "repaired",
    ReceiveBackOutcome.NOT_REPAIRED: "not repaired",
    ReceiveBackOutcome.NEEDS_WORK: "needs further work",
}


def receive_back_note(
    vendor_name: str,
    outcome: ReceiveBackOutcome,
    final_cost: Decimal,
    remark: str | None = None,
    symbol: str = "₹",
) -> str:
    return _with_remark(
        f"Received back from {vendor_name}: {_OUTCOME_LABELS[outcome]} "
        f"(final cost {format_money(final_cost, symbol)}).",
        remark,
    )
