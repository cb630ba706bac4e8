"""
Job service for the repair order lifecycle.

Handles intake, edits, payment collection, returns and deletion. Every
mutation runs inside ``JobStore.lock``: the persisted pre-state is re-read
under the lock, validated, recomputed and written back together with exactly
one status history entry. Delivered and returned jobs are immutable.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from core import lifecycle
from core.audit import AuditLogger, AuditAction
from core.config import RepairDeskConfig
from core.event_bus import EventBus
from core.events import JobCreated, JobDelivered, JobReturned, JobStatusChanged
from core.exceptions import (
    ConcurrentModificationError, InvalidTransitionError, JobNotFoundError, MissingRequiredFieldError,
)
from core.models import (
    CustomerSummary, Job, JobCreate, JobStatus, JobUpdate, PaymentRequest, ReturnRequest, ServiceType,
)
from core.reconciliation import compute_payment
from core.returns import compute_return
from core.stores import JobStore
from utils.timezone import now_utc
from utils.user_context import get_current_user_id

logger = logging.getLogger(__name__)

_RULE_FIELDS = (
    "service_type", "address", "visit_date", "estimated_delivery",
    "is_warranty", "total_amount", "advance_amount",
)


def intake_overrides(state: dict[str, Any]) -> dict[str, Any]:
    """
    Enforce service-type and warranty rules on a (merged) job state.

    Returns:
        Field values that must replace what the caller supplied.

    Raises:
        MissingRequiredFieldError: If a home-service job lacks address or visit date
    """
    overrides: dict[str, Any] = {}

    if state.get("service_type") == ServiceType.HOME_SERVICE:
        if not (state.get("address") or "").strip():
            raise MissingRequiredFieldError("address", "Home-service jobs need an address")
        if state.get("visit_date") is None:
            raise MissingRequiredFieldError("visit_date", "Home-service jobs need a visit date")
        if state.get("estimated_delivery") is not None:
            overrides["estimated_delivery"] = None
    elif state.get("visit_date") is not None:
        overrides["visit_date"] = None

    if state.get("is_warranty"):
        overrides["total_amount"] = Decimal("0")
        overrides["advance_amount"] = Decimal("0")

    return overrides


def check_expected_version(job: Job, expected_updated_at: datetime | None) -> None:
    """
    Reject a write based on a stale read.

    Raises:
        ConcurrentModificationError: If the job changed since the caller read it
    """
    if expected_updated_at is not None and job.updated_at != expected_updated_at:
        raise ConcurrentModificationError(job.id)


class JobService:
    """Service for job operations."""

    def __init__(
        self,
        store: JobStore,
        audit: AuditLogger,
        event_bus: EventBus,
        config: RepairDeskConfig | None = None,
    ):
        self.store = store
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or RepairDeskConfig()

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def create(self, data: JobCreate) -> Job:
        """
        Take a device in.

        Args:
            data: Intake data

        Returns:
            Created job in RECEIVED status with one history entry

        Raises:
            MissingRequiredFieldError: If home-service details are missing
        """
        user_id = get_current_user_id()
        now = now_utc()

        fields = {name: getattr(data, name) for name in JobCreate.model_fields if name != "note"}
        fields.update(intake_overrides(fields))

        job = Job(
            id=uuid4(),
            user_id=user_id,
            status=lifecycle.INITIAL_STATUS,
            outsourced=None,
            status_history=lifecycle.seed_history(lifecycle.created_note(data.note), now),
            created_at=now,
            updated_at=now,
            **fields,
        )
        job = self.store.insert(job)

        self.audit.log_change(
            entity_type="job",
            entity_id=job.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
        )
        logger.info(f"Job {job.id} received for {job.phone}")

        self.event_bus.publish(JobCreated.create(job=job))
        return job

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, job_id: UUID) -> Job | None:
        """Job if found, None otherwise."""
        return self.store.get(job_id)

    def require(self, job_id: UUID) -> Job:
        """
        Job by id.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_recent(self, limit: int | None = None, offset: int = 0) -> list[Job]:
        """Newest jobs first."""
        return self.store.list_recent(limit or self.config.default_list_limit, offset)

    def list_by_status(self, status: JobStatus, limit: int | None = None) -> list[Job]:
        """Jobs in one status, newest first."""
        return self.store.list_by_status(status, limit or self.config.default_list_limit)

    def list_for_phone(self, phone: str, limit: int | None = None) -> list[Job]:
        """A customer's jobs, newest first."""
        return self.store.list_for_phone(phone, limit or self.config.default_list_limit)

    def search(self, query: str, limit: int | None = None) -> list[Job]:
        """Search by job id, customer name, device or phone."""
        return self.store.search(query, limit or self.config.default_list_limit)

    def customer_summaries(self) -> list[CustomerSummary]:
        """
        Customers derived by grouping jobs by phone.

        Pending amount sums the balances of jobs not yet delivered.

        Returns:
            Summaries ordered by last visit, most recent first
        """
        by_phone: dict[str, list[Job]] = defaultdict(list)
        for job in self.store.list_all():
            by_phone[job.phone].append(job)

        summaries = []
        for phone, jobs in by_phone.items():
            latest = max(jobs, key=lambda j: j.created_at)
            summaries.append(CustomerSummary(
                phone=phone,
                name=latest.customer_name,
                total_jobs=len(jobs),
                total_spent=sum((j.total_amount for j in jobs), Decimal("0")),
                pending_amount=sum(
                    (j.balance for j in jobs if j.status != JobStatus.DELIVERED),
                    Decimal("0"),
                ),
                last_visit=latest.created_at,
            ))

        return sorted(summaries, key=lambda s: s.last_visit, reverse=True)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def update(
        self,
        job_id: UUID,
        data: JobUpdate,
        expected_updated_at: datetime | None = None,
    ) -> Job:
        """
        Edit job fields, optionally changing status.

        Always appends one history entry, even when nothing changed.

        Args:
            job_id: Job UUID
            data: Fields to update
            expected_updated_at: updated_at the caller last saw, if any

        Returns:
            Updated job

        Raises:
            JobNotFoundError: If job not found
            InvalidTransitionError: If the job is closed or the status change is illegal
            MissingRequiredFieldError: If home-service details end up missing
            ConcurrentModificationError: If the job changed since expected_updated_at
        """
        updates = {
            name: getattr(data, name)
            for name in data.model_fields_set
            if getattr(data, name) is not None
        }
        ignored = sorted(name for name in data.model_fields_set if name not in updates)
        if ignored:
            logger.warning(f"Job {job_id} update ignored null fields: {', '.join(ignored)}")
        remark = updates.pop("note", None)
        target = updates.pop("status", None)

        with self.store.lock(job_id) as unit:
            current = unit.job
            check_expected_version(current, expected_updated_at)

            state = {name: getattr(current, name) for name in _RULE_FIELDS}
            state.update({k: v for k, v in updates.items() if k in _RULE_FIELDS})
            changes = {**updates, **intake_overrides(state)}
            changed_fields = [k for k, v in changes.items() if getattr(current, k) != v]

            if target is not None and target != current.status:
                if target == JobStatus.OUTSOURCED:
                    raise InvalidTransitionError(
                        current.status.value, target.value, "assign a vendor to outsource a job"
                    )
                updated = lifecycle.apply_transition(
                    current,
                    target,
                    note=lifecycle.edit_note(changed_fields, target, remark),
                    changes=changes,
                )
            else:
                updated = lifecycle.record_edit(
                    current,
                    note=lifecycle.edit_note(changed_fields, None, remark),
                    changes=changes,
                )
            unit.save(updated)

        self.audit.log_job_change(current, updated)

        if updated.status != current.status:
            logger.info(f"Job {job_id} status {current.status.value} -> {updated.status.value}")
            self._publish_status_events(updated, current.status)

        return updated

    def collect_payment(
        self,
        job_id: UUID,
        request: PaymentRequest,
        expected_updated_at: datetime | None = None,
    ) -> Job:
        """
        Settle the outstanding balance and deliver the device.

        Discounts above half of the balance are clamped, not rejected.

        Returns:
            Delivered job with balance zero

        Raises:
            JobNotFoundError: If job not found
            InvalidTransitionError: If the job is closed or outsourced
            InvalidAmountError: If the discount is missing or negative
            ConcurrentModificationError: If the job changed since expected_updated_at
        """
        with self.store.lock(job_id) as unit:
            current = unit.job
            check_expected_version(current, expected_updated_at)
            lifecycle.validate_transition(current.status, JobStatus.DELIVERED)

            outcome = compute_payment(current, request)
            changes: dict[str, Any] = {
                "total_amount": outcome.total_amount,
                "advance_amount": outcome.advance_amount,
            }
            if outcome.warranty:
                changes["warranty"] = outcome.warranty

            note = lifecycle.payment_note(
                request.mode,
                outcome.breakdown,
                outcome.applied_discount,
                self.config.currency_symbol,
            )
            updated = lifecycle.apply_transition(current, JobStatus.DELIVERED, note=note, changes=changes)
            unit.save(updated)

        self.audit.log_job_change(current, updated)
        logger.info(
            f"Job {job_id} delivered: collected {outcome.balance_before - outcome.applied_discount} "
            f"via {request.mode}"
        )

        self.event_bus.publish(JobDelivered.create(job=updated))
        return updated

    def return_order(
        self,
        job_id: UUID,
        request: ReturnRequest,
        expected_updated_at: datetime | None = None,
    ) -> Job:
        """
        Return the device without a completed repair.

        The advance is never touched; only the total changes.

        Raises:
            JobNotFoundError: If job not found
            InvalidTransitionError: If the job is closed or outsourced
            InvalidAmountError: If a service-charge return has no valid charge
            ConcurrentModificationError: If the job changed since expected_updated_at
        """
        with self.store.lock(job_id) as unit:
            current = unit.job
            check_expected_version(current, expected_updated_at)
            lifecycle.validate_transition(current.status, JobStatus.RETURNED)

            outcome = compute_return(current, request)
            note = lifecycle.return_note(
                outcome.return_type,
                outcome.service_charge,
                request.note,
                self.config.currency_symbol,
            )
            updated = lifecycle.apply_transition(
                current,
                JobStatus.RETURNED,
                note=note,
                changes={"total_amount": outcome.total_amount},
            )
            unit.save(updated)

        self.audit.log_job_change(current, updated)
        logger.info(f"Job {job_id} returned ({request.type.value}), total now {updated.total_amount}")

        self.event_bus.publish(JobReturned.create(job=updated))
        return updated

    def delete(self, job_id: UUID) -> bool:
        """
        Delete a job.

        Returns:
            True if deleted, False if not found
        """
        try:
            with self.store.lock(job_id) as unit:
                current = unit.job
                unit.delete()
        except JobNotFoundError:
            return False

        self.audit.log_change(
            entity_type="job",
            entity_id=job_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")},
        )
        logger.info(f"Job {job_id} deleted")
        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _publish_status_events(self, job: Job, previous: JobStatus) -> None:
        self.event_bus.publish(JobStatusChanged.create(job=job, previous_status=previous.value))
        if job.status == JobStatus.DELIVERED:
            self.event_bus.publish(JobDelivered.create(job=job))
        elif job.status == JobStatus.RETURNED:
            self.event_bus.publish(JobReturned.create(job=job))

