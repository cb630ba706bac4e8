"""
Outsource service.

Hands jobs to third-party vendors and takes them back. While a job is
outsourced the only way out is ``receive_back``; payment, returns and
generic status edits are refused by the lifecycle guard.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from core import lifecycle
from core.audit import AuditLogger
from core.config import RepairDeskConfig
from core.event_bus import EventBus
from core.events import JobOutsourced, JobReceivedBack
from core.models import (
    Job, JobStatus, OutsourceRequest, ReceiveBackRequest, VendorStats, VendorUpsert,
)
from core.outsourcing import cost_delta, plan_assignment, plan_receive_back
from core.services.job_service import check_expected_version
from core.services.vendor_service import VendorService
from core.stores import JobStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class OutsourceService:
    """Service for vendor assignment and receive-back."""

    def __init__(
        self,
        store: JobStore,
        vendors: VendorService,
        audit: AuditLogger,
        event_bus: EventBus,
        config: RepairDeskConfig | None = None,
    ):
        self.store = store
        self.vendors = vendors
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or RepairDeskConfig()

    def assign_vendor(
        self,
        job_id: UUID,
        request: OutsourceRequest,
        expected_updated_at: datetime | None = None,
    ) -> Job:
        """
        Hand a job to a vendor.

        The vendor is upserted by name inside the job lock, after the
        transition has been validated.

        Args:
            job_id: Job UUID
            request: Vendor name, optional phone, estimated cost
            expected_updated_at: updated_at the caller last saw, if any

        Returns:
            Job in OUTSOURCED status with a vendor record

        Raises:
            JobNotFoundError: If job not found
            InvalidTransitionError: If the job is closed or already outsourced
            MissingRequiredFieldError: If vendor name is empty
            InvalidAmountError: If cost is missing or negative
        """
        with self.store.lock(job_id) as unit:
            current = unit.job
            check_expected_version(current, expected_updated_at)
            lifecycle.validate_transition(current.status, JobStatus.OUTSOURCED)

            now = now_utc()
            assignment = plan_assignment(request, now)
            self.vendors.upsert(VendorUpsert(
                name=assignment.vendor_name,
                phone=assignment.vendor_phone,
            ))

            note = lifecycle.outsource_note(
                assignment.vendor_name,
                assignment.outsourced.cost,
                request.note,
                self.config.currency_symbol,
            )
            updated = lifecycle.apply_transition(
                current,
                JobStatus.OUTSOURCED,
                note=note,
                changes={"outsourced": assignment.outsourced},
                now=now,
            )
            unit.save(updated)

        self.audit.log_job_change(current, updated)
        logger.info(f"Job {job_id} outsourced to {assignment.vendor_name}")

        self.event_bus.publish(JobOutsourced.create(job=updated))
        return updated

    def receive_back(
        self,
        job_id: UUID,
        request: ReceiveBackRequest,
        expected_updated_at: datetime | None = None,
    ) -> Job:
        """
        Take a job back from its vendor.

        The vendor cost is overwritten with the final cost; vendor identity
        and assignment time are kept.

        Raises:
            JobNotFoundError: If job not found
            InvalidTransitionError: If the job is not outsourced
            InvalidAmountError: If final cost is missing or negative
        """
        target = JobStatus(request.outcome.value)

        with self.store.lock(job_id) as unit:
            current = unit.job
            check_expected_version(current, expected_updated_at)
            lifecycle.validate_transition(current.status, target, via_receive_back=True)

            outsourced = plan_receive_back(current, request)
            note = lifecycle.receive_back_note(
                outsourced.vendor_name,
                request.outcome,
                outsourced.cost,
                request.note,
                self.config.currency_symbol,
            )
            updated = lifecycle.apply_transition(
                current,
                target,
                note=note,
                changes={"outsourced": outsourced},
                via_receive_back=True,
            )
            unit.save(updated)

        self.audit.log_job_change(current, updated)
        delta = cost_delta(current, outsourced.cost)
        if delta:
            logger.info(f"Job {job_id} vendor cost adjusted by {delta} on receive-back")
        logger.info(f"Job {job_id} received back from {outsourced.vendor_name} as {target.value}")

        self.event_bus.publish(JobReceivedBack.create(job=updated))
        return updated

    def vendor_stats(self) -> list[VendorStats]:
        """
        Per-vendor totals over all jobs that carry a vendor record.

        Active jobs are those still outsourced.

        Returns:
            Stats ordered by vendor name
        """
        by_vendor: dict[str, list[Job]] = defaultdict(list)
        for job in self.store.list_outsourced():
            by_vendor[job.outsourced.vendor_name].append(job)

        stats = []
        for name, jobs in by_vendor.items():
            vendor = self.vendors.get_by_name(name)
            phone = vendor.phone if vendor and vendor.phone else jobs[-1].outsourced.vendor_phone
            stats.append(VendorStats(
                vendor_name=name,
                vendor_phone=phone,
                total_jobs=len(jobs),
                active_jobs=sum(1 for j in jobs if j.status == JobStatus.OUTSOURCED),
                total_cost=sum((j.outsourced.cost for j in jobs), Decimal("0")),
            ))

        return sorted(stats, key=lambda s: s.vendor_name.lower())

