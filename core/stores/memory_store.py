"""
In-process job and vendor stores.

For single-process deployments and tests. Rows are kept per shop, the same
isolation the Postgres store gets from RLS: no user context = no rows.
Each job has its own lock, so operations on different jobs never contend.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID, uuid4

from core.exceptions import JobNotFoundError
from core.models import Job, JobStatus, Vendor
from core.stores.base import JobStore, JobUnitOfWork, VendorStore
from utils.timezone import now_utc
from utils.user_context import get_current_user_id_or_none

logger = logging.getLogger(__name__)


class InMemoryJobStore(JobStore):
    """Thread-safe dict-backed job store with per-job locks."""

    def __init__(self):
        self._rows: dict[UUID, Job] = {}
        self._locks: dict[UUID, threading.Lock] = {}
        self._guard = threading.Lock()

    def _visible(self, job: Job) -> bool:
        return job.user_id == get_current_user_id_or_none()

    def _lock_for(self, job_id: UUID) -> threading.Lock:
        with self._guard:
            if job_id not in self._locks:
                self._locks[job_id] = threading.Lock()
            return self._locks[job_id]

    def _snapshot(self) -> list[Job]:
        with self._guard:
            rows = list(self._rows.values())
        return [job.model_copy(deep=True) for job in rows if self._visible(job)]

    def insert(self, job: Job) -> Job:
        with self._guard:
            if job.id in self._rows:
                raise ValueError(f"Job {job.id} already exists")
            self._rows[job.id] = job.model_copy(deep=True)
        return job.model_copy(deep=True)

    def get(self, job_id: UUID) -> Job | None:
        with self._guard:
            job = self._rows.get(job_id)
        if job is None or not self._visible(job):
            return None
        return job.model_copy(deep=True)

    @contextmanager
    def lock(self, job_id: UUID) -> Iterator[JobUnitOfWork]:
        with self._lock_for(job_id):
            current = self.get(job_id)
            if current is None:
                with self._guard:
                    if job_id not in self._rows:
                        self._locks.pop(job_id, None)
                raise JobNotFoundError(job_id)

            unit = JobUnitOfWork(current)
            yield unit

            with self._guard:
                if unit.deleted:
                    del self._rows[job_id]
                    self._locks.pop(job_id, None)
                elif unit.staged is not None:
                    self._rows[job_id] = unit.staged.model_copy(deep=True)

    def list_recent(self, limit: int = 50, offset: int = 0) -> list[Job]:
        jobs = sorted(self._snapshot(), key=lambda j: j.created_at, reverse=True)
        return jobs[offset:offset + limit]

    def list_by_status(self, status: JobStatus, limit: int = 50) -> list[Job]:
        jobs = [j for j in self._snapshot() if j.status == status]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)[:limit]

    def list_for_phone(self, phone: str, limit: int = 50) -> list[Job]:
        jobs = [j for j in self._snapshot() if j.phone == phone]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)[:limit]

    def search(self, query: str, limit: int = 50) -> list[Job]:
        needle = query.strip().lower()
        if not needle:
            return []

        def matches(job: Job) -> bool:
            haystack = [str(job.id), job.customer_name, job.device_type, job.brand, job.model]
            if any(needle in (value or "").lower() for value in haystack):
                return True
            return query.strip() in job.phone

        jobs = [j for j in self._snapshot() if matches(j)]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)[:limit]

    def list_all(self) -> list[Job]:
        return sorted(self._snapshot(), key=lambda j: j.created_at)

    def list_outsourced(self) -> list[Job]:
        return [j for j in self.list_all() if j.outsourced is not None]


class InMemoryVendorStore(VendorStore):
    """Dict-backed vendor store keyed by (shop, name)."""

    def __init__(self):
        self._rows: dict[tuple[UUID, str], Vendor] = {}
        self._guard = threading.Lock()

    def upsert(self, user_id: UUID, name: str, phone: str | None) -> Vendor:
        now = now_utc()
        with self._guard:
            existing = self._rows.get((user_id, name))
            if existing is None:
                vendor = Vendor(
                    id=uuid4(), user_id=user_id, name=name, phone=phone,
                    created_at=now, updated_at=now,
                )
                logger.info(f"Vendor '{name}' created")
            elif phone and phone != existing.phone:
                vendor = existing.model_copy(update={"phone": phone, "updated_at": now})
            else:
                vendor = existing
            self._rows[(user_id, name)] = vendor
        return vendor

    def get_by_name(self, name: str) -> Vendor | None:
        user_id = get_current_user_id_or_none()
        with self._guard:
            return self._rows.get((user_id, name))

    def list_all(self) -> list[Vendor]:
        user_id = get_current_user_id_or_none()
        with self._guard:
            vendors = [v for (owner, _), v in self._rows.items() if owner == user_id]
        return sorted(vendors, key=lambda v: v.name.lower())
