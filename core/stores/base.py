"""
Persistence contracts for jobs and vendors.

Services never hold a job across calls: every mutation goes through
``JobStore.lock(job_id)``, which re-reads the persisted job under a lock and
commits the staged write (or nothing) when the block exits.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from uuid import UUID

from core.models import Job, JobStatus, Vendor


class JobUnitOfWork:
    """
    A locked job plus the write staged against it.

    ``job`` is the persisted pre-state read at lock time. Call ``save`` with
    the new state or ``delete`` to remove the job; the store applies it when
    the ``lock`` block exits without an exception.
    """

    def __init__(self, job: Job):
        self.job = job
        self.staged: Job | None = None
        self.deleted = False

    def save(self, job: Job) -> None:
        """Stage the new state of the job."""
        if job.id != self.job.id:
            raise ValueError(f"Unit of work is bound to job {self.job.id}, got {job.id}")
        self.staged = job

    def delete(self) -> None:
        """Stage deletion of the job."""
        self.deleted = True


class JobStore(ABC):
    """Authoritative job storage. Rows are scoped to the current shop."""

    @abstractmethod
    def insert(self, job: Job) -> Job:
        """Persist a new job."""

    @abstractmethod
    def get(self, job_id: UUID) -> Job | None:
        """Job by id, or None if it does not exist for this shop."""

    @abstractmethod
    def lock(self, job_id: UUID) -> AbstractContextManager[JobUnitOfWork]:
        """
        Lock a job for a read-validate-write cycle.

        Raises:
            JobNotFoundError: If the job does not exist
        """

    @abstractmethod
    def list_recent(self, limit: int = 50, offset: int = 0) -> list[Job]:
        """Jobs ordered by created_at DESC."""

    @abstractmethod
    def list_by_status(self, status: JobStatus, limit: int = 50) -> list[Job]:
        """Jobs in one status, newest first."""

    @abstractmethod
    def list_for_phone(self, phone: str, limit: int = 50) -> list[Job]:
        """Jobs brought in under a phone number, newest first."""

    @abstractmethod
    def search(self, query: str, limit: int = 50) -> list[Job]:
        """Match id, customer name or device (case-insensitive) or phone."""

    @abstractmethod
    def list_all(self) -> list[Job]:
        """Every job of the shop, oldest first. Used by derived aggregates."""

    @abstractmethod
    def list_outsourced(self) -> list[Job]:
        """Jobs that carry a vendor record, oldest first."""


class VendorStore(ABC):
    """Vendor storage, unique by name within a shop."""

    @abstractmethod
    def upsert(self, user_id: UUID, name: str, phone: str | None) -> Vendor:
        """Create the vendor, or refresh its phone if one is given."""

    @abstractmethod
    def get_by_name(self, name: str) -> Vendor | None:
        """Vendor by exact name."""

    @abstractmethod
    def list_all(self) -> list[Vendor]:
        """All vendors ordered by name."""
