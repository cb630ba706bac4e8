"""
Domain events for repair jobs.

Immutable event objects published after a job operation has committed.
Handlers (customer notifications today) react without the publishing
service knowing who is listening.

Events carry the committed Job so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class RepairEvent:
    """Base class for all job domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class JobEvent(RepairEvent):
    """Events related to job lifecycle."""
    job: Any = None  # Job; Any avoids a models import cycle

    @classmethod
    def create(cls, job: Any) -> "JobEvent":
        return cls(job=job)


@dataclass(frozen=True)
class JobCreated(JobEvent):
    """A device was taken in; the job starts in 'received'."""


@dataclass(frozen=True)
class JobStatusChanged(JobEvent):
    """A generic edit moved the job to another status."""
    previous_status: str | None = None

    @classmethod
    def create(cls, job: Any, previous_status: str | None = None) -> "JobStatusChanged":
        return cls(job=job, previous_status=previous_status)


@dataclass(frozen=True)
class JobOutsourced(JobEvent):
    """The job was handed to a vendor."""


@dataclass(frozen=True)
class JobReceivedBack(JobEvent):
    """The vendor handed the device back."""


@dataclass(frozen=True)
class JobDelivered(JobEvent):
    """Payment collected and device delivered to the customer."""


@dataclass(frozen=True)
class JobReturned(JobEvent):
    """Device returned to the customer without a completed repair."""
