"""Typed exceptions for job lifecycle and reconciliation failures.

Every business-rule failure carries a machine-readable ``code`` so the API
layer can render the envelope without string matching. The discount cap is
the one rule that never raises: it clamps silently.
"""

from uuid import UUID


class JobError(Exception):
    """Base class for job operation errors."""

    code = "INVALID_REQUEST"


class InvalidTransitionError(JobError):
    """Requested status is not reachable from the job's current status."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str, reason: str | None = None):
        self.current = current
        self.target = target
        message = f"Cannot move job from '{current}' to '{target}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidAmountError(JobError):
    """A monetary input is negative, non-numeric, or missing."""

    code = "INVALID_AMOUNT"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class MissingRequiredFieldError(JobError):
    """A required non-monetary field is empty (vendor name, address, ...)."""

    code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"'{field}' is required")


class JobNotFoundError(JobError):
    """No job with the given id exists for the current shop."""

    code = "NOT_FOUND"

    def __init__(self, job_id: UUID):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class ConcurrentModificationError(JobError):
    """
    The persisted pre-state no longer matches what the caller read.

    Raised when a caller passes the ``updated_at`` it last saw and the job
    has been written since.
    """

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, job_id: UUID):
        self.job_id = job_id
        super().__init__(f"Job {job_id} was modified by another request; reload and retry")


class PersistenceError(JobError):
    """
    Transient failure in a persistence or messaging collaborator.

    Distinct from the business-rule errors above. The core never retries;
    retry policy belongs to the caller.
    """

    code = "SERVICE_UNAVAILABLE"
