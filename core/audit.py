"""
Field-level audit trail for job and vendor changes.

Complements the per-job status history: the history records *what happened
to the order* for staff and customers, the audit log records *which fields
changed and who changed them*. The audit log is:
- Append-only (entries never modified or deleted)
- User-attributed (acting shop account)
- Detailed (old and new values)

The audit_log table has NO RLS - entries are visible regardless of user
context, for administrative oversight.
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.models import Job
from utils.timezone import now_utc
from utils.user_context import get_current_user_id


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    TRANSITION = "transition"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to updated_at and status_history)

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields if exclude_fields is not None else {"updated_at", "status_history"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Writes audit entries to the audit_log table.

    Always pass model_dump(mode="json") output so UUIDs, Decimals and
    datetimes arrive JSON-serializable. Job mutations go through
    log_job_change, which diffs the two job states itself.
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        user_id: UUID | None = None
    ) -> None:
        """
        Log an entity change.

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE / TRANSITION: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        if user_id is None:
            user_id = get_current_user_id()

        self.postgres.execute(
            """
            INSERT INTO audit_log (id, user_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (uuid4(), user_id, entity_type, entity_id, action.value, Json(changes), now_utc())
        )

    def log_job_change(self, before: Job, after: Job) -> AuditAction | None:
        """
        Audit the difference between two states of one job.

        A status change is recorded as TRANSITION, anything else as UPDATE.
        History and updated_at are left to the job itself.

        Returns:
            The action logged, or None when no audited field changed.
        """
        changes = compute_changes(before.model_dump(mode="json"), after.model_dump(mode="json"))
        if not changes:
            return None

        action = AuditAction.TRANSITION if before.status != after.status else AuditAction.UPDATE
        self.log_change(entity_type="job", entity_id=after.id, action=action, changes=changes)
        return action

