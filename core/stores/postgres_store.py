"""
PostgreSQL-backed job and vendor stores.

Nested job data (status history, vendor sub-record, image references) lives
in JSONB columns so the whole aggregate is written in one UPDATE. Locked
operations use SELECT ... FOR UPDATE inside a single transaction, so the
pre-state validated by a service is the state that gets overwritten.
See schema.sql for the table definitions and RLS policies.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator
from uuid import UUID, uuid4

import psycopg2
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.exceptions import JobNotFoundError, PersistenceError
from core.models import Job, JobStatus, Vendor
from core.stores.base import JobStore, JobUnitOfWork, VendorStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_JOB_COLUMNS = (
    "id", "user_id", "customer_name", "phone",
    "device_type", "brand", "model", "issue", "technician",
    "service_type", "address", "visit_date", "estimated_delivery",
    "status", "total_amount", "advance_amount",
    "is_warranty", "warranty",
    "outsourced", "images", "status_history",
    "created_at", "updated_at",
)

_MUTABLE_COLUMNS = tuple(c for c in _JOB_COLUMNS if c not in ("id", "user_id", "created_at"))


def _job_params(job: Job, columns: tuple[str, ...]) -> list[Any]:
    """Column values for a job, JSONB fields wrapped for psycopg2."""
    data = job.model_dump()
    json_data = job.model_dump(mode="json", include={"outsourced", "images", "status_history"})

    params = []
    for column in columns:
        if column in json_data:
            value = json_data[column]
            params.append(Json(value) if value is not None else None)
        elif column in ("service_type", "status"):
            params.append(data[column].value)
        elif column in ("id", "user_id"):
            params.append(str(data[column]))
        else:
            params.append(data[column])
    return params


class PostgresJobStore(JobStore):
    """Job store over the ``jobs`` table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def _query(self, query: str, params: tuple = ()) -> list[Job]:
        try:
            rows = self.postgres.execute(query, params)
        except psycopg2.Error as e:
            logger.error(f"Job query failed: {e}")
            raise PersistenceError(f"Job storage unavailable: {e}") from e
        return [Job.model_validate(row) for row in rows]

    def insert(self, job: Job) -> Job:
        placeholders = ", ".join(["%s"] * len(_JOB_COLUMNS))
        try:
            row = self.postgres.execute_returning(
                f"INSERT INTO jobs ({', '.join(_JOB_COLUMNS)}) VALUES ({placeholders}) RETURNING *",
                tuple(_job_params(job, _JOB_COLUMNS)),
            )[0]
        except psycopg2.Error as e:
            logger.error(f"Job insert failed: {e}")
            raise PersistenceError(f"Job storage unavailable: {e}") from e
        return Job.model_validate(row)

    def get(self, job_id: UUID) -> Job | None:
        jobs = self._query("SELECT * FROM jobs WHERE id = %s", (job_id,))
        return jobs[0] if jobs else None

    @contextmanager
    def lock(self, job_id: UUID) -> Iterator[JobUnitOfWork]:
        try:
            with self.postgres.transaction() as cur:
                cur.execute("SELECT * FROM jobs WHERE id = %s FOR UPDATE", (str(job_id),))
                row = cur.fetchone()
                if row is None:
                    raise JobNotFoundError(job_id)

                unit = JobUnitOfWork(Job.model_validate(dict(row)))
                yield unit

                if unit.deleted:
                    cur.execute("DELETE FROM jobs WHERE id = %s", (str(job_id),))
                elif unit.staged is not None:
                    assignments = ", ".join(f"{c} = %s" for c in _MUTABLE_COLUMNS)
                    params = _job_params(unit.staged, _MUTABLE_COLUMNS)
                    params.append(str(job_id))
                    cur.execute(f"UPDATE jobs SET {assignments} WHERE id = %s", tuple(params))
        except psycopg2.Error as e:
            logger.error(f"Locked write on job {job_id} failed: {e}")
            raise PersistenceError(f"Job storage unavailable: {e}") from e

    def list_recent(self, limit: int = 50, offset: int = 0) -> list[Job]:
        return self._query(
            "SELECT * FROM jobs ORDER BY created_at DESC LIMIT %s OFFSET %s",
            (limit, offset),
        )

    def list_by_status(self, status: JobStatus, limit: int = 50) -> list[Job]:
        return self._query(
            "SELECT * FROM jobs WHERE status = %s ORDER BY created_at DESC LIMIT %s",
            (status.value, limit),
        )

    def list_for_phone(self, phone: str, limit: int = 50) -> list[Job]:
        return self._query(
            "SELECT * FROM jobs WHERE phone = %s ORDER BY created_at DESC LIMIT %s",
            (phone, limit),
        )

    def search(self, query: str, limit: int = 50) -> list[Job]:
        needle = query.strip()
        if not needle:
            return []
        pattern = f"%{needle}%"
        return self._query(
            """
            SELECT * FROM jobs
            WHERE id::text ILIKE %s
               OR customer_name ILIKE %s
               OR device_type ILIKE %s
               OR brand ILIKE %s
               OR model ILIKE %s
               OR phone LIKE %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (pattern, pattern, pattern, pattern, pattern, pattern, limit),
        )

    def list_all(self) -> list[Job]:
        return self._query("SELECT * FROM jobs ORDER BY created_at ASC")

    def list_outsourced(self) -> list[Job]:
        return self._query(
            "SELECT * FROM jobs WHERE outsourced IS NOT NULL ORDER BY created_at ASC"
        )


class PostgresVendorStore(VendorStore):
    """Vendor store over the ``vendors`` table, unique on (user_id, name)."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def upsert(self, user_id: UUID, name: str, phone: str | None) -> Vendor:
        now = now_utc()
        try:
            row = self.postgres.execute_returning(
                """
                INSERT INTO vendors (id, user_id, name, phone, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, name) DO UPDATE
                SET phone = COALESCE(EXCLUDED.phone, vendors.phone),
                    updated_at = EXCLUDED.updated_at
                RETURNING *
                """,
                (uuid4(), user_id, name, phone, now, now),
            )[0]
        except psycopg2.Error as e:
            logger.error(f"Vendor upsert failed: {e}")
            raise PersistenceError(f"Vendor storage unavailable: {e}") from e
        return Vendor.model_validate(row)

    def get_by_name(self, name: str) -> Vendor | None:
        row = self.postgres.execute_single("SELECT * FROM vendors WHERE name = %s", (name,))
        if row is None:
            return None
        return Vendor.model_validate(row)

    def list_all(self) -> list[Vendor]:
        rows = self.postgres.execute("SELECT * FROM vendors ORDER BY lower(name) ASC")
        return [Vendor.model_validate(row) for row in rows]
