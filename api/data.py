"""GET /api/data: unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.actions import job_payload
from api.base import success_response, request_id_of
from core.models import JobStatus


VALID_TYPES = {"jobs", "customers", "vendors", "vendor_stats"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    job_svc = services["job"]
    outsource_svc = services["outsource"]
    vendor_svc = services["vendor"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        search: str | None = Query(None),
        status: str | None = Query(None),
        phone: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        if type == "jobs":
            data = _handle_jobs(job_svc, id, search, status, phone, limit, offset)
        elif type == "customers":
            data = _handle_customers(job_svc, phone)
        elif type == "vendors":
            data = [v.model_dump(mode="json") for v in vendor_svc.list_all()]
        else:
            data = [s.model_dump(mode="json") for s in outsource_svc.vendor_stats()]

        return success_response(data, request_id_of(request)).model_dump(mode="json")

    return router


def _handle_jobs(job_svc, id, search, status, phone, limit, offset):
    if id:
        job = job_svc.get_by_id(UUID(id))
        if job is None:
            raise ValueError(f"Job {id} not found")
        return job_payload(job)

    if search:
        jobs = job_svc.search(search, limit)
    elif status:
        jobs = job_svc.list_by_status(JobStatus(status), limit)
    elif phone:
        jobs = job_svc.list_for_phone(phone, limit)
    else:
        jobs = job_svc.list_recent(limit, offset)

    return [job_payload(j) for j in jobs]


def _handle_customers(job_svc, phone):
    customers = job_svc.customer_summaries()
    if phone:
        customers = [c for c in customers if c.phone == phone]
    return [c.model_dump(mode="json") for c in customers]
