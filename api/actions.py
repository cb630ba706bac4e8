"""POST /api/actions: unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response, request_id_of
from core.exceptions import MissingRequiredFieldError
from core.models import (
    Job, JobCreate, JobUpdate,
    PaymentRequest, ReturnRequest,
    OutsourceRequest, ReceiveBackRequest,
    VendorUpsert,
)
from utils.timezone import parse_iso


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "job": JobHandler(services["job"]),
        "outsource": OutsourceHandler(services["outsource"]),
        "vendor": VendorHandler(services["vendor"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result, request_id_of(request)).model_dump(mode="json")

    return router


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================


def job_payload(job: Job) -> dict:
    """Job as JSON, with the derived balance included."""
    data = job.model_dump(mode="json")
    data["balance"] = str(job.balance)
    return data


def _pop_id(data: dict, key: str = "id") -> UUID:
    raw = data.pop(key, None)
    if not raw:
        raise MissingRequiredFieldError(key)
    return UUID(str(raw))


def _pop_expected(data: dict):
    # Optimistic check: clients echo back the updated_at they rendered
    raw = data.pop("expected_updated_at", None)
    return parse_iso(raw) if raw else None


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class JobHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "collect_payment", "return_order"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        job = self.service.create(JobCreate(**data))
        return job_payload(job)

    def _handle_update(self, data: dict):
        job_id = _pop_id(data)
        expected = _pop_expected(data)
        job = self.service.update(job_id, JobUpdate(**data), expected)
        return job_payload(job)

    def _handle_delete(self, data: dict):
        job_id = _pop_id(data)
        deleted = self.service.delete(job_id)
        if not deleted:
            raise ValueError(f"Job {job_id} not found")
        return {"deleted": True}

    def _handle_collect_payment(self, data: dict):
        job_id = _pop_id(data)
        expected = _pop_expected(data)
        job = self.service.collect_payment(job_id, PaymentRequest(**data), expected)
        return job_payload(job)

    def _handle_return_order(self, data: dict):
        job_id = _pop_id(data)
        expected = _pop_expected(data)
        job = self.service.return_order(job_id, ReturnRequest(**data), expected)
        return job_payload(job)


class OutsourceHandler:
    ALLOWED_ACTIONS = {"assign_vendor", "receive_back"}

    def __init__(self, service):
        self.service = service

    def _handle_assign_vendor(self, data: dict):
        job_id = _pop_id(data)
        expected = _pop_expected(data)
        job = self.service.assign_vendor(job_id, OutsourceRequest(**data), expected)
        return job_payload(job)

    def _handle_receive_back(self, data: dict):
        job_id = _pop_id(data)
        expected = _pop_expected(data)
        job = self.service.receive_back(job_id, ReceiveBackRequest(**data), expected)
        return job_payload(job)


class VendorHandler:
    ALLOWED_ACTIONS = {"upsert"}

    def __init__(self, service):
        self.service = service

    def _handle_upsert(self, data: dict):
        vendor = self.service.upsert(VendorUpsert(**data))
        return vendor.model_dump(mode="json")
