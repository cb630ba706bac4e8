"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, request_id_of, ErrorCodes
from core.exceptions import JobError

logger = logging.getLogger(__name__)

# HTTP status for each business-rule code
STATUS_BY_CODE = {
    ErrorCodes.INVALID_STATUS_TRANSITION: 409,
    ErrorCodes.INVALID_AMOUNT: 400,
    ErrorCodes.MISSING_REQUIRED_FIELD: 400,
    ErrorCodes.NOT_FOUND: 404,
    ErrorCodes.CONCURRENT_MODIFICATION: 409,
    ErrorCodes.SERVICE_UNAVAILABLE: 503,
}

AMOUNT_FIELDS = {
    "total_amount", "advance_amount", "discount_amount",
    "service_charge", "cost", "final_cost", "amount",
}

_MISSING_TYPES = {"missing", "string_too_short"}


def classify_validation_error(exc: ValidationError) -> tuple[str, int]:
    """
    Map a request-model ValidationError onto an error code and HTTP status.

    Amount fields become INVALID_AMOUNT, missing or empty fields
    MISSING_REQUIRED_FIELD; anything else stays a 422.
    """
    errors = exc.errors()
    for error in errors:
        if any(part in AMOUNT_FIELDS for part in error["loc"]):
            return ErrorCodes.INVALID_AMOUNT, 400
    for error in errors:
        if error["type"] in _MISSING_TYPES:
            return ErrorCodes.MISSING_REQUIRED_FIELD, 400
    return ErrorCodes.VALIDATION_ERROR, 422


def _render(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(JobError)
    async def job_error_handler(request: Request, exc: JobError):
        status_code = STATUS_BY_CODE.get(exc.code, 400)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _render(request, status_code, exc.code, str(exc))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        code, status_code = classify_validation_error(exc)
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) or error["type"]
            for error in exc.errors()
        )
        return _render(request, status_code, code, f"Invalid input: {fields}")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _render(request, 404, ErrorCodes.NOT_FOUND, message)
        return _render(request, 400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _render(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _render(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
