"""
Custom exception hierarchy for the MindWell API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

All of these are raised before any write happens, so a rejected request
never leaves a partial change behind.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class MindWellException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AuthenticationError(MindWellException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Missing or invalid user identity."):
        super().__init__(message=message)


class ValidationError(MindWellException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )


class CapacityExceededError(MindWellException):
    http_status = status.HTTP_409_CONFLICT
    code = "CAPACITY_EXCEEDED"

    def __init__(self, max_active: int):
        super().__init__(
            message=(
                f"Maximum of {max_active} active goals allowed. "
                "Please complete or delete existing goals first."
            ),
            details={"max_active": max_active},
        )


class NotYetAchievedError(MindWellException):
    http_status = status.HTTP_409_CONFLICT
    code = "GOAL_NOT_YET_ACHIEVED"

    def __init__(self, goal_id: int, progress: dict[str, Any]):
        super().__init__(
            message="Goal target not yet reached.",
            details={"goal_id": goal_id, "progress": progress},
        )


class InvalidGoalStateError(MindWellException):
    http_status = status.HTTP_409_CONFLICT
    code = "INVALID_GOAL_STATE"

    def __init__(self, goal_id: int, reason: str):
        super().__init__(
            message=reason,
            details={"goal_id": goal_id},
        )


class NotFoundError(MindWellException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} {resource_id} not found.",
            details={"resource": resource, "id": resource_id},
        )


class RecordLockedError(MindWellException):
    http_status = status.HTTP_409_CONFLICT
    code = "RECORD_LOCKED"

    def __init__(self, resource: str, resource_id: Any, reason: str):
        super().__init__(
            message=reason,
            details={"resource": resource, "id": resource_id},
        )


class DataUnavailableError(MindWellException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "DATA_UNAVAILABLE"

    def __init__(self, source: str, reason: str | None = None):
        super().__init__(
            message=f"Could not read from {source}.",
            details={"source": source, "reason": reason} if reason else {"source": source},
        )


class ClassifierUnavailableError(MindWellException):
    """LLM call failed or returned garbage. Triggers the rule-based fallback."""
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "CLASSIFIER_UNAVAILABLE"

    def __init__(self, reason: str):
        super().__init__(message=f"Sentiment classifier unavailable: {reason}")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def mindwell_exception_handler(request: Request, exc: MindWellException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
