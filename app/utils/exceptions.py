"""Domain errors for the request lifecycle and matching engine.

Every error is an ``HTTPException`` so services can raise it where they
would otherwise raise a plain ``HTTPException``; route handlers re-raise
them untouched and ``blood_link_error_handler`` renders them.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

ERROR_CODES: Dict[str, Dict[str, Any]] = {
    "validation_error": {"http": 422, "detail": "Request data is invalid."},
    "not_found": {"http": 404, "detail": "Resource not found."},
    "invalid_transition": {"http": 409, "detail": "Status transition not allowed."},
    "request_unavailable": {"http": 409, "detail": "This request is no longer available."},
    "donor_unavailable": {"http": 400, "detail": "You are currently not available for donations."},
    "incompatible_blood_type": {"http": 400, "detail": "Your blood group is not compatible with this request."},
    "forbidden": {"http": 403, "detail": "Action not permitted."},
}


class BloodLinkError(HTTPException):
    """Base class carrying a catalog code alongside the HTTP status."""

    code = "validation_error"

    def __init__(self, detail: Optional[str] = None):
        spec = ERROR_CODES[self.code]
        super().__init__(status_code=spec["http"], detail=detail or spec["detail"])

    @property
    def message(self) -> str:
        return str(self.detail)


class BloodRequestValidationError(BloodLinkError):
    code = "validation_error"


class NotFoundError(BloodLinkError):
    code = "not_found"

    def __init__(self, resource: str = "Resource", resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class InvalidTransitionError(BloodLinkError):
    code = "invalid_transition"

    def __init__(self, current_status: Any, requested_status: Any):
        self.current_status = getattr(current_status, "value", current_status)
        self.requested_status = getattr(requested_status, "value", requested_status)
        super().__init__(
            f"Cannot change status from {self.current_status} to {self.requested_status}"
        )


class RequestUnavailableError(BloodLinkError):
    code = "request_unavailable"


class DonorUnavailableError(BloodLinkError):
    code = "donor_unavailable"


class IncompatibleBloodTypeError(BloodLinkError):
    code = "incompatible_blood_type"


class UnauthorizedActionError(BloodLinkError):
    code = "forbidden"


async def blood_link_error_handler(request: Request, exc: BloodLinkError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "code": exc.code, "message": exc.message},
    )


__all__ = [
    "ERROR_CODES",
    "BloodLinkError",
    "BloodRequestValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "RequestUnavailableError",
    "DonorUnavailableError",
    "IncompatibleBloodTypeError",
    "UnauthorizedActionError",
    "blood_link_error_handler",
]
