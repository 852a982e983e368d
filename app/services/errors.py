"""Error taxonomy for coordination operations.

Every kind is an ``HTTPException`` carrying a stable ``code`` so the
registered error handlers render it as ``{"code", "message", "details"}``
and callers (including the retry helper) can tell the kinds apart.
"""

from fastapi import HTTPException


class CoordinationError(HTTPException):
    status_code = 400
    code = "coordination_error"
    default_message = "Request could not be applied"

    def __init__(self, message: str | None = None, details=None) -> None:
        self.message = message or self.default_message
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message, "details": details},
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotFound(CoordinationError):
    status_code = 404
    code = "not_found"
    default_message = "Record not found"


class InvalidTransition(CoordinationError):
    status_code = 409
    code = "invalid_transition"
    default_message = "Transition not allowed from the current status"


class InvalidStageForPipeline(CoordinationError):
    status_code = 422
    code = "invalid_stage_for_pipeline"
    default_message = "Stage does not belong to the matter's pipeline"


class MatterClosed(CoordinationError):
    status_code = 409
    code = "matter_closed"
    default_message = "Matter is closed and can no longer be changed"


class Conflict(CoordinationError):
    status_code = 409
    code = "conflict"
    default_message = "Matter was changed by someone else; retry the request"


class Unauthorized(CoordinationError):
    status_code = 403
    code = "unauthorized"
    default_message = "You are not allowed to perform this action on the matter"


class InvalidRequest(CoordinationError):
    status_code = 422
    code = "invalid_request"
    default_message = "Request is missing required information"
