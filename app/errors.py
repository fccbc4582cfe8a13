from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


class ShiftTemplateInvalidError(ApiError):
    """Raised with every violation found in a weekly shift template."""

    def __init__(self, errors: list[str]):
        super().__init__(
            status_code=422,
            code="SHIFT_TEMPLATE_INVALID",
            message="Shift template is invalid.",
            details={"errors": list(errors)},
        )
        self.errors = list(errors)


class ScopeAssignmentInvalidError(ApiError):
    def __init__(self, message: str, *, status_code: int = 422, code: str = "SCOPE_ASSIGNMENT_INVALID"):
        super().__init__(status_code=status_code, code=code, message=message)


class AdjustmentTargetNotFoundError(ApiError):
    def __init__(self, message: str, *, employee_id: int | None = None):
        super().__init__(
            status_code=404,
            code="ADJUSTMENT_TARGET_NOT_FOUND",
            message=message,
            details={"employee_id": employee_id} if employee_id is not None else None,
        )


class AdjustmentValidationError(ApiError):
    def __init__(self, message: str, *, errors: list[str] | None = None):
        super().__init__(
            status_code=422,
            code="ADJUSTMENT_INVALID",
            message=message,
            details={"errors": list(errors)} if errors else None,
        )


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})
