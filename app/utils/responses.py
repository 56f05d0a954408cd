"""
Response envelopes shared by every router and the error handlers
"""

from typing import Any
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    ConcurrencyConflictError,
    DependencyFailureError,
    FrameItError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from app.schemas.common import StandardResponse, ErrorResponse

ERROR_STATUS = {
    NotFoundError: 404,
    ValidationFailedError: 422,
    PermissionDeniedError: 403,
    ConcurrencyConflictError: 409,
    DependencyFailureError: 503,
}

RETRYABLE_ERRORS = (ConcurrencyConflictError, DependencyFailureError)

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."

def success_response(
    message: str,
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """Wrap ``data`` in the success envelope"""
    response = StandardResponse(
        success=True,
        message=message,
        data=data
    )
    return JSONResponse(
        content=response.model_dump(),
        status_code=status_code
    )

def error_response(exc: FrameItError) -> JSONResponse:
    """Render a workflow error with its status code.

    Store and blob failures get a generic message; their details stay in the logs.
    """
    hide = isinstance(exc, DependencyFailureError)
    response = ErrorResponse(
        message=GENERIC_FAILURE_MESSAGE if hide else exc.message,
        error_code=exc.error_code,
        details=None if hide else exc.details,
        retryable=isinstance(exc, RETRYABLE_ERRORS)
    )
    return JSONResponse(
        content=response.model_dump(),
        status_code=ERROR_STATUS.get(type(exc), 400)
    )
