"""
Error taxonomy for the event access and membership workflow
"""

from typing import Any, Optional


class FrameItError(Exception):
    """Base class for workflow errors"""

    error_code = "error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(FrameItError):
    """Referenced Event or User record does not exist"""

    error_code = "not_found"

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found", details={"id": identifier})
        self.resource = resource
        self.identifier = identifier


class ValidationFailedError(FrameItError):
    """Missing required fields or a rejected access code"""

    error_code = "validation_failed"


class DependencyFailureError(FrameItError):
    """Document store or blob store unreachable or erroring"""

    error_code = "dependency_failure"


class ConcurrencyConflictError(FrameItError):
    """Optimistic write retries exhausted"""

    error_code = "concurrency_conflict"


class PermissionDeniedError(FrameItError):
    """Caller may not act on this event"""

    error_code = "forbidden"
