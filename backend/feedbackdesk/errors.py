"""
Errors raised by the submission engine and its repositories.

Each kind has a stable ``code`` and ``message`` so clients can show specific
guidance; ``context`` carries the details of one occurrence.
"""
from __future__ import annotations
from typing import Any


class LifecycleError(Exception):
    code: str = "lifecycle_error"
    status_code: int = 400
    message: str = "Request could not be processed"

    def __init__(self, message: str | None = None, **context: Any):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.context}


class SubmissionNotFound(LifecycleError):
    code = "not_found"
    status_code = 404
    message = "Submission not found"


class ServiceNotFound(LifecycleError):
    code = "service_not_found"
    status_code = 404
    message = "Service not found"


class ValidationFailed(LifecycleError):
    code = "validation_failed"
    status_code = 422
    message = "Validation failed"


class QuotaExceeded(LifecycleError):
    code = "quota_exceeded"
    status_code = 429

    def __init__(self, limit: int, **context: Any):
        super().__init__(
            f"You have reached the limit of {limit} pending submissions. "
            "Please wait for your current submissions to be reviewed before submitting more.",
            limit=limit,
            **context,
        )


class InvalidTransition(LifecycleError):
    code = "invalid_transition"
    status_code = 409
    message = "This action is not allowed for the submission's current status"


class StorageUnavailable(LifecycleError):
    """Transient storage fault. Safe for the caller to retry."""
    code = "storage_unavailable"
    status_code = 503
    message = "Storage is temporarily unavailable, please retry"
