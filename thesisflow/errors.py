"""Workflow error taxonomy.

Every rejection leaving the engine is one of these kinds. The API layer
renders ``to_dict()`` under an ``error`` key and picks the HTTP status from
``status_code``.

Usage:
    from thesisflow.errors import ValidationError

    if missing:
        raise ValidationError("Rubric is incomplete", missing_fields=missing)
"""

from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """Base class for all engine errors."""

    status_code = 400
    retryable = False

    def __init__(
        self,
        message: str,
        code: str = "WORKFLOW_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(WorkflowError):
    """A transition guard failed; ``missing_fields`` names what to fix."""

    status_code = 422

    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        guard: Optional[str] = None,
        **extra: Any,
    ):
        details: Dict[str, Any] = {"missing_fields": list(missing_fields or [])}
        if guard:
            details["guard"] = guard
        details.update(extra)
        super().__init__(message, code="VALIDATION_FAILED", details=details)

    @property
    def missing_fields(self) -> List[str]:
        return self.details["missing_fields"]


class ConflictError(WorkflowError):
    """The thesis changed underneath the caller; re-fetch and retry."""

    status_code = 409
    retryable = True

    def __init__(self, message: str = "Thesis was modified concurrently", **details: Any):
        super().__init__(message, code="STALE_STATE", details=details)


class ExhaustionError(WorkflowError):
    """A bounded attempt budget is spent; only an administrator can reopen it."""

    status_code = 429

    def __init__(self, message: str, attempts: int, max_attempts: int):
        super().__init__(
            message,
            code="ATTEMPTS_EXHAUSTED",
            details={
                "attempts": attempts,
                "max_attempts": max_attempts,
                "remaining_attempts": 0,
                "escalation": "Contact an administrator for a manual plagiarism override",
            },
        )


class TransientInfraError(WorkflowError):
    """An external collaborator or the store is unreachable; safe to retry."""

    status_code = 503
    retryable = True

    def __init__(self, message: str, service: str = "infrastructure"):
        super().__init__(message, code="SERVICE_UNAVAILABLE", details={"service": service})


class AuthorizationError(WorkflowError):
    """Role or ownership mismatch."""

    status_code = 403

    def __init__(self, message: str = "Not authorized for this action", **details: Any):
        super().__init__(message, code="FORBIDDEN", details=details)


class NotFoundError(WorkflowError):
    """Referenced thesis, principal or document does not exist."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found",
            code="NOT_FOUND",
            details={"resource": resource, "id": identifier},
        )
