"""
Typed workflow results.

Workflow operations return a ``TransitionResult`` instead of raising for
expected business outcomes.  Only infrastructure faults propagate as
exceptions.

Usage:
    result = transition_request(request_id, "Review", user_id)
    if not result.success:
        return api_error(ERROR_CODES[result.error], result.message)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WorkflowError(str, Enum):
    INVALID_TRANSITION = "InvalidTransition"
    FORBIDDEN = "Forbidden"
    NO_ASSIGNEE_AVAILABLE = "NoAssigneeAvailable"
    NOT_FOUND = "NotFound"
    CONCURRENT_MODIFICATION = "ConcurrentModification"
    INVALID_INPUT = "InvalidInput"


# Messages the UI shows verbatim when no more specific text is available.
DEFAULT_MESSAGES = {
    WorkflowError.INVALID_TRANSITION: "This status change is not allowed from the current status.",
    WorkflowError.FORBIDDEN: "You do not have permission to perform this action.",
    WorkflowError.NO_ASSIGNEE_AVAILABLE: (
        "No consultant available for this service. Contact an administrator."
    ),
    WorkflowError.NOT_FOUND: "Request not found.",
    WorkflowError.CONCURRENT_MODIFICATION: (
        "The request was changed by someone else. Reload it and try again."
    ),
    WorkflowError.INVALID_INPUT: "The request is not ready for this action.",
}


@dataclass
class TransitionResult:
    """Outcome of a workflow operation on one request."""
    success: bool
    request: Any = None
    error: WorkflowError | None = None
    message: str = ""
    reassigned: bool = False
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, request, message: str = "", *, reassigned: bool = False, **details) -> TransitionResult:
        return cls(success=True, request=request, message=message,
                   reassigned=reassigned, details=details)

    @classmethod
    def fail(cls, error: WorkflowError, message: str | None = None, *,
             request=None, **details) -> TransitionResult:
        return cls(success=False, request=request, error=error,
                   message=message or DEFAULT_MESSAGES[error], details=details)

    def to_dict(self) -> dict:
        d = {
            "success": self.success,
            "message": self.message,
            "reassigned": self.reassigned,
        }
        if self.error is not None:
            d["error"] = self.error.value
        if self.request is not None and self.success:
            d["request"] = self.request.to_dict()
        if self.details:
            d["details"] = self.details
        return d
