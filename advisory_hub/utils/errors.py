"""JSON error bodies for the request workflow API.

Every error response has the same shape::

    {"error": "<human readable>", "code": "ERR_...", "details": {...}}

``details`` is omitted when empty.  Failed workflow operations carry the
workflow error kind in ``details.kind`` so the UI can react to it (e.g. offer
a reload on ``ConcurrentModification``).

    return api_error(E.NOT_FOUND, "Request not found")
    return workflow_error(result)
"""

from __future__ import annotations

from flask import jsonify

from advisory_hub.core.results import TransitionResult, WorkflowError


class E:
    """Error codes.  Each code has a default HTTP status (see ``_DEFAULT_STATUS``)."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_RULE = "ERR_VALIDATION_RULE"
    NOT_FOUND = "ERR_NOT_FOUND"
    FORBIDDEN = "ERR_FORBIDDEN"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    NO_ASSIGNEE_AVAILABLE = "ERR_NO_ASSIGNEE_AVAILABLE"
    CONCURRENT_MODIFICATION = "ERR_CONCURRENT_MODIFICATION"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS_GROUPS: dict[int, tuple[str, ...]] = {
    400: (E.VALIDATION_REQUIRED, E.VALIDATION_INVALID),
    403: (E.FORBIDDEN,),
    404: (E.NOT_FOUND,),
    409: (E.CONFLICT_DUPLICATE, E.INVALID_TRANSITION,
          E.NO_ASSIGNEE_AVAILABLE, E.CONCURRENT_MODIFICATION),
    422: (E.VALIDATION_RULE,),
    500: (E.DATABASE, E.INTERNAL),
}

_DEFAULT_STATUS: dict[str, int] = {
    code: status for status, codes in _STATUS_GROUPS.items() for code in codes
}

WORKFLOW_ERROR_CODES: dict[WorkflowError, str] = {
    WorkflowError.NOT_FOUND: E.NOT_FOUND,
    WorkflowError.FORBIDDEN: E.FORBIDDEN,
    WorkflowError.INVALID_INPUT: E.VALIDATION_INVALID,
    WorkflowError.INVALID_TRANSITION: E.INVALID_TRANSITION,
    WorkflowError.NO_ASSIGNEE_AVAILABLE: E.NO_ASSIGNEE_AVAILABLE,
    WorkflowError.CONCURRENT_MODIFICATION: E.CONCURRENT_MODIFICATION,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for a Flask view.

    ``status`` overrides the code's default; unknown codes map to 400.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def workflow_error(result: TransitionResult):
    """Render a failed ``TransitionResult``."""
    details = {**(result.details or {}), "kind": result.error.value if result.error else None}
    return api_error(WORKFLOW_ERROR_CODES.get(result.error, E.INTERNAL), result.message, details=details)
