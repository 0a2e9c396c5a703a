"""
Exceptions raised by the service layer for bad or missing input.

Workflow outcomes (invalid transition, forbidden, no assignee, stale
version) are returned as ``TransitionResult`` values instead; see
``advisory_hub.core.results``.  Blueprints map these classes to responses
in ``advisory_hub.blueprints.register_error_handlers``.

    raise NotFoundError("Request", "EE-LZ3K1Q8F-A7F")
    raise InvalidInputError("billability_percentage must be > 0")
"""


class AdvisoryHubError(Exception):
    """Base class; ``details`` is echoed in the API error body."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class NotFoundError(AdvisoryHubError):
    """404: ``resource`` has no row for ``resource_id``."""

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        suffix = f" {resource_id}" if resource_id is not None else ""
        super().__init__(f"{resource}{suffix} not found")
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(AdvisoryHubError):
    """422: well-formed input that the request's current state does not allow."""


class InvalidInputError(ValidationError):
    """400: an argument outside its domain (e.g. a billability of 0)."""


class ConflictError(AdvisoryHubError):
    """409: the value is already taken by another row."""

    def __init__(self, resource: str, field: str, value=None) -> None:
        super().__init__(
            f"{resource} with this {field} already exists",
            details={"field": field, "value": value},
        )
        self.resource = resource
        self.field = field
