"""
Advisory Request Hub
Blueprints: request workflow, team administration and health probes.
"""

from flask import g, request

from advisory_hub.core.exceptions import ConflictError, InvalidInputError, NotFoundError, ValidationError
from advisory_hub.utils.errors import E, api_error
from advisory_hub.utils.helpers import parse_int

# Flask picks the most specific class, so InvalidInputError wins over ValidationError
_EXCEPTION_CODES = (
    (NotFoundError, E.NOT_FOUND),
    (InvalidInputError, E.VALIDATION_INVALID),
    (ValidationError, E.VALIDATION_RULE),
    (ConflictError, E.CONFLICT_DUPLICATE),
)


def register_error_handlers(blueprint):
    """Translate service-layer exceptions raised inside ``blueprint``'s views."""
    for exc_class, code in _EXCEPTION_CODES:
        def _handle(error, _code=code):
            return api_error(_code, str(error), details=error.details)
        blueprint.register_error_handler(exc_class, _handle)


def paginate_query(query, default_limit=200, max_limit=1000):
    """Page ``query`` with the ``limit`` / ``offset`` query parameters.

    Returns ``(items, total)`` where ``total`` ignores the page window.
    """
    limit = min(parse_int(request.args.get("limit"), default_limit), max_limit)
    offset = max(parse_int(request.args.get("offset"), 0), 0)
    return query.limit(limit).offset(offset).all(), query.count()


def acting_user_id():
    """Acting user from the ``X-User-Id`` header (None when absent).

    Stored on ``g`` so log records of the request carry it.
    """
    g.acting_user_id = (request.headers.get("X-User-Id") or "").strip() or None
    return g.acting_user_id
