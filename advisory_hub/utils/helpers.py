"""Small helpers shared by the blueprints."""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from advisory_hub.models import db
from advisory_hub.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Return ``(instance, None)`` or ``(None, error_response)``.

        consultant, err = get_or_404(Consultant, consultant_id)
        if err:
            return err
    """
    instance = db.session.get(model, pk)
    if instance is None:
        return None, api_error(E.NOT_FOUND, f"{label or model.__name__} not found")
    return instance, None


def parse_int(value, default=None):
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def db_commit_or_error():
    """Commit the session; on failure roll back and return an error response.

    Constraint violations and stale versions are conflicts (409); any other
    database fault is a 500.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Commit rejected by a constraint: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except StaleDataError:
        db.session.rollback()
        logger.warning("Commit hit a stale row version")
        return api_error(
            E.CONCURRENT_MODIFICATION,
            "The record was changed by someone else. Reload it and try again.",
        )
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Commit failed")
        return api_error(E.DATABASE, "Database error")
    return None
