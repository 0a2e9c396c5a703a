"""
Health probes.

    GET /api/v1/health/ready    process is up (load balancer probe)
    GET /api/v1/health/live     database, limiter storage and workflow rule checks
    GET /api/v1/health/db-diag  row counts of the workflow tables
"""

import logging
import time

import redis as redis_lib
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from advisory_hub.models import db
from advisory_hub.models.request import StatusTransition

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

_DIAG_TABLES = (
    "requests", "request_history", "status_transitions", "advisory_team_members",
    "profiles", "advisory_services", "activities", "sub_activities", "notifications",
)


def _timed(probe):
    started = time.perf_counter()
    probe()
    return round((time.perf_counter() - started) * 1000, 1)


def _check_database():
    try:
        latency = _timed(lambda: db.session.execute(db.text("SELECT 1")))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check: database failed: %s", exc)
        return {"status": "error", "detail": str(exc)}, False
    return {"status": "ok", "latency_ms": latency}, True


def _check_limiter_storage():
    """Ping Redis when the rate limiter stores its counters there.

    A Redis outage only degrades rate limiting, so it never fails the probe.
    """
    url = current_app.config.get("REDIS_URL") or ""
    if not url.startswith(("redis://", "rediss://")):
        return {"status": "skipped", "detail": f"limiter storage is {url or 'unset'}"}
    try:
        latency = _timed(lambda: redis_lib.from_url(url, socket_timeout=2).ping())
    except redis_lib.RedisError as exc:
        logger.warning("Health check: redis unreachable: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": latency}


def _check_workflow_rules():
    try:
        count = db.session.query(StatusTransition).count()
    except SQLAlchemyError as exc:
        db.session.rollback()
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "rules": count, "source": "table" if count else "built-in defaults"}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    database, db_ok = _check_database()
    checks = {
        "database": database,
        "redis": _check_limiter_storage(),
        "workflow": _check_workflow_rules() if db_ok else {"status": "skipped"},
        "app": {"debug": current_app.debug, "testing": current_app.testing},
    }
    body = {"status": "healthy" if db_ok else "degraded", "checks": checks}
    return jsonify(body), 200 if db_ok else 503


@health_bp.route("/db-diag", methods=["GET"])
def db_diagnostic():
    counts = {}
    for table in _DIAG_TABLES:
        try:
            total = db.session.execute(db.text(f"SELECT COUNT(*) FROM {table}")).scalar()
        except SQLAlchemyError as exc:
            db.session.rollback()
            counts[table] = {"status": "error", "detail": str(exc)}
        else:
            counts[table] = {"status": "ok", "count": total}
    return jsonify(counts), 200
