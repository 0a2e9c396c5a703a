"""
Per-blueprint rate limits (Flask-Limiter).

Counters are keyed by the acting user (X-User-Id) so several consultants
behind one proxy do not share a budget; anonymous callers fall back to
their remote address.  Storage is REDIS_URL (``memory://`` in development).
"""

import logging

from flask import request as flask_request
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

# blueprint name -> limit; None exempts the blueprint
BLUEPRINT_LIMITS = {
    "request": "60/minute",
    "team": "30/minute",
    "health_bp": None,
}


def rate_limit_key():
    user_id = (flask_request.headers.get("X-User-Id") or "").strip()
    return f"user:{user_id}" if user_id else (get_remote_address() or "unknown")


def init_rate_limits(app, limiter):
    """Attach ``BLUEPRINT_LIMITS`` to the registered blueprints.

    Does nothing under TESTING; RATELIMIT_ENABLED is off there as well.
    """
    if app.config.get("TESTING"):
        return

    applied = []
    for name, limit in BLUEPRINT_LIMITS.items():
        blueprint = app.blueprints.get(name)
        if blueprint is None:
            continue
        if limit is None:
            limiter.exempt(blueprint)
        else:
            limiter.limit(limit, key_func=rate_limit_key)(blueprint)
            applied.append(f"{name}={limit}")

    logger.info("Rate limiter configured: %s", ", ".join(applied) or "no limits")
