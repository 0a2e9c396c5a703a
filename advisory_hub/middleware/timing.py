"""
Request timing and correlation ids.

Each request gets ``g.request_id`` (the caller's X-Request-ID, or a fresh
one) which is echoed back together with X-Request-Duration-Ms.  Requests
slower than SLOW_REQUEST_THRESHOLD_MS are logged as warnings, 5xx responses
as errors.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_QUIET_PREFIX = "/api/v1/health"


def _log_level(status_code, duration_ms, threshold_ms):
    if status_code >= 500:
        return logging.ERROR, "Server error"
    if duration_ms > threshold_ms:
        return logging.WARNING, "Slow request"
    return logging.DEBUG, "Request"


def init_request_timing(app: Flask):
    threshold_ms = app.config.get("SLOW_REQUEST_THRESHOLD_MS", 1000)

    @app.before_request
    def _stamp_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish_request(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        # Probes are polled constantly
        if request.path.startswith(_QUIET_PREFIX):
            return response

        level, label = _log_level(response.status_code, duration_ms, threshold_ms)
        logger.log(
            level, "%s: %s %s %d", label, request.method, request.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "advisory_request": (request.view_args or {}).get("request_id"),
            },
        )
        return response
