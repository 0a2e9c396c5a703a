"""
Advisory Request Hub
Request blueprint — submission, workflow, estimation and timesheet endpoints.

Endpoints summary:
    REQUEST   /api/v1/requests                          GET, POST
              /api/v1/requests/<id>                     GET
              /api/v1/requests/<id>/history             GET

    WORKFLOW  /api/v1/requests/<id>/transitions         GET   (available to acting user)
              /api/v1/requests/<id>/transition          POST
              /api/v1/requests/<id>/reassign            POST

    ESTIMATE  /api/v1/requests/<id>/activities          PUT
              /api/v1/requests/<id>/billability         PUT
              /api/v1/requests/<id>/estimation          GET

    TIMESHEET /api/v1/requests/<id>/timesheet           GET, PUT

    NOTIF     /api/v1/notifications                     GET
              /api/v1/notifications/mark-all-read       POST

<id> is the request UUID or its human-readable request_id.
The acting user is read from the X-User-Id header and passed explicitly into
every service call.
"""

import logging

from flask import Blueprint, jsonify, request

from advisory_hub.blueprints import acting_user_id, paginate_query, register_error_handlers
from advisory_hub.models.request import REQUEST_STATUSES, AdvisoryRequest, RequestHistory
from advisory_hub.services import activity_service, request_service
from advisory_hub.services.estimation import get_estimation
from advisory_hub.services.notification import NotificationService
from advisory_hub.services.request_lifecycle import (
    get_available_transitions,
    reassign_request,
    transition_request,
)
from advisory_hub.utils.errors import E, api_error, workflow_error
from advisory_hub.utils.helpers import db_commit_or_error, parse_int

logger = logging.getLogger(__name__)

request_bp = Blueprint("request", __name__, url_prefix="/api/v1")
register_error_handlers(request_bp)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_request_or_404(request_id):
    req = request_service.get_request(request_id)
    if req is None:
        return None, api_error(E.NOT_FOUND, "Request not found")
    return req, None


def _require_user():
    user_id = acting_user_id()
    if not user_id:
        return None, api_error(E.VALIDATION_REQUIRED, "X-User-Id header is required")
    return user_id, None


def _workflow_response(result):
    if not result.success:
        return workflow_error(result)
    return jsonify(result.to_dict()), 200


# ═══════════════════════════════════════════════════════════════════════════
#  REQUESTS
# ═══════════════════════════════════════════════════════════════════════════


@request_bp.route("/requests", methods=["GET"])
def list_requests():
    q = AdvisoryRequest.query

    status = request.args.get("status")
    if status:
        if status not in REQUEST_STATUSES:
            return api_error(E.VALIDATION_INVALID, f"Unknown status: {status}")
        q = q.filter_by(status=status)
    assignee_id = request.args.get("assignee_id")
    if assignee_id:
        q = q.filter_by(assignee_id=assignee_id)
    requestor_id = request.args.get("requestor_id")
    if requestor_id:
        q = q.filter_by(requestor_id=requestor_id)

    items, total = paginate_query(q.order_by(AdvisoryRequest.created_at.desc(), AdvisoryRequest.id))
    return jsonify({"items": [r.to_dict() for r in items], "total": total})


@request_bp.route("/requests", methods=["POST"])
def submit_request():
    """Submit a request; one record is created per advisory service.

    Body: {
        project_data: {...},
        requirements: {service_id: {selected_tools, requirement_details, ...}}
                      | [{advisory_service_id, selected_tools, ...}, ...]
    }
    """
    user_id, err = _require_user()
    if err:
        return err
    data = request.get_json(silent=True) or {}

    errors = {}
    requirements = data.get("requirements")
    if requirements is None:
        requirements = data.get("per_service_requirements")
    if not requirements:
        errors["requirements"] = "At least one advisory service requirement is required"
    elif not isinstance(requirements, (dict, list)):
        errors["requirements"] = "requirements must be an object or a list"
    project_data = data.get("project_data") or {}
    if not isinstance(project_data, dict):
        errors["project_data"] = "project_data must be an object"
    if errors:
        return jsonify({"error": "Validation failed", "code": E.VALIDATION_REQUIRED, "details": errors}), 400

    created = request_service.submit_new_request(project_data, requirements, user_id)
    err = db_commit_or_error()
    if err:
        return err
    logger.info("User %s submitted %d request(s)", user_id, len(created))
    return jsonify({"items": [r.to_dict() for r in created], "total": len(created)}), 201


@request_bp.route("/requests/<request_id>", methods=["GET"])
def get_request(request_id):
    req, err = _get_request_or_404(request_id)
    if err:
        return err
    d = req.to_dict(include_estimation=True)
    d["estimation"] = get_estimation(req)
    return jsonify(d)


@request_bp.route("/requests/<request_id>/history", methods=["GET"])
def get_history(request_id):
    req, err = _get_request_or_404(request_id)
    if err:
        return err
    entries = (
        RequestHistory.query
        .filter_by(request_id=req.id)
        .order_by(RequestHistory.performed_at, RequestHistory.id)
        .all()
    )
    return jsonify({"items": [h.to_dict() for h in entries], "total": len(entries)})


# ═══════════════════════════════════════════════════════════════════════════
#  WORKFLOW
# ═══════════════════════════════════════════════════════════════════════════


@request_bp.route("/requests/<request_id>/transitions", methods=["GET"])
def list_available_transitions(request_id):
    req, err = _get_request_or_404(request_id)
    if err:
        return err
    actor = request_service.get_current_user_role_and_title(acting_user_id())
    return jsonify({
        "status": req.status,
        "version": req.version,
        "transitions": get_available_transitions(req, actor),
    })


@request_bp.route("/requests/<request_id>/transition", methods=["POST"])
def post_transition(request_id):
    """Body: {to_status, expected_version?}"""
    user_id, err = _require_user()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    to_status = (data.get("to_status") or "").strip()
    if not to_status:
        return api_error(E.VALIDATION_REQUIRED, "to_status is required")
    if to_status not in REQUEST_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Unknown status: {to_status}")

    result = transition_request(
        request_id, to_status, user_id,
        expected_version=parse_int(data.get("expected_version")),
    )
    return _workflow_response(result)


@request_bp.route("/requests/<request_id>/reassign", methods=["POST"])
def post_reassign(request_id):
    """Body: {assignee_id, expected_version?}"""
    user_id, err = _require_user()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    assignee_id = data.get("assignee_id") or data.get("new_assignee_id")
    if not assignee_id:
        return api_error(E.VALIDATION_REQUIRED, "assignee_id is required")

    result = reassign_request(
        request_id, assignee_id, user_id,
        expected_version=parse_int(data.get("expected_version")),
    )
    return _workflow_response(result)


# ═══════════════════════════════════════════════════════════════════════════
#  ESTIMATION
# ═══════════════════════════════════════════════════════════════════════════


@request_bp.route("/requests/<request_id>/activities", methods=["PUT"])
def put_activities(request_id):
    """Body: {activities, subActivities, customActivities} or {serviceOfferingActivities}"""
    user_id, err = _require_user()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    req = activity_service.save_activity_selection(request_id, data, performed_by=user_id)
    err = db_commit_or_error()
    if err:
        return err
    d = req.to_dict()
    d["estimation"] = get_estimation(req)
    return jsonify(d)


@request_bp.route("/requests/<request_id>/billability", methods=["PUT"])
def put_billability(request_id):
    """Body: {billability_percentage, allocation_percentage?}"""
    user_id, err = _require_user()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    if data.get("billability_percentage") is None:
        return api_error(E.VALIDATION_REQUIRED, "billability_percentage is required")
    req = request_service.set_billability(
        request_id, data["billability_percentage"], data.get("allocation_percentage"),
        performed_by=user_id,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(req.to_dict())


@request_bp.route("/requests/<request_id>/estimation", methods=["GET"])
def get_request_estimation(request_id):
    req, err = _get_request_or_404(request_id)
    if err:
        return err
    return jsonify(get_estimation(req))


# ═══════════════════════════════════════════════════════════════════════════
#  TIMESHEET
# ═══════════════════════════════════════════════════════════════════════════


@request_bp.route("/requests/<request_id>/timesheet", methods=["GET"])
def get_timesheet(request_id):
    req, err = _get_request_or_404(request_id)
    if err:
        return err
    pct = request.args.get("billability_percentage", type=float)
    return jsonify(request_service.get_timesheet_plan(req, pct))


@request_bp.route("/requests/<request_id>/timesheet", methods=["PUT"])
def put_timesheet(request_id):
    """Body: {unique_key, completed} or {updates: {unique_key: bool, ...}}"""
    user_id, err = _require_user()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    updates = data.get("updates")
    if updates is None:
        key = data.get("unique_key")
        if not key:
            return api_error(E.VALIDATION_REQUIRED, "unique_key or updates is required")
        updates = {key: bool(data.get("completed", True))}
    if not isinstance(updates, dict):
        return api_error(E.VALIDATION_INVALID, "updates must be an object")

    req = request_service.update_timesheet_completion(request_id, updates, performed_by=user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"request_id": req.id, "timesheet_data": req.timesheet_data})


# ═══════════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════════════════════


@request_bp.route("/notifications", methods=["GET"])
def list_notifications():
    user_id, err = _require_user()
    if err:
        return err
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = min(parse_int(request.args.get("limit"), 50), 200)
    offset = max(parse_int(request.args.get("offset"), 0), 0)
    items, total = NotificationService.list_for_recipient(
        user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@request_bp.route("/notifications/mark-all-read", methods=["POST"])
def mark_all_notifications_read():
    user_id, err = _require_user()
    if err:
        return err
    count = NotificationService.mark_all_read(user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"marked": count})
