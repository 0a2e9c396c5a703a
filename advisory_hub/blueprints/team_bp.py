"""
Advisory Request Hub
Team blueprint — consultants, user profiles, service catalog and workflow rules.

Endpoints summary:
    CONSULTANT  /api/v1/consultants                       GET, POST  (POST: Admin)
                /api/v1/consultants/<id>                  GET, PUT   (PUT: Admin)

    PROFILE     /api/v1/profiles                          GET, POST  (POST: Admin)

    CATALOG     /api/v1/advisory-services                 GET
                /api/v1/advisory-services/<id>/activities GET

    RULES       /api/v1/status-transitions                GET
"""

import logging

from flask import Blueprint, jsonify, request

from advisory_hub.blueprints import acting_user_id, paginate_query, register_error_handlers
from advisory_hub.core.exceptions import ConflictError
from advisory_hub.models import db
from advisory_hub.models.catalog import Activity, AdvisoryService, ServiceOffering
from advisory_hub.models.team import ADVISORY_TITLES, USER_ROLES, Consultant, UserProfile
from advisory_hub.services.request_service import (
    get_current_user_role_and_title,
    get_status_transition_rules,
    responsible_role,
)
from advisory_hub.utils.errors import E, api_error
from advisory_hub.utils.helpers import db_commit_or_error, get_or_404

logger = logging.getLogger(__name__)

team_bp = Blueprint("team", __name__, url_prefix="/api/v1")
register_error_handlers(team_bp)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _require_admin():
    actor = get_current_user_role_and_title(acting_user_id())
    if not actor.is_admin:
        return api_error(E.FORBIDDEN, "Admin role required")
    return None


def _string_list(value):
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _validate_consultant(data, *, partial=False):
    """Return a field → message dict; empty when valid."""
    errors = {}
    if not partial or "name" in data:
        if not (data.get("name") or "").strip():
            errors["name"] = "name is required"
        elif len(data["name"]) > 150:
            errors["name"] = "name must be ≤ 150 characters"
    if "title" in data and data["title"] not in ADVISORY_TITLES:
        errors["title"] = f"title must be one of {', '.join(ADVISORY_TITLES)}"
    for field in ("advisory_services", "expertise"):
        if field in data and not _string_list(data[field]):
            errors[field] = f"{field} must be a list of strings"
    if "rate_per_hour" in data:
        try:
            if float(data["rate_per_hour"]) < 0:
                errors["rate_per_hour"] = "rate_per_hour must not be negative"
        except (TypeError, ValueError):
            errors["rate_per_hour"] = "rate_per_hour must be a number"
    if data.get("billability_percentage") is not None:
        try:
            if not 0 < float(data["billability_percentage"]) <= 100:
                errors["billability_percentage"] = "billability_percentage must be in (0, 100]"
        except (TypeError, ValueError):
            errors["billability_percentage"] = "billability_percentage must be a number"
    return errors


_CONSULTANT_FIELDS = (
    "user_id", "name", "email", "title", "designation", "advisory_services",
    "expertise", "rate_per_hour", "billability_percentage", "is_active",
)


# ═══════════════════════════════════════════════════════════════════════════
#  CONSULTANTS
# ═══════════════════════════════════════════════════════════════════════════


@team_bp.route("/consultants", methods=["GET"])
def list_consultants():
    q = Consultant.query
    active = request.args.get("active")
    if active is not None:
        q = q.filter_by(is_active=active.lower() == "true")
    title = request.args.get("title")
    if title:
        q = q.filter_by(title=title)
    items, total = paginate_query(q.order_by(Consultant.name, Consultant.id))
    return jsonify({"items": [c.to_dict() for c in items], "total": total})


@team_bp.route("/consultants", methods=["POST"])
def create_consultant():
    err = _require_admin()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    errors = _validate_consultant(data)
    if errors:
        return jsonify({"error": "Validation failed", "code": E.VALIDATION_INVALID, "details": errors}), 400
    if data.get("user_id") and Consultant.query.filter_by(user_id=data["user_id"]).first() is not None:
        raise ConflictError("Consultant", "user_id", data["user_id"])

    consultant = Consultant(**{k: data[k] for k in _CONSULTANT_FIELDS if k in data})
    consultant.name = consultant.name.strip()
    db.session.add(consultant)
    err = db_commit_or_error()
    if err:
        return err
    logger.info("Consultant %s created (%s)", consultant.id, consultant.title)
    return jsonify(consultant.to_dict()), 201


@team_bp.route("/consultants/<consultant_id>", methods=["GET"])
def get_consultant(consultant_id):
    consultant, err = get_or_404(Consultant, consultant_id)
    if err:
        return err
    return jsonify(consultant.to_dict())


@team_bp.route("/consultants/<consultant_id>", methods=["PUT"])
def update_consultant(consultant_id):
    err = _require_admin()
    if err:
        return err
    consultant, err = get_or_404(Consultant, consultant_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    errors = _validate_consultant(data, partial=True)
    if errors:
        return jsonify({"error": "Validation failed", "code": E.VALIDATION_INVALID, "details": errors}), 400

    for field in _CONSULTANT_FIELDS:
        if field in data:
            setattr(consultant, field, data[field])
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(consultant.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  PROFILES
# ═══════════════════════════════════════════════════════════════════════════


@team_bp.route("/profiles", methods=["GET"])
def list_profiles():
    items, total = paginate_query(UserProfile.query.order_by(UserProfile.username))
    return jsonify({"items": [p.to_dict() for p in items], "total": total})


@team_bp.route("/profiles", methods=["POST"])
def create_profile():
    err = _require_admin()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    errors = {}
    if not (data.get("user_id") or "").strip():
        errors["user_id"] = "user_id is required"
    if not (data.get("username") or "").strip():
        errors["username"] = "username is required"
    role = data.get("role", "Standard User")
    if role not in USER_ROLES:
        errors["role"] = f"Unknown role: {role}"
    if errors:
        return jsonify({"error": "Validation failed", "code": E.VALIDATION_INVALID, "details": errors}), 400
    user_id = data["user_id"].strip()
    if UserProfile.query.filter_by(user_id=user_id).first() is not None:
        raise ConflictError("Profile", "user_id", user_id)

    profile = UserProfile(
        user_id=user_id,
        username=data["username"].strip(),
        email=data.get("email", ""),
        role=role,
    )
    db.session.add(profile)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(profile.to_dict()), 201


# ═══════════════════════════════════════════════════════════════════════════
#  CATALOG
# ═══════════════════════════════════════════════════════════════════════════


@team_bp.route("/advisory-services", methods=["GET"])
def list_advisory_services():
    services = AdvisoryService.query.filter_by(is_active=True).order_by(AdvisoryService.name).all()
    out = []
    for s in services:
        d = s.to_dict()
        d["offerings"] = [o.to_dict() for o in s.offerings.filter_by(is_active=True).order_by(ServiceOffering.name)]
        out.append(d)
    return jsonify({"items": out, "total": len(out)})


@team_bp.route("/advisory-services/<service_id>/activities", methods=["GET"])
def list_service_activities(service_id):
    service, err = get_or_404(AdvisoryService, service_id, label="Advisory service")
    if err:
        return err
    offering_ids = [o.id for o in service.offerings]
    q = Activity.query.filter(Activity.is_active.is_(True)).filter(
        (Activity.advisory_service_id == service.id)
        | (Activity.service_offering_id.in_(offering_ids))
    )
    activities = q.order_by(Activity.display_order, Activity.name).all()
    return jsonify({
        "items": [a.to_dict(include_children=True) for a in activities],
        "total": len(activities),
    })


# ═══════════════════════════════════════════════════════════════════════════
#  WORKFLOW RULES
# ═══════════════════════════════════════════════════════════════════════════


@team_bp.route("/status-transitions", methods=["GET"])
def list_status_transitions():
    rules = get_status_transition_rules()
    from_status = request.args.get("from_status")
    if from_status:
        rules = [r for r in rules if r.from_status == from_status]
    return jsonify({
        "items": [r._asdict() for r in rules],
        "total": len(rules),
        "responsible_roles": {
            s: responsible_role(s, rules) for s in sorted({r.from_status for r in rules})
        },
    })
