"""Request service layer: store access, submission, billability and timesheets.

Transaction policy: functions here use flush(), never commit().
The caller (route handler) is responsible for db.session.commit().
The workflow operations in ``request_lifecycle`` are the exception and own
their transaction.

Operations:
- Store lookups consumed by the workflow engine (consultants, loads, rules,
  requests, acting user)
- Request submission with auto-assignment, one request per advisory service
- Billability update
- Timesheet plan and completion tracking
"""
import logging
import secrets
import string
import time
from collections import namedtuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm.attributes import flag_modified

from advisory_hub.core.exceptions import InvalidInputError, NotFoundError, ValidationError
from advisory_hub.models import db
from advisory_hub.models.catalog import ServiceOffering, SubActivity
from advisory_hub.models.request import (
    DEFAULT_STATUS_TRANSITIONS,
    HISTORY_BILLABILITY_CHANGED,
    HISTORY_CREATED,
    HISTORY_TIMESHEET_UPDATED,
    STATUS_NEW,
    TERMINAL_STATUSES,
    AdvisoryRequest,
    RequestHistory,
    StatusTransition,
)
from advisory_hub.models.team import ADVISORY_TITLES, Consultant, UserProfile
from advisory_hub.services.assignment_engine import assign
from advisory_hub.services.estimation import billable_assignment_days, selected_sub_activities
from advisory_hub.services.notification import NotificationService
from advisory_hub.services.permission import Actor
from advisory_hub.services.timesheet import (
    completion_stats,
    daily_limit_for,
    distribute,
    is_completed,
    merge_completion,
    plan_to_dict,
)

logger = logging.getLogger(__name__)

TransitionRule = namedtuple("TransitionRule", "from_status to_status role_required")

_ID_ALPHABET = string.digits + string.ascii_uppercase


# ── Store lookups ────────────────────────────────────────────────────────


def list_active_consultants():
    """Active consultants in a stable order (first-created first)."""
    return (
        Consultant.query
        .filter_by(is_active=True)
        .order_by(Consultant.created_at, Consultant.id)
        .all()
    )


def count_open_requests_by_assignee(consultant_ids, statuses=None):
    """Open (non-terminal) request count per consultant id.

    Args:
        consultant_ids: ids to count for; ids with no requests are reported as 0.
        statuses: optional whitelist, e.g. the statuses a role is responsible for.
    """
    ids = list(consultant_ids or [])
    if not ids:
        return {}
    q = (
        db.session.query(AdvisoryRequest.assignee_id, func.count(AdvisoryRequest.id))
        .filter(AdvisoryRequest.assignee_id.in_(ids))
        .filter(AdvisoryRequest.status.notin_(TERMINAL_STATUSES))
    )
    if statuses is not None:
        q = q.filter(AdvisoryRequest.status.in_(list(statuses)))
    counts = dict(q.group_by(AdvisoryRequest.assignee_id).all())
    return {cid: counts.get(cid, 0) for cid in ids}


def get_status_transition_rules():
    """All workflow edges as ``TransitionRule`` tuples.

    Falls back to the built-in defaults while the table is still empty.
    """
    rows = StatusTransition.query.all()
    if not rows:
        logger.warning("status_transitions is empty; using built-in default workflow")
        return [TransitionRule(*t) for t in DEFAULT_STATUS_TRANSITIONS]
    return [TransitionRule(r.from_status, r.to_status, r.role_required) for r in rows]


def get_request(request_id, *, for_update=False):
    """Look a request up by UUID or human-readable ``request_id``."""
    q = AdvisoryRequest.query
    if for_update:
        q = q.with_for_update()
    req = q.filter(AdvisoryRequest.id == request_id).first()
    if req is None:
        req = q.filter(AdvisoryRequest.request_id == request_id).first()
    return req


def get_current_user_role_and_title(user_id):
    """Resolve the acting user into an ``Actor`` (role from profile, title from team)."""
    if not user_id:
        return Actor(user_id=None)
    profile = UserProfile.query.filter_by(user_id=user_id).first()
    consultant = (
        Consultant.query
        .filter_by(user_id=user_id)
        .order_by(Consultant.is_active.desc())
        .first()
    )
    return Actor(
        user_id=user_id,
        role=profile.role if profile else None,
        title=consultant.title if consultant else None,
        consultant_id=consultant.id if consultant else None,
        advisory_services=tuple(consultant.advisory_services or []) if consultant else (),
    )


# ── Responsibility ───────────────────────────────────────────────────────


def responsible_role(status, rules):
    """Advisory title that works a request in ``status``.

    Taken from the roles of the status's outgoing rules; statuses whose only
    outgoing rules belong to the requestor (or that have none) return None.
    """
    roles = [r.role_required for r in rules if r.from_status == status and r.role_required in ADVISORY_TITLES]
    if not roles:
        return None
    # Most specific first: Head, then Lead, then Consultant
    for title in reversed(ADVISORY_TITLES):
        if title in roles:
            return title
    return None


def statuses_for_role(role, rules):
    """Non-terminal statuses whose responsible role is ``role``."""
    from_statuses = {r.from_status for r in rules}
    return {s for s in from_statuses if s not in TERMINAL_STATUSES and responsible_role(s, rules) == role}


def resolve_expertise(service_ids, selected_tools):
    """Map selected offering ids to names; unknown entries are kept verbatim."""
    tools = [t for t in (selected_tools or []) if t]
    if not tools:
        return []
    offerings = {
        o.id: o.name
        for o in ServiceOffering.query.filter(ServiceOffering.id.in_(tools)).all()
    }
    return [offerings.get(t, t) for t in tools]


def pick_assignee(request, role, rules, *, pool=None):
    """Run the assignment engine for ``request`` with role-aware loads."""
    pool = list_active_consultants() if pool is None else pool
    statuses = statuses_for_role(role, rules) if role else None
    loads = count_open_requests_by_assignee([c.id for c in pool], statuses=statuses)
    expertise = resolve_expertise(request.advisory_services, request.selected_tools)
    return assign(request.advisory_services or [], expertise, pool, loads, role=role)


def apply_assignee(request, consultant):
    """Point the request at ``consultant``; the first assignee is remembered."""
    request.assignee_id = consultant.id
    request.current_assignee_name = consultant.name
    if not request.original_assignee_id:
        request.original_assignee_id = consultant.id
        request.original_assignee_name = consultant.name


# ── Submission ───────────────────────────────────────────────────────────


def _to_base36(number):
    out = ""
    while True:
        number, rem = divmod(number, 36)
        out = _ID_ALPHABET[rem] + out
        if number == 0:
            return out


def generate_request_id(service_id):
    """Human-readable id: service initials, base36 timestamp, random suffix.

    e.g. ``eng-excellence`` → ``EE-LZ3K1Q8F-A7F``
    """
    initials = "".join(p[0] for p in str(service_id or "").replace("_", "-").split("-") if p)
    prefix = (initials or "REQ").upper()
    while True:
        stamp = _to_base36(int(time.time() * 1000))
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(3))
        candidate = f"{prefix}-{stamp}-{suffix}"
        if not AdvisoryRequest.query.filter_by(request_id=candidate).first():
            return candidate


def _iter_requirements(per_service_requirements):
    if isinstance(per_service_requirements, dict):
        for service_id, req in per_service_requirements.items():
            yield service_id, dict(req or {})
    else:
        for req in per_service_requirements or []:
            req = dict(req or {})
            service_id = req.get("advisory_service_id") or req.get("service_id")
            yield service_id, req


def submit_new_request(project_data, per_service_requirements, requestor_id):
    """Create one request per advisory service, each auto-assigned.

    A request for which no consultant can be found stays unassigned.

    Args:
        project_data: shared project details (name, description, ...)
        per_service_requirements: ``{service_id: requirement}`` or a list of
            requirements carrying ``advisory_service_id``
        requestor_id: submitting user

    Returns:
        list of AdvisoryRequest (flushed, not committed).

    Raises:
        InvalidInputError: no service, or a requirement without a service id.
    """
    requirements = list(_iter_requirements(per_service_requirements))
    if not requirements:
        raise InvalidInputError("At least one advisory service is required")

    rules = get_status_transition_rules()
    role = responsible_role(STATUS_NEW, rules)
    pool = list_active_consultants()
    created = []

    for service_id, req in requirements:
        if not service_id:
            raise InvalidInputError(
                "advisory_service_id is required for every requirement",
                details={"requirement": req},
            )
        tools = req.pop("selected_tools", None) or req.pop("selected_offerings", None) or []
        request = AdvisoryRequest(
            request_id=generate_request_id(service_id),
            status=STATUS_NEW,
            advisory_services=[service_id],
            selected_tools=list(tools),
            requestor_id=requestor_id,
            project_data=dict(project_data or {}),
            service_specific_data=req,
            description=req.get("requirement_details") or (project_data or {}).get("description"),
        )
        db.session.add(request)
        db.session.flush()

        picked = pick_assignee(request, role, rules, pool=pool)
        if picked is not None:
            apply_assignee(request, picked.consultant)
            logger.info(
                "Request %s assigned to %s (%s, load=%d)",
                request.request_id, picked.consultant_id, picked.strategy, picked.load,
            )
        else:
            logger.warning("Request %s left unassigned: no consultant for %s", request.request_id, service_id)

        RequestHistory.append(
            request_id=request.id,
            action=HISTORY_CREATED,
            new_value=STATUS_NEW,
            performed_by=requestor_id,
        )
        NotificationService.notify_submitted(request)
        created.append(request)

    db.session.flush()
    return created


# ── Billability ──────────────────────────────────────────────────────────


def set_billability(request_id, billability_percentage, allocation_percentage=None, *, performed_by=None):
    """Set the billability (and optional allocation label) of a request.

    Raises:
        NotFoundError, InvalidInputError (pct not in (0, 100]),
        ValidationError (terminal request)
    """
    req = get_request(request_id, for_update=True)
    if req is None:
        raise NotFoundError("Request", request_id)
    try:
        pct = float(billability_percentage)
    except (TypeError, ValueError):
        raise InvalidInputError(
            "billability_percentage must be a number",
            details={"billability_percentage": billability_percentage},
        ) from None
    if not 0 < pct <= 100:
        raise InvalidInputError(
            "billability_percentage must be between 0 (exclusive) and 100",
            details={"billability_percentage": billability_percentage},
        )
    if req.is_terminal:
        raise ValidationError(f"Request {req.request_id} is {req.status} and can no longer be changed")

    previous = req.billability_percentage
    req.billability_percentage = pct
    if allocation_percentage is not None:
        req.allocation_percentage = str(allocation_percentage)
    db.session.flush()
    if previous != pct:
        RequestHistory.append(
            request_id=req.id, action=HISTORY_BILLABILITY_CHANGED,
            old_value=None if previous is None else f"{previous:g}%", new_value=f"{pct:g}%",
            performed_by=performed_by,
        )
    return req


# ── Timesheet ────────────────────────────────────────────────────────────


def _timesheet_sub_activities(request):
    subs = selected_sub_activities(
        request.selected_activities, request.service_offering_activities, include_unknown=True,
    )
    for sub in subs:
        if sub["estimated_hours"] is None:
            row = db.session.get(SubActivity, sub["id"])
            sub["estimated_hours"] = row.estimated_hours if row else None
            if row and not sub["name"]:
                sub["name"] = row.name
    return [s for s in subs if s["estimated_hours"]]


def get_timesheet_plan(request, billability_percentage=None):
    """Day-by-day plan of the request's sub-activities with completion flags.

    Billability comes from the argument, then the request, then
    ``DEFAULT_BILLABILITY_PERCENTAGE``.

    Raises:
        InvalidInputError: the effective billability is not positive.
    """
    pct = billability_percentage
    if pct is None:
        pct = request.billability_percentage
    if pct is None:
        pct = current_app.config.get("DEFAULT_BILLABILITY_PERCENTAGE", 100)
    daily_hours = current_app.config.get("DAILY_WORK_HOURS", 8)

    subs = _timesheet_sub_activities(request)
    days = distribute(subs, pct, daily_work_hours=daily_hours)
    completed = (request.timesheet_data or {}).get("completed") or {}

    plan = plan_to_dict(days)
    for day, entries in zip(plan, days):
        for item, entry in zip(day["activities"], entries):
            item["completed"] = is_completed(entry, completed)

    total_hours = sum(s["estimated_hours"] for s in subs)
    return {
        "request_id": request.id,
        "billability_percentage": pct,
        "daily_limit": daily_limit_for(pct, daily_hours),
        "billable_days": billable_assignment_days(total_hours, pct),
        "days": plan,
        "stats": completion_stats(days, request.timesheet_data),
        "last_updated": (request.timesheet_data or {}).get("lastUpdated"),
    }


def update_timesheet_completion(request_id, updates, *, performed_by=None):
    """Merge ``{unique_key: bool}`` into the request's completion map.

    Keys are merged one by one; keys not in ``updates`` are left untouched.
    One history row records the keys marked done and undone.
    """
    if not isinstance(updates, dict) or not updates:
        raise InvalidInputError("At least one unique_key → completed entry is required")
    if any(not k for k in updates):
        raise InvalidInputError("unique_key must not be empty")

    req = get_request(request_id, for_update=True)
    if req is None:
        raise NotFoundError("Request", request_id)

    req.timesheet_data = merge_completion(req.timesheet_data, updates)
    flag_modified(req, "timesheet_data")
    db.session.flush()

    done = sorted(k for k, v in updates.items() if v)
    undone = sorted(k for k, v in updates.items() if not v)
    summary = "; ".join(
        part for part in (
            f"completed: {', '.join(done)}" if done else "",
            f"reopened: {', '.join(undone)}" if undone else "",
        ) if part
    )
    RequestHistory.append(
        request_id=req.id, action=HISTORY_TIMESHEET_UPDATED, new_value=summary, performed_by=performed_by,
    )
    return req
