"""
Advisory Request Hub — Request Lifecycle Service

Moves requests through the status workflow with:
  - Transition validation against the status_transitions rules
  - Role checks (ROLE_SATISFIES aliasing, Admin override)
  - Readiness guards (activities before Review, billability before Approval)
  - Re-assignment when the responsible role of the new status changes
  - Side effects (implementation start date, estimation freeze on Review)
  - Audit trail via RequestHistory and Notification rows

Each operation runs in one transaction: the request row is locked
(SELECT … FOR UPDATE) and versioned, and everything is committed together or
rolled back together.  Business outcomes come back as ``TransitionResult``;
only infrastructure errors raise.

Usage:
    from advisory_hub.services.request_lifecycle import transition_request

    result = transition_request("EE-LZ3K1Q8F-A7F", "Review", acting_user_id="u-1")
    if not result.success:
        ...  # result.error is a WorkflowError
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from advisory_hub.core.results import TransitionResult, WorkflowError
from advisory_hub.models import db
from advisory_hub.models.request import (
    HISTORY_ASSIGNEE_CHANGED,
    HISTORY_ESTIMATION_FROZEN,
    HISTORY_STATUS_CHANGED,
    STATUS_APPROVAL,
    STATUS_IMPLEMENTING,
    STATUS_REVIEW,
    TERMINAL_STATUSES,
    RequestHistory,
)
from advisory_hub.models.team import Consultant
from advisory_hub.services.estimation import live_estimation, normalize_selection
from advisory_hub.services.notification import NotificationService
from advisory_hub.services.permission import can_reassign, can_trigger
from advisory_hub.services.request_service import (
    apply_assignee,
    get_current_user_role_and_title,
    get_request,
    get_status_transition_rules,
    pick_assignee,
    responsible_role,
)

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def _version_conflict(req, expected_version):
    if expected_version is None:
        return False
    try:
        return int(expected_version) != req.version
    except (TypeError, ValueError):
        return True


def _fail(error, message=None, **details):
    # Release the row lock and drop anything the check may have loaded
    db.session.rollback()
    return TransitionResult.fail(error, message, **details)


def get_available_transitions(request, actor, rules=None):
    """
    Outgoing statuses ``actor`` may trigger from the request's current status.

    Returns:
        [{"to_status": str, "role_required": str}, ...] in rule order,
        one entry per target status.
    """
    rules = rules if rules is not None else get_status_transition_rules()
    seen = set()
    available = []
    for rule in rules:
        if rule.from_status != request.status or rule.to_status in seen:
            continue
        if can_trigger(actor, rule.role_required):
            seen.add(rule.to_status)
            available.append({"to_status": rule.to_status, "role_required": rule.role_required})
    return available


def check_readiness(request, to_status):
    """Return an error message when the request is not ready for ``to_status``."""
    if to_status == STATUS_REVIEW:
        if not normalize_selection(request.selected_activities, request.service_offering_activities):
            return "Select at least one activity before sending the request to Review."
    if to_status == STATUS_APPROVAL:
        if not request.billability_percentage or request.billability_percentage <= 0:
            return "Set the billability percentage before sending the request to Approval."
    return None


def _freeze_estimation(request, estimator, now):
    """Snapshot hours / PD / cost at the estimating consultant's rate."""
    est = live_estimation(request, estimator)
    request.saved_total_hours = est["hours"]
    request.saved_total_pd_estimate = est["pd"]
    request.saved_total_cost = est["cost"]
    request.saved_assignee_rate = est["rate"]
    request.saved_assignee_role = est["role"]
    request.estimation_saved_at = now
    return est


def transition_request(request_id, to_status, acting_user_id, *, expected_version=None):
    """
    Execute a request status transition.

    Args:
        request_id: UUID or human-readable id of the request
        to_status: target status
        acting_user_id: who performs the transition
        expected_version: optional optimistic-lock check against ``version``

    Returns:
        TransitionResult.  Failure kinds: NotFound, ConcurrentModification,
        InvalidTransition, Forbidden, InvalidInput, NoAssigneeAvailable.

    Raises:
        SQLAlchemyError: database faults, after rolling back.
    """
    try:
        return _transition(request_id, to_status, acting_user_id, expected_version)
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent update on request %s during transition to %s", request_id, to_status)
        return TransitionResult.fail(WorkflowError.CONCURRENT_MODIFICATION)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Transition of request %s to %s failed", request_id, to_status)
        raise


def _transition(request_id, to_status, acting_user_id, expected_version):
    req = get_request(request_id, for_update=True)
    if req is None:
        return _fail(WorkflowError.NOT_FOUND, request_id=request_id)

    if _version_conflict(req, expected_version):
        current_version = req.version
        return _fail(WorkflowError.CONCURRENT_MODIFICATION,
                     expected_version=expected_version, current_version=current_version)

    # 1. Rule lookup
    rules = get_status_transition_rules()
    from_status = req.status
    matching = [r for r in rules if r.from_status == from_status and r.to_status == to_status]
    if not matching:
        logger.info("Rejected transition %s: %s → %s (no rule)", req.request_id, from_status, to_status)
        return _fail(
            WorkflowError.INVALID_TRANSITION,
            f"Cannot move a request from '{from_status}' to '{to_status}'.",
            from_status=from_status, to_status=to_status,
        )

    # 2. Permission
    actor = get_current_user_role_and_title(acting_user_id)
    roles_required = [r.role_required for r in matching]
    if not can_trigger(actor, roles_required):
        logger.info(
            "Forbidden transition %s: %s → %s by %s (role=%s, title=%s)",
            req.request_id, from_status, to_status, acting_user_id, actor.role, actor.title,
        )
        return _fail(WorkflowError.FORBIDDEN, roles_required=roles_required)

    # 3. Readiness
    not_ready = check_readiness(req, to_status)
    if not_ready:
        return _fail(WorkflowError.INVALID_INPUT, not_ready, to_status=to_status)

    # 4. Responsible role → assignee
    estimator = req.assignee
    old_assignee_id = req.assignee_id
    old_assignee_name = req.current_assignee_name
    new_assignee = None
    if to_status not in TERMINAL_STATUSES:
        role = responsible_role(to_status, rules)
        if role and (estimator is None or estimator.title != role):
            picked = pick_assignee(req, role, rules)
            if picked is None:
                logger.warning(
                    "No %s available for request %s (services=%s)",
                    role, req.request_id, req.advisory_services,
                )
                return _fail(WorkflowError.NO_ASSIGNEE_AVAILABLE, role=role)
            if picked.consultant_id != old_assignee_id:
                new_assignee = picked.consultant

    # 5. Apply
    now = _utcnow()
    frozen = None
    if to_status == STATUS_REVIEW and not req.is_estimation_frozen:
        frozen = _freeze_estimation(req, estimator, now)

    req.status = to_status
    if to_status == STATUS_IMPLEMENTING and req.implementation_start_date is None:
        req.implementation_start_date = now
    if new_assignee is not None:
        apply_assignee(req, new_assignee)
    db.session.flush()

    # 6. Audit trail
    RequestHistory.append(
        request_id=req.id, action=HISTORY_STATUS_CHANGED,
        old_value=from_status, new_value=to_status,
        performed_by=acting_user_id, performed_at=now,
    )
    if new_assignee is not None:
        RequestHistory.append(
            request_id=req.id, action=HISTORY_ASSIGNEE_CHANGED,
            old_value=old_assignee_name, new_value=new_assignee.name,
            performed_by=acting_user_id, performed_at=now,
        )
    if frozen is not None:
        RequestHistory.append(
            request_id=req.id, action=HISTORY_ESTIMATION_FROZEN,
            new_value=f"{frozen['hours']:g} h / {frozen['pd']:g} PD / {frozen['cost']:g}",
            performed_by=acting_user_id, performed_at=now,
        )

    NotificationService.notify_transitioned(req, from_status, to_status, acting_user_id)
    if new_assignee is not None:
        NotificationService.notify_reassigned(req, old_assignee_id, new_assignee.id, acting_user_id)
    if frozen is not None:
        NotificationService.notify_estimation_frozen(req)

    db.session.commit()

    logger.info(
        "Request %s: %s → %s by %s%s",
        req.request_id, from_status, to_status, acting_user_id,
        f" (reassigned to {new_assignee.id})" if new_assignee is not None else "",
        extra={
            "advisory_request": req.request_id,
            "user_id": acting_user_id,
            "from_status": from_status,
            "to_status": to_status,
        },
    )
    return TransitionResult.ok(
        req,
        f"Status changed to {to_status}",
        reassigned=new_assignee is not None,
        from_status=from_status,
        to_status=to_status,
        assignee_id=req.assignee_id,
    )


def reassign_request(request_id, new_assignee_id, acting_user_id, *, expected_version=None):
    """
    Manually hand a request to another consultant, bypassing the engine.

    Allowed for Admins and for an Advisory Service Head serving the
    request's service.  The target must be an active consultant.

    Returns:
        TransitionResult.  Failure kinds: NotFound, ConcurrentModification,
        Forbidden, InvalidTransition (closed request), InvalidInput (target).
    """
    try:
        return _reassign(request_id, new_assignee_id, acting_user_id, expected_version)
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent update on request %s during reassignment", request_id)
        return TransitionResult.fail(WorkflowError.CONCURRENT_MODIFICATION)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Reassignment of request %s failed", request_id)
        raise


def _reassign(request_id, new_assignee_id, acting_user_id, expected_version):
    req = get_request(request_id, for_update=True)
    if req is None:
        return _fail(WorkflowError.NOT_FOUND, request_id=request_id)

    if _version_conflict(req, expected_version):
        current_version = req.version
        return _fail(WorkflowError.CONCURRENT_MODIFICATION,
                     expected_version=expected_version, current_version=current_version)

    actor = get_current_user_role_and_title(acting_user_id)
    if not can_reassign(actor, req.advisory_services):
        return _fail(WorkflowError.FORBIDDEN, "Only an Admin or the Advisory Service Head can reassign requests.")

    if req.is_terminal:
        status = req.status
        return _fail(WorkflowError.INVALID_TRANSITION, f"A {status} request cannot be reassigned.")

    target = db.session.get(Consultant, new_assignee_id) if new_assignee_id else None
    if target is None or not target.is_active:
        return _fail(
            WorkflowError.INVALID_INPUT,
            "The new assignee must be an active consultant.",
            new_assignee_id=new_assignee_id,
        )

    if target.id == req.assignee_id:
        db.session.rollback()
        req = get_request(request_id)
        return TransitionResult.ok(req, f"Request is already assigned to {target.name}")

    now = _utcnow()
    old_assignee_id = req.assignee_id
    old_assignee_name = req.current_assignee_name
    apply_assignee(req, target)
    db.session.flush()

    RequestHistory.append(
        request_id=req.id, action=HISTORY_ASSIGNEE_CHANGED,
        old_value=old_assignee_name, new_value=target.name,
        performed_by=acting_user_id, performed_at=now,
    )
    NotificationService.notify_reassigned(req, old_assignee_id, target.id, acting_user_id)
    db.session.commit()

    logger.info("Request %s reassigned %s → %s by %s", req.request_id, old_assignee_id, target.id, acting_user_id)
    return TransitionResult.ok(
        req, f"Request assigned to {target.name}", reassigned=True, assignee_id=target.id,
    )
