"""
Request lifecycle tests: transition validation, permissions, readiness,
re-assignment on responsible-role change, estimation freeze and the
optimistic lock.
"""

from sqlalchemy import text

from advisory_hub.core.results import WorkflowError
from advisory_hub.models import db
from advisory_hub.models.notification import Notification
from advisory_hub.models.request import AdvisoryRequest, RequestHistory
from advisory_hub.models.team import TITLE_CONSULTANT, TITLE_SERVICE_LEAD
from advisory_hub.services.permission import Actor
from advisory_hub.services.request_lifecycle import get_available_transitions, transition_request

ADMIN = "admin-1"


def _selection(activity_hours=5, sub_hours=3):
    return {
        "activities": {"x": {"selected": True, "name": "Assess", "estimated_hours": activity_hours}},
        "subActivities": {"y": {"selected": True, "name": "Interview", "estimated_hours": sub_hours}},
    }


def _history(req):
    return RequestHistory.query.filter_by(request_id=req.id).all()


def _reload(req):
    db.session.expire_all()
    return db.session.get(AdvisoryRequest, req.id)


# ═════════════════════════════════════════════════════════════════════════════
# Happy path with re-assignment and freeze
# ═════════════════════════════════════════════════════════════════════════════


class TestEstimationToReview:
    def test_reassigns_to_least_loaded_lead_and_freezes(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        consultant = factories.consultant("Cara", rate=100.0)
        busy_lead = factories.consultant("Lee One", title=TITLE_SERVICE_LEAD, rate=150.0)
        idle_lead = factories.consultant("Lee Two", title=TITLE_SERVICE_LEAD, rate=150.0)
        factories.request(status="Review", assignee=busy_lead)
        factories.request(status="Review", assignee=busy_lead)
        req = factories.request(status="Estimation", assignee=consultant, selected_activities=_selection())

        result = transition_request(req.request_id, "Review", ADMIN)

        assert result.success, result.message
        assert result.reassigned is True
        req = _reload(req)
        assert req.status == "Review"
        assert req.assignee_id == idle_lead.id
        assert req.current_assignee_name == "Lee Two"
        assert req.original_assignee_id == consultant.id
        assert req.saved_total_hours == 8
        assert req.saved_total_pd_estimate == 1.0
        assert req.saved_total_cost == 800
        assert req.saved_assignee_rate == 100
        assert req.saved_assignee_role == TITLE_CONSULTANT
        assert req.estimation_saved_at is not None

        actions = sorted(h.action for h in _history(req))
        assert actions == ["Assignee changed", "Estimation frozen", "Status changed"]
        changed = RequestHistory.query.filter_by(request_id=req.id, action="Assignee changed").one()
        assert (changed.old_value, changed.new_value) == ("Cara", "Lee Two")

    def test_lookup_by_uuid(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        consultant = factories.consultant("Cara")
        req = factories.request(status="New", assignee=consultant)
        result = transition_request(req.id, "Under Discussion", ADMIN)
        assert result.success
        assert result.reassigned is False
        assert result.details["from_status"] == "New"

    def test_freeze_survives_a_round_trip(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        consultant = factories.consultant("Cara", rate=100.0)
        lead = factories.consultant("Lee", title=TITLE_SERVICE_LEAD, rate=150.0)
        req = factories.request(status="Estimation", assignee=consultant, selected_activities=_selection())

        assert transition_request(req.request_id, "Review", ADMIN).success
        assert _reload(req).assignee_id == lead.id

        assert transition_request(req.request_id, "Estimation", ADMIN).success
        req = _reload(req)
        req.selected_activities = _selection(activity_hours=40)
        db.session.commit()

        assert transition_request(req.request_id, "Review", ADMIN).success
        req = _reload(req)
        assert req.saved_total_hours == 8
        assert req.saved_total_cost == 800
        frozen_rows = RequestHistory.query.filter_by(request_id=req.id, action="Estimation frozen").count()
        assert frozen_rows == 1

    def test_implementing_sets_start_date(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        consultant = factories.consultant("Cara")
        req = factories.request(status="Approved", assignee=consultant)
        assert transition_request(req.request_id, "Implementing", ADMIN).success
        assert _reload(req).implementation_start_date is not None

    def test_events_recorded(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        consultant = factories.consultant("Cara")
        req = factories.request(status="New", assignee=consultant, requestor_id="req-7")
        assert transition_request(req.request_id, "Estimation", ADMIN).success
        events = Notification.query.filter_by(entity_id=req.id, event="request.transitioned").all()
        assert {n.recipient for n in events} == {"req-7", consultant.id}


# ═════════════════════════════════════════════════════════════════════════════
# Rejections
# ═════════════════════════════════════════════════════════════════════════════


class TestRejectedTransitions:
    def test_no_rule_from_terminal_status(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        req = factories.request(status="Implemented")
        result = transition_request(req.request_id, "Estimation", ADMIN)
        assert not result.success
        assert result.error == WorkflowError.INVALID_TRANSITION
        req = _reload(req)
        assert req.status == "Implemented"
        assert _history(req) == []

    def test_unknown_request(self, transitions):
        result = transition_request("does-not-exist", "Review", ADMIN)
        assert result.error == WorkflowError.NOT_FOUND

    def test_forbidden_for_standard_user(self, transitions, factories):
        factories.profile("u-1", role="Standard User")
        req = factories.request(status="New")
        result = transition_request(req.request_id, "Estimation", "u-1")
        assert result.error == WorkflowError.FORBIDDEN
        assert _reload(req).status == "New"

    def test_forbidden_for_unknown_user(self, transitions, factories):
        req = factories.request(status="New")
        result = transition_request(req.request_id, "Estimation", "nobody")
        assert result.error == WorkflowError.FORBIDDEN

    def test_no_assignee_available_leaves_request_untouched(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        consultant = factories.consultant("Cara")
        req = factories.request(status="Estimation", assignee=consultant, selected_activities=_selection())

        result = transition_request(req.request_id, "Review", ADMIN)

        assert result.error == WorkflowError.NO_ASSIGNEE_AVAILABLE
        req = _reload(req)
        assert req.status == "Estimation"
        assert req.assignee_id == consultant.id
        assert req.estimation_saved_at is None
        assert req.version == 1
        assert _history(req) == []
        assert Notification.query.filter_by(entity_id=req.id).count() == 0

    def test_review_requires_selected_activities(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        factories.consultant("Lee", title=TITLE_SERVICE_LEAD)
        req = factories.request(status="Estimation", assignee=factories.consultant("Cara"))
        result = transition_request(req.request_id, "Review", ADMIN)
        assert result.error == WorkflowError.INVALID_INPUT
        assert _reload(req).status == "Estimation"

    def test_approval_requires_billability(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        lead = factories.consultant("Lee", title=TITLE_SERVICE_LEAD)
        req = factories.request(status="Review", assignee=lead, selected_activities=_selection())
        result = transition_request(req.request_id, "Approval", ADMIN)
        assert result.error == WorkflowError.INVALID_INPUT

    def test_expected_version_mismatch(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        req = factories.request(status="New", assignee=factories.consultant("Cara"))
        result = transition_request(req.request_id, "Estimation", ADMIN, expected_version=99)
        assert result.error == WorkflowError.CONCURRENT_MODIFICATION
        assert result.details["current_version"] == 1

    def test_concurrent_write_detected_at_flush(self, transitions, factories):
        factories.profile(ADMIN, role="Admin")
        req = factories.request(status="New", assignee=factories.consultant("Cara"))
        req_pk = req.id
        assert req.version == 1
        # Another writer bumps the row behind the session's back
        db.session.execute(text("UPDATE requests SET version = version + 1 WHERE id = :id"), {"id": req_pk})

        result = transition_request(req.request_id, "Estimation", ADMIN)

        assert result.error == WorkflowError.CONCURRENT_MODIFICATION
        db.session.expire_all()
        assert db.session.get(AdvisoryRequest, req_pk).status == "New"


# ═════════════════════════════════════════════════════════════════════════════
# Role aliasing
# ═════════════════════════════════════════════════════════════════════════════


class TestRoleResolution:
    def test_standard_user_acts_as_requestor(self, transitions, factories):
        factories.profile("u-1", role="Standard User")
        req = factories.request(status="New", assignee=factories.consultant("Cara"), requestor_id="u-1")
        result = transition_request(req.request_id, "Cancelled", "u-1")
        assert result.success
        assert _reload(req).status == "Cancelled"

    def test_consultant_title_without_profile(self, transitions, factories):
        consultant = factories.consultant("Cara", user_id="u-cara")
        req = factories.request(status="New", assignee=consultant)
        assert transition_request(req.request_id, "Under Discussion", "u-cara").success

    def test_empty_rule_table_uses_defaults(self, factories):
        factories.profile(ADMIN, role="Admin")
        req = factories.request(status="New", assignee=factories.consultant("Cara"))
        assert transition_request(req.request_id, "Estimation", ADMIN).success


class TestAvailableTransitions:
    def test_consultant_options_from_new(self, transitions, factories):
        req = factories.request(status="New")
        actor = Actor(user_id="u-1", title=TITLE_CONSULTANT)
        targets = {t["to_status"] for t in get_available_transitions(req, actor)}
        assert targets == {"Under Discussion", "Estimation", "On Hold", "Reject"}

    def test_requestor_can_only_cancel(self, transitions, factories):
        req = factories.request(status="New")
        actor = Actor(user_id="u-1", role="Standard User")
        assert get_available_transitions(req, actor) == [
            {"to_status": "Cancelled", "role_required": "Requestor"},
        ]

    def test_admin_sees_everything(self, transitions, factories):
        req = factories.request(status="Review")
        actor = Actor(user_id=ADMIN, role="Admin")
        targets = {t["to_status"] for t in get_available_transitions(req, actor)}
        assert targets == {"Approval", "Pending Review", "Pending Review by Advisory Head", "Estimation"}

    def test_terminal_has_none(self, transitions, factories):
        req = factories.request(status="Cancelled")
        assert get_available_transitions(req, Actor(user_id=ADMIN, role="Admin")) == []
