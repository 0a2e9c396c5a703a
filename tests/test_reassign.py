"""Manual re-assignment: who may reassign, and to whom."""

from advisory_hub.core.results import WorkflowError
from advisory_hub.models import db
from advisory_hub.models.request import AdvisoryRequest, RequestHistory
from advisory_hub.models.team import TITLE_SERVICE_HEAD
from advisory_hub.services.request_lifecycle import reassign_request

ADMIN = "admin-1"
SERVICE = "eng-excellence"


def _reload(req):
    db.session.expire_all()
    return db.session.get(AdvisoryRequest, req.id)


class TestReassign:
    def test_admin_reassigns_and_history_is_written(self, factories):
        factories.profile(ADMIN, role="Admin")
        first = factories.consultant("Cara")
        second = factories.consultant("Dev")
        req = factories.request(status="Estimation", assignee=first)

        result = reassign_request(req.request_id, second.id, ADMIN)

        assert result.success
        assert result.reassigned is True
        req = _reload(req)
        assert req.assignee_id == second.id
        assert req.current_assignee_name == "Dev"
        assert req.original_assignee_id == first.id
        row = RequestHistory.query.filter_by(request_id=req.id).one()
        assert (row.action, row.old_value, row.new_value) == ("Assignee changed", "Cara", "Dev")
        assert row.performed_by == ADMIN

    def test_same_assignee_is_a_no_op(self, factories):
        factories.profile(ADMIN, role="Admin")
        first = factories.consultant("Cara")
        req = factories.request(status="Estimation", assignee=first)
        result = reassign_request(req.request_id, first.id, ADMIN)
        assert result.success
        assert result.reassigned is False
        assert RequestHistory.query.filter_by(request_id=req.id).count() == 0

    def test_inactive_target_rejected(self, factories):
        factories.profile(ADMIN, role="Admin")
        first = factories.consultant("Cara")
        gone = factories.consultant("Old", is_active=False)
        req = factories.request(status="Estimation", assignee=first)
        result = reassign_request(req.request_id, gone.id, ADMIN)
        assert result.error == WorkflowError.INVALID_INPUT
        assert _reload(req).assignee_id == first.id

    def test_unknown_target_rejected(self, factories):
        factories.profile(ADMIN, role="Admin")
        req = factories.request(status="Estimation")
        assert reassign_request(req.request_id, "missing", ADMIN).error == WorkflowError.INVALID_INPUT

    def test_terminal_request_rejected(self, factories):
        factories.profile(ADMIN, role="Admin")
        target = factories.consultant("Dev")
        req = factories.request(status="Implemented")
        result = reassign_request(req.request_id, target.id, ADMIN)
        assert result.error == WorkflowError.INVALID_TRANSITION

    def test_standard_user_forbidden(self, factories):
        factories.profile("u-1", role="Standard User")
        target = factories.consultant("Dev")
        req = factories.request(status="Estimation")
        assert reassign_request(req.request_id, target.id, "u-1").error == WorkflowError.FORBIDDEN

    def test_head_of_the_service_may_reassign(self, factories):
        factories.consultant("Hana", title=TITLE_SERVICE_HEAD, user_id="u-head", services=[SERVICE])
        target = factories.consultant("Dev")
        req = factories.request(status="Review")
        result = reassign_request(req.request_id, target.id, "u-head")
        assert result.success
        assert _reload(req).assignee_id == target.id

    def test_head_of_another_service_forbidden(self, factories):
        factories.consultant("Hana", title=TITLE_SERVICE_HEAD, user_id="u-head", services=["data-platform"])
        target = factories.consultant("Dev")
        req = factories.request(status="Review")
        assert reassign_request(req.request_id, target.id, "u-head").error == WorkflowError.FORBIDDEN

    def test_version_mismatch(self, factories):
        factories.profile(ADMIN, role="Admin")
        target = factories.consultant("Dev")
        req = factories.request(status="Review")
        result = reassign_request(req.request_id, target.id, ADMIN, expected_version=5)
        assert result.error == WorkflowError.CONCURRENT_MODIFICATION
