"""
Advisory Request Hub
Request domain models.

Models:
    - AdvisoryRequest: the central request record (status, assignee, estimation)
    - StatusTransition: allowed (from, to, role_required) edges of the workflow
    - RequestHistory: immutable, append-only audit trail per request
"""

import uuid
from datetime import datetime, timezone

from advisory_hub.models import db
from advisory_hub.models.team import (
    TITLE_CONSULTANT,
    TITLE_SERVICE_HEAD,
    TITLE_SERVICE_LEAD,
)


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Status constants ─────────────────────────────────────────────────────────

STATUS_NEW = "New"
STATUS_UNDER_DISCUSSION = "Under Discussion"
STATUS_ESTIMATION = "Estimation"
STATUS_REVIEW = "Review"
STATUS_PENDING_REVIEW = "Pending Review"
STATUS_PENDING_HEAD_REVIEW = "Pending Review by Advisory Head"
STATUS_APPROVAL = "Approval"
STATUS_APPROVED = "Approved"
STATUS_IMPLEMENTING = "Implementing"
STATUS_AWAITING_FEEDBACK = "Awaiting Feedback"
STATUS_FEEDBACK_RECEIVED = "Feedback Received"
STATUS_IMPLEMENTED = "Implemented"
STATUS_ON_HOLD = "On Hold"
STATUS_CANCELLED = "Cancelled"
STATUS_REJECT = "Reject"

REQUEST_STATUSES = (
    STATUS_NEW,
    STATUS_UNDER_DISCUSSION,
    STATUS_ESTIMATION,
    STATUS_REVIEW,
    STATUS_PENDING_REVIEW,
    STATUS_PENDING_HEAD_REVIEW,
    STATUS_APPROVAL,
    STATUS_APPROVED,
    STATUS_IMPLEMENTING,
    STATUS_AWAITING_FEEDBACK,
    STATUS_FEEDBACK_RECEIVED,
    STATUS_IMPLEMENTED,
    STATUS_ON_HOLD,
    STATUS_CANCELLED,
    STATUS_REJECT,
)

TERMINAL_STATUSES = frozenset({STATUS_IMPLEMENTED, STATUS_CANCELLED, STATUS_REJECT})

ROLE_ADMIN = "Admin"
ROLE_REQUESTOR = "Requestor"
ROLE_STANDARD_USER = "Standard User"

_C, _L, _H, _R = TITLE_CONSULTANT, TITLE_SERVICE_LEAD, TITLE_SERVICE_HEAD, ROLE_REQUESTOR

# Seeded into status_transitions by `flask seed-status-transitions`.
# Terminal statuses have no outgoing edges.
DEFAULT_STATUS_TRANSITIONS = [
    (STATUS_NEW, STATUS_UNDER_DISCUSSION, _C),
    (STATUS_NEW, STATUS_ESTIMATION, _C),
    (STATUS_NEW, STATUS_ON_HOLD, _C),
    (STATUS_NEW, STATUS_REJECT, _C),
    (STATUS_NEW, STATUS_CANCELLED, _R),
    (STATUS_UNDER_DISCUSSION, STATUS_ESTIMATION, _C),
    (STATUS_UNDER_DISCUSSION, STATUS_ON_HOLD, _C),
    (STATUS_UNDER_DISCUSSION, STATUS_REJECT, _C),
    (STATUS_UNDER_DISCUSSION, STATUS_CANCELLED, _R),
    (STATUS_ESTIMATION, STATUS_REVIEW, _C),
    (STATUS_ESTIMATION, STATUS_UNDER_DISCUSSION, _C),
    (STATUS_ESTIMATION, STATUS_ON_HOLD, _C),
    (STATUS_ESTIMATION, STATUS_CANCELLED, _R),
    (STATUS_REVIEW, STATUS_APPROVAL, _L),
    (STATUS_REVIEW, STATUS_PENDING_REVIEW, _L),
    (STATUS_REVIEW, STATUS_PENDING_HEAD_REVIEW, _L),
    (STATUS_REVIEW, STATUS_ESTIMATION, _L),
    (STATUS_PENDING_REVIEW, STATUS_REVIEW, _L),
    (STATUS_PENDING_REVIEW, STATUS_ESTIMATION, _L),
    (STATUS_PENDING_HEAD_REVIEW, STATUS_APPROVAL, _H),
    (STATUS_PENDING_HEAD_REVIEW, STATUS_ESTIMATION, _H),
    (STATUS_PENDING_HEAD_REVIEW, STATUS_REJECT, _H),
    (STATUS_APPROVAL, STATUS_APPROVED, _C),
    (STATUS_APPROVAL, STATUS_ESTIMATION, _C),
    (STATUS_APPROVAL, STATUS_REJECT, _C),
    (STATUS_APPROVAL, STATUS_CANCELLED, _R),
    (STATUS_APPROVED, STATUS_IMPLEMENTING, _C),
    (STATUS_IMPLEMENTING, STATUS_AWAITING_FEEDBACK, _C),
    (STATUS_AWAITING_FEEDBACK, STATUS_FEEDBACK_RECEIVED, _R),
    (STATUS_FEEDBACK_RECEIVED, STATUS_IMPLEMENTED, _C),
    (STATUS_ON_HOLD, STATUS_UNDER_DISCUSSION, _C),
    (STATUS_ON_HOLD, STATUS_ESTIMATION, _C),
    (STATUS_ON_HOLD, STATUS_CANCELLED, _R),
]

HISTORY_STATUS_CHANGED = "Status changed"
HISTORY_ASSIGNEE_CHANGED = "Assignee changed"
HISTORY_ESTIMATION_FROZEN = "Estimation frozen"
HISTORY_CREATED = "Request created"
HISTORY_ACTIVITIES_UPDATED = "Activities updated"
HISTORY_BILLABILITY_CHANGED = "Billability changed"
HISTORY_TIMESHEET_UPDATED = "Timesheet updated"


class AdvisoryRequest(db.Model):
    """
    One advisory-service request.

    ``version`` is SQLAlchemy's optimistic-lock counter: a flush that finds
    the row at a different version raises StaleDataError.
    Once ``estimation_saved_at`` is set the ``saved_*`` columns are the
    authoritative estimate.
    """

    __tablename__ = "requests"
    __table_args__ = (
        db.Index("idx_requests_assignee_status", "assignee_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_id = db.Column(db.String(40), nullable=False, unique=True, index=True)
    status = db.Column(db.String(40), nullable=False, default=STATUS_NEW, index=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    advisory_services = db.Column(db.JSON, nullable=False, default=list)
    selected_tools = db.Column(db.JSON, nullable=False, default=list)
    requestor_id = db.Column(db.String(36), nullable=True, index=True)

    assignee_id = db.Column(
        db.String(36), db.ForeignKey("advisory_team_members.id", ondelete="SET NULL"),
        nullable=True,
    )
    current_assignee_name = db.Column(db.String(150), nullable=True)
    original_assignee_id = db.Column(
        db.String(36), db.ForeignKey("advisory_team_members.id", ondelete="SET NULL"),
        nullable=True,
    )
    original_assignee_name = db.Column(db.String(150), nullable=True)

    project_data = db.Column(db.JSON, default=dict)
    service_specific_data = db.Column(db.JSON, default=dict)
    description = db.Column(db.Text, nullable=True)

    selected_activities = db.Column(db.JSON, nullable=True)
    service_offering_activities = db.Column(db.JSON, nullable=True)
    timesheet_data = db.Column(db.JSON, nullable=True)

    # Frozen estimation snapshot
    saved_total_hours = db.Column(db.Float, nullable=True)
    saved_total_pd_estimate = db.Column(db.Float, nullable=True)
    saved_total_cost = db.Column(db.Float, nullable=True)
    saved_assignee_rate = db.Column(db.Float, nullable=True)
    saved_assignee_role = db.Column(db.String(100), nullable=True)
    estimation_saved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    billability_percentage = db.Column(db.Float, nullable=True)
    allocation_percentage = db.Column(db.String(20), nullable=True)
    implementation_start_date = db.Column(db.DateTime(timezone=True), nullable=True)

    submission_date = db.Column(db.DateTime(timezone=True), default=_utcnow)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    assignee = db.relationship("Consultant", foreign_keys=[assignee_id])
    history = db.relationship(
        "RequestHistory", backref="request", lazy="dynamic",
        order_by="RequestHistory.performed_at.desc()",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_estimation_frozen(self) -> bool:
        return self.estimation_saved_at is not None

    def to_dict(self, include_estimation=False):
        d = {
            "id": self.id,
            "request_id": self.request_id,
            "status": self.status,
            "version": self.version,
            "advisory_services": self.advisory_services or [],
            "selected_tools": self.selected_tools or [],
            "requestor_id": self.requestor_id,
            "assignee_id": self.assignee_id,
            "current_assignee_name": self.current_assignee_name,
            "original_assignee_id": self.original_assignee_id,
            "original_assignee_name": self.original_assignee_name,
            "project_data": self.project_data or {},
            "service_specific_data": self.service_specific_data or {},
            "description": self.description,
            "selected_activities": self.selected_activities,
            "service_offering_activities": self.service_offering_activities,
            "timesheet_data": self.timesheet_data,
            "billability_percentage": self.billability_percentage,
            "allocation_percentage": self.allocation_percentage,
            "implementation_start_date": (
                self.implementation_start_date.isoformat() if self.implementation_start_date else None
            ),
            "submission_date": self.submission_date.isoformat() if self.submission_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_estimation:
            d.update({
                "saved_total_hours": self.saved_total_hours,
                "saved_total_pd_estimate": self.saved_total_pd_estimate,
                "saved_total_cost": self.saved_total_cost,
                "saved_assignee_rate": self.saved_assignee_rate,
                "saved_assignee_role": self.saved_assignee_role,
                "estimation_saved_at": (
                    self.estimation_saved_at.isoformat() if self.estimation_saved_at else None
                ),
            })
        return d

    def __repr__(self):
        return f"<AdvisoryRequest {self.request_id}: {self.status}>"


class StatusTransition(db.Model):
    """One allowed edge of the request workflow and the role that may trigger it."""

    __tablename__ = "status_transitions"
    __table_args__ = (
        db.UniqueConstraint("from_status", "to_status", "role_required", name="uq_status_transition"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    from_status = db.Column(db.String(40), nullable=False, index=True)
    to_status = db.Column(db.String(40), nullable=False)
    role_required = db.Column(db.String(60), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "role_required": self.role_required,
        }

    def __repr__(self):
        return f"<StatusTransition {self.from_status} → {self.to_status} ({self.role_required})>"


def seed_default_status_transitions() -> int:
    """Insert any missing default workflow edges.  Returns the number added."""
    existing = {
        (t.from_status, t.to_status, t.role_required)
        for t in StatusTransition.query.all()
    }
    added = 0
    for from_status, to_status, role in DEFAULT_STATUS_TRANSITIONS:
        if (from_status, to_status, role) in existing:
            continue
        db.session.add(StatusTransition(
            from_status=from_status, to_status=to_status, role_required=role,
        ))
        added += 1
    db.session.flush()
    return added


class RequestHistory(db.Model):
    """
    Immutable audit trail entry.

    Rows are only ever inserted (see ``append``); nothing in the application
    updates or deletes them.
    """

    __tablename__ = "request_history"
    __table_args__ = (
        db.Index("idx_request_history_request", "request_id", "performed_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_id = db.Column(
        db.String(36), db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    action = db.Column(db.String(60), nullable=False)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    performed_by = db.Column(db.String(36), nullable=False, default="system")
    performed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    @classmethod
    def append(cls, *, request_id, action, old_value=None, new_value=None,
               performed_by="system", performed_at=None):
        """Add one history row to the current transaction.  Uses ``flush`` so
        callers keep transaction control."""
        entry = cls(
            request_id=request_id,
            action=action,
            old_value=None if old_value is None else str(old_value),
            new_value=None if new_value is None else str(new_value),
            performed_by=performed_by or "system",
            performed_at=performed_at or _utcnow(),
        )
        db.session.add(entry)
        db.session.flush()
        return entry

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "action": self.action,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "performed_by": self.performed_by,
            "performed_at": self.performed_at.isoformat() if self.performed_at else None,
        }

    def __repr__(self):
        return f"<RequestHistory {self.id}: {self.action} on {self.request_id}>"
