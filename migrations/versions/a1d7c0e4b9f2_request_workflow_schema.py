"""request_workflow_schema

Create the advisory request workflow tables: catalog, team, profiles,
requests, status transitions (seeded with the default workflow), request
history and notifications.

Revision ID: a1d7c0e4b9f2
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

import uuid

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1d7c0e4b9f2"
down_revision = None
branch_labels = None
depends_on = None


_C = "Advisory Consultant"
_L = "Advisory Service Lead"
_H = "Advisory Service Head"
_R = "Requestor"

_DEFAULT_TRANSITIONS = [
    ("New", "Under Discussion", _C),
    ("New", "Estimation", _C),
    ("New", "On Hold", _C),
    ("New", "Reject", _C),
    ("New", "Cancelled", _R),
    ("Under Discussion", "Estimation", _C),
    ("Under Discussion", "On Hold", _C),
    ("Under Discussion", "Reject", _C),
    ("Under Discussion", "Cancelled", _R),
    ("Estimation", "Review", _C),
    ("Estimation", "Under Discussion", _C),
    ("Estimation", "On Hold", _C),
    ("Estimation", "Cancelled", _R),
    ("Review", "Approval", _L),
    ("Review", "Pending Review", _L),
    ("Review", "Pending Review by Advisory Head", _L),
    ("Review", "Estimation", _L),
    ("Pending Review", "Review", _L),
    ("Pending Review", "Estimation", _L),
    ("Pending Review by Advisory Head", "Approval", _H),
    ("Pending Review by Advisory Head", "Estimation", _H),
    ("Pending Review by Advisory Head", "Reject", _H),
    ("Approval", "Approved", _C),
    ("Approval", "Estimation", _C),
    ("Approval", "Reject", _C),
    ("Approval", "Cancelled", _R),
    ("Approved", "Implementing", _C),
    ("Implementing", "Awaiting Feedback", _C),
    ("Awaiting Feedback", "Feedback Received", _R),
    ("Feedback Received", "Implemented", _C),
    ("On Hold", "Under Discussion", _C),
    ("On Hold", "Estimation", _C),
    ("On Hold", "Cancelled", _R),
]


def upgrade():
    op.create_table(
        "advisory_services",
        sa.Column("id", sa.String(length=60), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "service_offerings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("advisory_service_id", sa.String(length=60), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["advisory_service_id"], ["advisory_services.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_service_offerings_advisory_service_id", "service_offerings", ["advisory_service_id"])

    op.create_table(
        "activities",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("advisory_service_id", sa.String(length=60), nullable=True),
        sa.Column("service_offering_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=300), nullable=False),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["advisory_service_id"], ["advisory_services.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_offering_id"], ["service_offerings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activities_advisory_service_id", "activities", ["advisory_service_id"])
    op.create_index("ix_activities_service_offering_id", "activities", ["service_offering_id"])

    op.create_table(
        "sub_activities",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("activity_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=300), nullable=False),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sub_activities_activity_id", "sub_activities", ["activity_id"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="Standard User"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)

    op.create_table(
        "advisory_team_members",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("title", sa.String(length=60), nullable=False, server_default=_C),
        sa.Column("designation", sa.String(length=100), nullable=True),
        sa.Column("advisory_services", sa.JSON(), nullable=True),
        sa.Column("expertise", sa.JSON(), nullable=True),
        sa.Column("rate_per_hour", sa.Float(), nullable=True),
        sa.Column("billability_percentage", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_advisory_team_members_user_id", "advisory_team_members", ["user_id"])

    op.create_table(
        "requests",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("request_id", sa.String(length=40), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="New"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("advisory_services", sa.JSON(), nullable=False),
        sa.Column("selected_tools", sa.JSON(), nullable=False),
        sa.Column("requestor_id", sa.String(length=36), nullable=True),
        sa.Column("assignee_id", sa.String(length=36), nullable=True),
        sa.Column("current_assignee_name", sa.String(length=150), nullable=True),
        sa.Column("original_assignee_id", sa.String(length=36), nullable=True),
        sa.Column("original_assignee_name", sa.String(length=150), nullable=True),
        sa.Column("project_data", sa.JSON(), nullable=True),
        sa.Column("service_specific_data", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("selected_activities", sa.JSON(), nullable=True),
        sa.Column("service_offering_activities", sa.JSON(), nullable=True),
        sa.Column("timesheet_data", sa.JSON(), nullable=True),
        sa.Column("saved_total_hours", sa.Float(), nullable=True),
        sa.Column("saved_total_pd_estimate", sa.Float(), nullable=True),
        sa.Column("saved_total_cost", sa.Float(), nullable=True),
        sa.Column("saved_assignee_rate", sa.Float(), nullable=True),
        sa.Column("saved_assignee_role", sa.String(length=100), nullable=True),
        sa.Column("estimation_saved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billability_percentage", sa.Float(), nullable=True),
        sa.Column("allocation_percentage", sa.String(length=20), nullable=True),
        sa.Column("implementation_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submission_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["assignee_id"], ["advisory_team_members.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["original_assignee_id"], ["advisory_team_members.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_requests_request_id", "requests", ["request_id"], unique=True)
    op.create_index("ix_requests_status", "requests", ["status"])
    op.create_index("ix_requests_requestor_id", "requests", ["requestor_id"])
    op.create_index("idx_requests_assignee_status", "requests", ["assignee_id", "status"])

    transitions = op.create_table(
        "status_transitions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("from_status", sa.String(length=40), nullable=False),
        sa.Column("to_status", sa.String(length=40), nullable=False),
        sa.Column("role_required", sa.String(length=60), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("from_status", "to_status", "role_required", name="uq_status_transition"),
    )
    op.create_index("ix_status_transitions_from_status", "status_transitions", ["from_status"])

    op.create_table(
        "request_history",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("request_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=36), nullable=False, server_default="system"),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_request_history_request", "request_history", ["request_id", "performed_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("recipient", sa.String(length=150), nullable=True),
        sa.Column("event", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(length=20), nullable=True),
        sa.Column("entity_type", sa.String(length=30), nullable=True),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_recipient", "notifications", ["recipient"])
    op.create_index("ix_notifications_event", "notifications", ["event"])
    op.create_index("ix_notifications_entity_id", "notifications", ["entity_id"])

    op.bulk_insert(transitions, [
        {"id": str(uuid.uuid4()), "from_status": f, "to_status": t, "role_required": r}
        for f, t, r in _DEFAULT_TRANSITIONS
    ])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("request_history")
    op.drop_table("status_transitions")
    op.drop_table("requests")
    op.drop_table("advisory_team_members")
    op.drop_table("profiles")
    op.drop_table("sub_activities")
    op.drop_table("activities")
    op.drop_table("service_offerings")
    op.drop_table("advisory_services")
