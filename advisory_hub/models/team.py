"""
Advisory Request Hub
Team domain models.

Models:
    - UserProfile: application user with a platform role
    - Consultant: advisory team member who can be assigned requests
"""

import uuid
from datetime import datetime, timezone

from advisory_hub.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

TITLE_CONSULTANT = "Advisory Consultant"
TITLE_SERVICE_LEAD = "Advisory Service Lead"
TITLE_SERVICE_HEAD = "Advisory Service Head"

ADVISORY_TITLES = (TITLE_CONSULTANT, TITLE_SERVICE_LEAD, TITLE_SERVICE_HEAD)

USER_ROLES = {"Admin", "Standard User", "Requestor", *ADVISORY_TITLES}


class UserProfile(db.Model):
    """
    Platform user.  ``role`` drives workflow permissions; advisory staff also
    carry a Consultant row whose ``title`` is checked alongside the role.
    """

    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), nullable=False, unique=True, index=True)
    username = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(200), default="")
    role = db.Column(
        db.String(50), nullable=False, default="Standard User",
        comment="Admin | Standard User | Requestor | Advisory Consultant | …",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
        }

    def __repr__(self):
        return f"<UserProfile {self.user_id}: {self.username} ({self.role})>"


class Consultant(db.Model):
    """
    Advisory team member.

    ``advisory_services`` and ``expertise`` are JSON string lists.  Only
    active members are ever offered to the assignment engine.
    """

    __tablename__ = "advisory_team_members"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), nullable=True, index=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(200), default="")
    title = db.Column(db.String(60), nullable=False, default=TITLE_CONSULTANT)
    designation = db.Column(db.String(100), nullable=True, comment="Billability role label")
    advisory_services = db.Column(db.JSON, default=list)
    expertise = db.Column(db.JSON, default=list)
    rate_per_hour = db.Column(db.Float, default=0.0)
    billability_percentage = db.Column(db.Float, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def billability_role(self):
        return self.designation or self.title

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "title": self.title,
            "designation": self.designation,
            "advisory_services": self.advisory_services or [],
            "expertise": self.expertise or [],
            "rate_per_hour": self.rate_per_hour,
            "billability_percentage": self.billability_percentage,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Consultant {self.id}: {self.name} ({self.title})>"
