"""
Advisory Request Hub
Service catalog models.

Models:
    - AdvisoryService: top-level service a request is raised against
    - ServiceOffering: tool / offering within a service (drives expertise matching)
    - Activity: estimable unit of work for a service or offering
    - SubActivity: finer-grained unit under an Activity

Requests keep a denormalized copy of the selected catalog rows, so edits here
never change a frozen estimate.
"""

import uuid
from datetime import datetime, timezone

from advisory_hub.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class AdvisoryService(db.Model):
    __tablename__ = "advisory_services"

    id = db.Column(db.String(60), primary_key=True, comment="Slug, e.g. eng-excellence")
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    offerings = db.relationship(
        "ServiceOffering", backref="advisory_service", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<AdvisoryService {self.id}: {self.name}>"


class ServiceOffering(db.Model):
    __tablename__ = "service_offerings"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    advisory_service_id = db.Column(
        db.String(60), db.ForeignKey("advisory_services.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "advisory_service_id": self.advisory_service_id,
            "name": self.name,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<ServiceOffering {self.id}: {self.name}>"


class Activity(db.Model):
    """Catalog activity, scoped to a service or one of its offerings."""

    __tablename__ = "activities"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    advisory_service_id = db.Column(
        db.String(60), db.ForeignKey("advisory_services.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    service_offering_id = db.Column(
        db.String(36), db.ForeignKey("service_offerings.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    estimated_hours = db.Column(db.Float, default=0.0)
    display_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    sub_activities = db.relationship(
        "SubActivity", backref="activity", lazy="select",
        cascade="all, delete-orphan", order_by="SubActivity.display_order",
    )

    def to_dict(self, include_children=False):
        d = {
            "id": self.id,
            "advisory_service_id": self.advisory_service_id,
            "service_offering_id": self.service_offering_id,
            "name": self.name,
            "estimated_hours": self.estimated_hours,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }
        if include_children:
            d["sub_activities"] = [s.to_dict() for s in self.sub_activities]
        return d

    def __repr__(self):
        return f"<Activity {self.id}: {self.name}>"


class SubActivity(db.Model):
    __tablename__ = "sub_activities"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    activity_id = db.Column(
        db.String(36), db.ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    estimated_hours = db.Column(db.Float, default=0.0)
    display_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "activity_id": self.activity_id,
            "name": self.name,
            "estimated_hours": self.estimated_hours,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<SubActivity {self.id}: {self.name}>"
