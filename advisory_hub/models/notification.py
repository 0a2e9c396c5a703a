"""
Advisory Request Hub
Notification model: request domain events, one row per recipient.

Rows are added in the session of the change that produced them, so an
event is never visible for a transition that was rolled back.
"""

from datetime import datetime, timezone

from advisory_hub.models import db

EVENT_REQUEST_SUBMITTED = "request.submitted"
EVENT_REQUEST_TRANSITIONED = "request.transitioned"
EVENT_REQUEST_REASSIGNED = "request.reassigned"
EVENT_ESTIMATION_FROZEN = "estimation.frozen"

BROADCAST = "all"


def _iso(value):
    return value.isoformat() if value else None


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(150), default=BROADCAST, index=True, comment="User id, or 'all'")
    event = db.Column(db.String(40), nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    severity = db.Column(db.String(20), default="info", comment="info | warning | success")

    entity_type = db.Column(db.String(30), default="request")
    entity_id = db.Column(db.String(36), nullable=True, index=True)
    payload = db.Column(db.JSON, default=dict)

    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    _PLAIN_FIELDS = ("id", "recipient", "event", "title", "message", "severity",
                     "entity_type", "entity_id", "is_read")

    def to_dict(self):
        data = {name: getattr(self, name) for name in self._PLAIN_FIELDS}
        data.update(payload=self.payload or {}, read_at=_iso(self.read_at), created_at=_iso(self.created_at))
        return data

    def __repr__(self):
        return f"<Notification {self.id} {self.event} -> {self.recipient}>"
