"""
Advisory Request Hub
Notification Service.

Records request domain events (submission, transition, reassignment,
estimation freeze) as Notification rows.  Nothing here commits: events are
added to the caller's session so they share its transaction.
"""

from datetime import datetime, timezone

from advisory_hub.models import db
from advisory_hub.models.notification import (
    BROADCAST,
    EVENT_ESTIMATION_FROZEN,
    EVENT_REQUEST_REASSIGNED,
    EVENT_REQUEST_SUBMITTED,
    EVENT_REQUEST_TRANSITIONED,
    Notification,
)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def record_event(*, event, title, message="", recipients=None, severity="info",
                     entity_id=None, payload=None):
        """
        Add one notification per recipient to the current session.

        Args:
            recipients: user ids; falsy entries are skipped, duplicates
                collapse.  ``None`` broadcasts to 'all'.

        Returns:
            List of the added Notification instances (flushed, not committed).
        """
        targets = [BROADCAST] if recipients is None else list(dict.fromkeys(r for r in recipients if r))
        notifications = []
        for r in targets:
            notif = Notification(
                recipient=r,
                event=event,
                title=title,
                message=message,
                severity=severity,
                entity_type="request",
                entity_id=entity_id,
                payload=payload or {},
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.flush()
        return notifications

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient=BROADCAST, unread_only=False, limit=50, offset=0):
        """Notifications for a recipient (plus broadcasts), newest first."""
        q = Notification.query.filter(
            (Notification.recipient == recipient) | (Notification.recipient == BROADCAST)
        )
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = q.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()
        return items, total

    @staticmethod
    def mark_all_read(recipient):
        q = Notification.query.filter_by(recipient=recipient, is_read=False)
        now = datetime.now(timezone.utc)
        return q.update({"is_read": True, "read_at": now}, synchronize_session="fetch")

    # ── Request event helpers ─────────────────────────────────────────────

    @staticmethod
    def notify_submitted(request):
        return NotificationService.record_event(
            event=EVENT_REQUEST_SUBMITTED,
            title=f"New request {request.request_id}",
            message=", ".join(request.advisory_services or []),
            recipients=[request.assignee_id, request.requestor_id],
            entity_id=request.id,
            payload={"assignee_id": request.assignee_id},
        )

    @staticmethod
    def notify_transitioned(request, old_status, new_status, performed_by):
        return NotificationService.record_event(
            event=EVENT_REQUEST_TRANSITIONED,
            title=f"Request {request.request_id}: {old_status} → {new_status}",
            recipients=[request.requestor_id, request.assignee_id],
            severity="warning" if new_status in ("Reject", "Cancelled") else "info",
            entity_id=request.id,
            payload={"from": old_status, "to": new_status, "performed_by": performed_by},
        )

    @staticmethod
    def notify_reassigned(request, old_assignee_id, new_assignee_id, performed_by):
        return NotificationService.record_event(
            event=EVENT_REQUEST_REASSIGNED,
            title=f"Request {request.request_id} assigned to {request.current_assignee_name}",
            recipients=[new_assignee_id, old_assignee_id],
            entity_id=request.id,
            payload={"from": old_assignee_id, "to": new_assignee_id, "performed_by": performed_by},
        )

    @staticmethod
    def notify_estimation_frozen(request):
        return NotificationService.record_event(
            event=EVENT_ESTIMATION_FROZEN,
            title=f"Estimation frozen for {request.request_id}",
            message=f"{request.saved_total_hours:g} h / {request.saved_total_pd_estimate:g} PD",
            recipients=[request.requestor_id],
            severity="success",
            entity_id=request.id,
            payload={
                "hours": request.saved_total_hours,
                "pd": request.saved_total_pd_estimate,
                "cost": request.saved_total_cost,
            },
        )
