"""Activity selection service.

Stores a request's activity selection in the canonical single-service shape:

    {
        "activities":    {activity_id: {"selected": true, "name": ..., "estimated_hours": ...}},
        "subActivities": {sub_id:      {"selected": true, "name": ..., "estimated_hours": ...,
                                        "activity_id": ...}},
    }

Requests scoped to service offerings store one such block per offering in
``service_offering_activities`` instead.  A request holds one form at a time:
saving either clears the other.

Catalog rows are copied (name and hours) so later catalog edits never change
an estimate.  Custom activities live only on the request: they are flagged
``isCustom`` in the selection and kept as a list under
``service_specific_data["customActivities"]``.

Transaction policy: flush() only; the route handler commits.
"""
import logging
import uuid

from sqlalchemy.orm.attributes import flag_modified

from advisory_hub.core.exceptions import InvalidInputError, NotFoundError, ValidationError
from advisory_hub.models import db
from advisory_hub.models.catalog import Activity, ServiceOffering, SubActivity
from advisory_hub.models.request import HISTORY_ACTIVITIES_UPDATED, RequestHistory
from advisory_hub.services.estimation import compute_hours, normalize_selection
from advisory_hub.services.request_service import get_request

logger = logging.getLogger(__name__)

_SINGLE_FORM_KEYS = ("activities", "subActivities", "customActivities")


def _hours_override(entry, field):
    if not isinstance(entry, dict):
        return None
    raw = entry.get("estimated_hours", entry.get("estimatedHours"))
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field}: estimated_hours must be a number") from None
    if value < 0:
        raise InvalidInputError(f"{field}: estimated_hours must not be negative")
    return value


def _is_selected(entry):
    if isinstance(entry, dict):
        return bool(entry.get("selected", True))
    return bool(entry)


def _as_mapping(container):
    """Accept ``{id: entry}`` or a list of ids / ``{"id": ...}`` dicts."""
    if container is None:
        return {}
    if isinstance(container, dict):
        return container
    if isinstance(container, list):
        out = {}
        for entry in container:
            if isinstance(entry, dict) and entry.get("id"):
                out[str(entry["id"])] = entry
            elif isinstance(entry, str):
                out[entry] = True
        return out
    raise InvalidInputError("activities must be an object or a list")


def _custom_id():
    return f"custom-{uuid.uuid4().hex[:12]}"


def build_selection(activities=None, sub_activities=None, custom_activities=None):
    """Denormalize catalog ids and custom entries into the stored selection.

    Returns:
        (selection, custom_activities); custom entries get generated ids.

    Raises:
        InvalidInputError: unknown catalog id, bad hours, custom entry without a name.
    """
    selection = {"activities": {}, "subActivities": {}}

    for act_id, entry in _as_mapping(activities).items():
        if not _is_selected(entry):
            continue
        row = db.session.get(Activity, act_id)
        if row is None:
            raise InvalidInputError(f"Unknown activity: {act_id}", details={"activity_id": act_id})
        override = _hours_override(entry, f"activities.{act_id}")
        selection["activities"][row.id] = {
            "selected": True,
            "name": row.name,
            "estimated_hours": row.estimated_hours if override is None else override,
        }

    for sub_id, entry in _as_mapping(sub_activities).items():
        if not _is_selected(entry):
            continue
        row = db.session.get(SubActivity, sub_id)
        if row is None:
            raise InvalidInputError(f"Unknown sub-activity: {sub_id}", details={"sub_activity_id": sub_id})
        override = _hours_override(entry, f"subActivities.{sub_id}")
        selection["subActivities"][row.id] = {
            "selected": True,
            "name": row.name,
            "estimated_hours": row.estimated_hours if override is None else override,
            "activity_id": row.activity_id,
        }

    customs = []
    for raw in custom_activities or []:
        if not isinstance(raw, dict) or not (raw.get("name") or "").strip():
            raise InvalidInputError("Custom activities need a name")
        act_id = str(raw.get("id") or _custom_id())
        hours = _hours_override(raw, f"customActivities.{act_id}") or 0.0
        subs = []
        for sub in raw.get("subActivities") or []:
            if not isinstance(sub, dict) or not (sub.get("name") or "").strip():
                raise InvalidInputError(f"Custom sub-activities of {act_id} need a name")
            sub_id = str(sub.get("id") or _custom_id())
            sub_hours = _hours_override(sub, f"customActivities.{act_id}.{sub_id}") or 0.0
            subs.append({"id": sub_id, "name": sub["name"].strip(), "estimated_hours": sub_hours})
            selection["subActivities"][sub_id] = {
                "selected": True,
                "name": sub["name"].strip(),
                "estimated_hours": sub_hours,
                "activity_id": act_id,
                "isCustom": True,
            }
        selection["activities"][act_id] = {
            "selected": True,
            "name": raw["name"].strip(),
            "estimated_hours": hours,
            "isCustom": True,
        }
        customs.append({"id": act_id, "name": raw["name"].strip(), "estimated_hours": hours,
                        "subActivities": subs})

    return selection, customs


def _build_offering_selection(offering_activities):
    """Denormalize ``{offering_id: {activities, subActivities, customActivities}}``."""
    if not isinstance(offering_activities, dict):
        raise InvalidInputError("serviceOfferingActivities must be an object keyed by offering id")
    stored, customs = {}, []
    for offering_id, block in offering_activities.items():
        if db.session.get(ServiceOffering, offering_id) is None:
            raise InvalidInputError(f"Unknown service offering: {offering_id}",
                                    details={"service_offering_id": offering_id})
        block = block if isinstance(block, dict) else {}
        selection, block_customs = build_selection(
            block.get("activities"), block.get("subActivities"), block.get("customActivities"),
        )
        stored[offering_id] = selection
        customs.extend({**c, "service_offering_id": offering_id} for c in block_customs)
    return stored, customs


def save_activity_selection(request_id, payload, *, performed_by=None):
    """Replace the request's activity selection.

    Args:
        payload: either the single-service form
            ``{"activities": ..., "subActivities": ..., "customActivities": [...]}``
            or the per-offering form ``{"serviceOfferingActivities": {offering_id: {...}}}``.
            Saving one form clears the other.

    Returns:
        The updated AdvisoryRequest (flushed).

    Raises:
        NotFoundError, InvalidInputError, ValidationError (terminal request)
    """
    req = get_request(request_id, for_update=True)
    if req is None:
        raise NotFoundError("Request", request_id)
    if req.is_terminal:
        raise ValidationError(f"Request {req.request_id} is {req.status} and can no longer be changed")

    payload = payload or {}
    per_offering = payload.get("serviceOfferingActivities")
    if per_offering is not None and any(payload.get(k) for k in _SINGLE_FORM_KEYS):
        raise InvalidInputError("Send either serviceOfferingActivities or activities, not both")

    hours_before = compute_hours(req.selected_activities, req.service_offering_activities)
    if per_offering is not None:
        offering_selection, customs = _build_offering_selection(per_offering)
        req.service_offering_activities = offering_selection
        req.selected_activities = None
    else:
        selection, customs = build_selection(
            payload.get("activities"),
            payload.get("subActivities"),
            payload.get("customActivities"),
        )
        req.selected_activities = selection
        req.service_offering_activities = None

    data = dict(req.service_specific_data or {})
    data["customActivities"] = customs
    req.service_specific_data = data
    flag_modified(req, "service_specific_data")
    db.session.flush()

    items = normalize_selection(req.selected_activities, req.service_offering_activities)
    hours_after = sum(i.hours for i in items)
    RequestHistory.append(
        request_id=req.id, action=HISTORY_ACTIVITIES_UPDATED,
        old_value=f"{hours_before:g} h", new_value=f"{hours_after:g} h ({len(items)} items)",
        performed_by=performed_by,
    )
    logger.info(
        "Activity selection saved for %s: %d items, %.2f h (%s form)",
        req.request_id, len(items), hours_after, "offering" if per_offering is not None else "single",
    )
    return req
