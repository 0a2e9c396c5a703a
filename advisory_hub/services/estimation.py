"""
Estimation Calculator.

Derives hours, person-days (PD) and cost from a request's activity selection.

Selections arrive in several stored shapes:

  * single-service object   {"activities": {...}|[...], "subActivities": {...}|[...]}
  * multi-service array     [{"activities": ..., "subActivities": ...}, ...]
  * offering mapping        service_offering_activities = {offering_id: {"activities": ...}}
  * flat activity map       {activity_id: {"selected": true, "estimated_hours": 4,
                                           "subActivities": {sub_id: true | {...}}}}

``normalize_selection`` is the only function that inspects these shapes; every
calculation works on the canonical ``SelectedItem`` list it returns.

Rules:
  - an activity counts when ``selected is True``
  - a sub-activity object counts when ``selected`` is true or absent
  - a bare ``True`` sub-activity has no hours on record and contributes 0
  - the multi-service forms and the single-service form describe the same
    request: once the multi-service forms yield hours the single form is ignored

Everything here is pure (no I/O) except ``get_estimation``'s optional
consultant lookup, which callers can bypass by passing the assignee.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

HOURS_PER_PERSON_DAY = 8

KIND_ACTIVITY = "activity"
KIND_SUB_ACTIVITY = "sub_activity"

_CONTAINER_KEYS = ("activities", "subActivities")


@dataclass(frozen=True)
class SelectedItem:
    """One selected activity or sub-activity in canonical form.

    ``estimated_hours`` is None when the stored shape carried no hours
    (legacy bare-boolean sub-activities).
    """
    id: str
    name: str
    estimated_hours: float | None
    kind: str
    is_custom: bool = False
    parent_id: str | None = None

    @property
    def hours(self) -> float:
        return self.estimated_hours or 0.0


# ═════════════════════════════════════════════════════════════════════════════
# Shape adapter
# ═════════════════════════════════════════════════════════════════════════════


def _to_hours(entry: dict) -> float | None:
    raw = entry.get("estimated_hours")
    if raw is None:
        raw = entry.get("estimatedHours")
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or value < 0:
        return 0.0
    return value


def _iter_entries(container):
    """Yield (id, entry) from either a mapping keyed by id or a list of dicts."""
    if isinstance(container, dict):
        yield from container.items()
    elif isinstance(container, list):
        for idx, entry in enumerate(container):
            entry_id = entry.get("id") if isinstance(entry, dict) else None
            yield (entry_id or str(idx)), entry


def _activity_item(entry_id, entry) -> SelectedItem | None:
    if not isinstance(entry, dict) or entry.get("selected") is not True:
        return None
    return SelectedItem(
        id=str(entry.get("id") or entry_id),
        name=entry.get("name") or "",
        estimated_hours=_to_hours(entry),
        kind=KIND_ACTIVITY,
        is_custom=bool(entry.get("isCustom")),
    )


def _sub_activity_item(entry_id, entry, parent_id=None) -> SelectedItem | None:
    if entry is True:
        return SelectedItem(id=str(entry_id), name="", estimated_hours=None,
                            kind=KIND_SUB_ACTIVITY, parent_id=parent_id)
    if not isinstance(entry, dict):
        return None
    if not entry.get("selected", True):
        return None
    return SelectedItem(
        id=str(entry.get("id") or entry_id),
        name=entry.get("name") or "",
        estimated_hours=_to_hours(entry),
        kind=KIND_SUB_ACTIVITY,
        is_custom=bool(entry.get("isCustom")),
        parent_id=parent_id,
    )


def _nested_sub_activities(activity_id, entry) -> list[SelectedItem]:
    items = []
    subs = entry.get("subActivities") if isinstance(entry, dict) else None
    for sub_id, sub in _iter_entries(subs):
        item = _sub_activity_item(sub_id, sub, parent_id=str(activity_id))
        if item:
            items.append(item)
    return items


def _items_from_service_block(block: dict, *, include_direct_keys: bool) -> list[SelectedItem]:
    """Canonical items of one single-service object."""
    items: list[SelectedItem] = []
    for act_id, entry in _iter_entries(block.get("activities")):
        item = _activity_item(act_id, entry)
        if item:
            items.append(item)
        items.extend(_nested_sub_activities(act_id, entry))
    for sub_id, entry in _iter_entries(block.get("subActivities")):
        item = _sub_activity_item(sub_id, entry)
        if item:
            items.append(item)
    if include_direct_keys:
        for key, entry in block.items():
            if key in _CONTAINER_KEYS or not isinstance(entry, dict):
                continue
            item = _activity_item(key, entry)
            if item:
                items.append(item)
            items.extend(_nested_sub_activities(key, entry))
    return items


def _multi_service_items(selection, service_offering_activities) -> list[SelectedItem]:
    items: list[SelectedItem] = []
    if isinstance(selection, list):
        for block in selection:
            if isinstance(block, dict):
                items.extend(_items_from_service_block(block, include_direct_keys=False))
    if isinstance(service_offering_activities, dict):
        for block in service_offering_activities.values():
            if isinstance(block, dict):
                items.extend(_items_from_service_block(block, include_direct_keys=False))
    elif isinstance(service_offering_activities, list):
        for block in service_offering_activities:
            if isinstance(block, dict):
                items.extend(_items_from_service_block(block, include_direct_keys=False))
    return items


def normalize_selection(selection: Any, service_offering_activities: Any = None) -> list[SelectedItem]:
    """Resolve any stored selection shape into a flat list of selected items."""
    multi = _multi_service_items(selection, service_offering_activities)
    if sum(i.hours for i in multi) > 0:
        return multi
    if isinstance(selection, dict):
        single = _items_from_service_block(selection, include_direct_keys=True)
        if single:
            return single
    return multi


# ═════════════════════════════════════════════════════════════════════════════
# Calculations
# ═════════════════════════════════════════════════════════════════════════════


def compute_hours(selection: Any, service_offering_activities: Any = None) -> float:
    """Total estimated hours of the selected activities and sub-activities."""
    items = normalize_selection(selection, service_offering_activities)
    total = sum(i.hours for i in items)
    unknown = sum(1 for i in items if i.estimated_hours is None)
    if unknown:
        logger.debug("%d selected sub-activities carry no hours; counted as 0", unknown)
    return max(total, 0.0)


def compute_pd(hours: float) -> float:
    """Person-days, rounded to two decimals."""
    return round((hours or 0) / HOURS_PER_PERSON_DAY, 2)


def compute_cost(hours: float, rate_per_hour: float) -> float:
    return (hours or 0) * (rate_per_hour or 0)


def billable_assignment_days(hours: float, billability_percentage: float | None) -> int:
    """Working days needed at the given billability, 0 when either input is 0."""
    if not hours or not billability_percentage or billability_percentage <= 0:
        return 0
    per_day = HOURS_PER_PERSON_DAY * billability_percentage / 100
    return math.ceil(hours / per_day)


def selected_sub_activities(
    selection: Any,
    service_offering_activities: Any = None,
    *,
    include_unknown: bool = False,
) -> list[dict]:
    """Flat sub-activity list (id, name, estimated_hours) for timesheet planning.

    Each id appears once.  A sub-activity selected under several offerings
    is merged into one entry whose hours are the sum of its copies, the
    same total ``compute_hours`` counts.  Entries without recorded hours are
    dropped unless ``include_unknown`` is set (``estimated_hours`` is then None).
    """
    merged: dict[str, dict] = {}
    for item in normalize_selection(selection, service_offering_activities):
        if item.kind != KIND_SUB_ACTIVITY:
            continue
        entry = merged.get(item.id)
        if entry is None:
            merged[item.id] = {"id": item.id, "name": item.name, "estimated_hours": item.estimated_hours}
            continue
        if item.estimated_hours is not None:
            entry["estimated_hours"] = (entry["estimated_hours"] or 0.0) + item.estimated_hours
        if not entry["name"]:
            entry["name"] = item.name
    return [
        entry for entry in merged.values()
        if include_unknown or entry["estimated_hours"] is not None
    ]


def live_estimation(request, assignee=None) -> dict:
    """Hours / PD / cost computed now from the request's current selection."""
    hours = compute_hours(request.selected_activities, request.service_offering_activities)
    rate = (assignee.rate_per_hour or 0.0) if assignee is not None else 0.0
    role = assignee.billability_role if assignee is not None else None
    return {
        "hours": hours,
        "pd": compute_pd(hours),
        "cost": compute_cost(hours, rate),
        "rate": rate,
        "role": role,
    }


def get_estimation(request, assignee=None) -> dict:
    """Estimation shown for a request.

    Frozen requests report their ``saved_*`` snapshot; each saved value that
    is zero or missing falls back to the live figure.  Unfrozen requests
    report live figures at the current assignee's rate.
    """
    if assignee is None and request.assignee_id:
        assignee = request.assignee
    live = live_estimation(request, assignee)

    if not request.is_estimation_frozen:
        return {**live, "frozen": False, "estimation_saved_at": None}

    hours = request.saved_total_hours if request.saved_total_hours else live["hours"]
    pd = request.saved_total_pd_estimate if request.saved_total_pd_estimate else compute_pd(hours)
    rate = request.saved_assignee_rate if request.saved_assignee_rate else live["rate"]
    cost = request.saved_total_cost if request.saved_total_cost else compute_cost(hours, rate)
    return {
        "hours": hours,
        "pd": pd,
        "cost": cost,
        "rate": rate,
        "role": request.saved_assignee_role or live["role"],
        "frozen": True,
        "estimation_saved_at": request.estimation_saved_at.isoformat(),
    }
