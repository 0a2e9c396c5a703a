"""
Timesheet Distributor.

Packs a request's sub-activity hours into working days capped by the
billability percentage:

    daily_limit = DAILY_WORK_HOURS * billability_percentage / 100

Sub-activities are taken shortest first.  Each one fills the room left in the
current day; whatever does not fit spills into the following days as
numbered parts.  Every slice gets a key ``{sub_activity_id}-day{N}-part{P}``
which is what ``timesheet_data["completed"]`` tracks.

Guarantees for one ``distribute`` call:
  - per sub-activity, slice hours add up to its estimate
  - no day exceeds ``daily_limit``
  - keys are unique

Completion is stored as ``{"completed": {key: bool}, "lastUpdated": iso}``.
Keys of activities that are no longer selected are kept and ignored.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from advisory_hub.core.exceptions import InvalidInputError

DAILY_WORK_HOURS = 8
_EPSILON = 1e-9


@dataclass
class DayActivity:
    """One slice of a sub-activity scheduled on one day."""
    sub_activity_id: str
    sub_activity_name: str
    hours: float
    unique_key: str
    is_partial: bool = False
    part_number: int | None = None
    total_parts: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def daily_limit_for(billability_percentage, daily_work_hours: float = DAILY_WORK_HOURS) -> float:
    """Hours per day available at the given billability.  Rejects pct <= 0."""
    if isinstance(billability_percentage, bool) or not isinstance(billability_percentage, (int, float)):
        raise InvalidInputError(
            "billability_percentage must be a number",
            details={"billability_percentage": billability_percentage},
        )
    if math.isnan(billability_percentage) or billability_percentage <= 0:
        raise InvalidInputError(
            "billability_percentage must be greater than 0",
            details={"billability_percentage": billability_percentage},
        )
    return daily_work_hours * billability_percentage / 100


def distribute(
    sub_activities: list[dict],
    billability_percentage: float,
    *,
    daily_work_hours: float = DAILY_WORK_HOURS,
) -> list[list[DayActivity]]:
    """Distribute sub-activities across days.

    Args:
        sub_activities: dicts with ``id``, ``name`` and ``estimated_hours``.
            Ids must be unique (``selected_sub_activities`` merges repeats);
            a repeated id raises ``InvalidInputError`` since its slice keys
            would collide.
        billability_percentage: share of an 8-hour day that is billable.

    Returns:
        Ordered list of days, each an ordered list of ``DayActivity``.

    Raises:
        InvalidInputError: billability_percentage is not a positive number.
    """
    limit = daily_limit_for(billability_percentage, daily_work_hours)

    ids = [str(sub["id"]) for sub in sub_activities]
    repeated = sorted({i for i in ids if ids.count(i) > 1})
    if repeated:
        raise InvalidInputError(
            "Each sub-activity may appear only once in a timesheet plan",
            details={"duplicate_ids": repeated},
        )

    days: list[list[DayActivity]] = []
    current_day: list[DayActivity] = []
    current_hours = 0.0

    # sorted() is stable: equal estimates keep their input order
    ordered = sorted(sub_activities, key=lambda s: float(s.get("estimated_hours") or 0))

    for sub in ordered:
        remaining = float(sub.get("estimated_hours") or 0)
        part = 1
        total_parts = math.ceil(remaining / limit - _EPSILON) if remaining > 0 else 0

        while remaining > _EPSILON:
            to_add = min(remaining, limit - current_hours)

            if to_add > _EPSILON:
                current_day.append(DayActivity(
                    sub_activity_id=str(sub["id"]),
                    sub_activity_name=sub.get("name") or "",
                    hours=to_add,
                    unique_key=f"{sub['id']}-day{len(days)}-part{part}",
                    is_partial=total_parts > 1,
                    part_number=part if total_parts > 1 else None,
                    total_parts=total_parts if total_parts > 1 else None,
                ))
                current_hours += to_add
                remaining -= to_add
                if remaining > _EPSILON:
                    part += 1

            # Day is full, or nothing more fits: start a new one
            if current_hours >= limit - _EPSILON or (remaining > _EPSILON and to_add <= _EPSILON):
                days.append(current_day)
                current_day = []
                current_hours = 0.0

    if current_day:
        days.append(current_day)

    return days


def plan_to_dict(days: list[list[DayActivity]]) -> list[dict]:
    return [
        {
            "day": index + 1,
            "hours": sum(a.hours for a in day),
            "activities": [a.to_dict() for a in day],
        }
        for index, day in enumerate(days)
    ]


# ═════════════════════════════════════════════════════════════════════════════
# Completion tracking
# ═════════════════════════════════════════════════════════════════════════════


def is_completed(activity: DayActivity, completed: dict | None) -> bool:
    """Completion of one slice; falls back to legacy per-sub-activity keys."""
    completed = completed or {}
    return bool(completed.get(activity.unique_key) or completed.get(activity.sub_activity_id))


def completion_stats(days: list[list[DayActivity]], timesheet_data: dict | None) -> dict:
    completed = (timesheet_data or {}).get("completed") or {}
    entries = [a for day in days for a in day]
    done = [a for a in entries if is_completed(a, completed)]
    return {
        "total_entries": len(entries),
        "completed_entries": len(done),
        "total_hours": sum(a.hours for a in entries),
        "completed_hours": sum(a.hours for a in done),
    }


def merge_completion(timesheet_data: dict | None, updates: dict[str, bool]) -> dict:
    """Return a new timesheet document with ``updates`` merged key by key."""
    current = dict(timesheet_data or {})
    completed = dict(current.get("completed") or {})
    for key, value in updates.items():
        completed[str(key)] = bool(value)
    current["completed"] = completed
    current["lastUpdated"] = datetime.now(timezone.utc).isoformat()
    return current
