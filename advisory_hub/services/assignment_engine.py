"""
Consultant Assignment Engine.

Picks the consultant who should own a request, given the request's advisory
services, the tool/offering names that describe the required expertise, a
candidate pool and the current open-request load of each candidate.

Selection order:
  1. Active consultants serving one of the services (and holding the target
     title, when a role is given) whose expertise matches an offering
     → lowest load wins, ties go to the first-encountered candidate.
  2. Active "Advisory Service Head" serving one of the services.
  3. Any eligible consultant from step 1's service filter, by load.
  4. Nothing → ``None``.  Callers treat this as a normal outcome.

The engine is pure: it never queries the database.  Candidates and loads are
fetched by the caller (see ``request_service``) and passed in, which keeps it
testable with transient model instances or any object exposing
``id``, ``title``, ``is_active``, ``advisory_services`` and ``expertise``.

Usage:
    from advisory_hub.services.assignment_engine import assign

    picked = assign(["eng-excellence"], ["Kubernetes"], consultants, loads)
    if picked is None:
        ...  # leave unassigned, surface to an admin
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from advisory_hub.models.team import TITLE_SERVICE_HEAD

logger = logging.getLogger(__name__)

STRATEGY_EXPERTISE_MATCH = "expertise_match"
STRATEGY_SERVICE_HEAD = "service_head"
STRATEGY_LOAD_FALLBACK = "load_fallback"


@dataclass(frozen=True)
class Assignment:
    """Chosen consultant plus how and at what load it was chosen."""
    consultant: Any
    strategy: str
    load: int

    @property
    def consultant_id(self):
        return self.consultant.id


def _is_active(consultant) -> bool:
    return bool(getattr(consultant, "is_active", False))


def _serves(consultant, service_ids: set) -> bool:
    return bool(set(getattr(consultant, "advisory_services", None) or []) & service_ids)


def expertise_matches(expertise: Iterable[str] | None, offerings: Iterable[str] | None) -> bool:
    """Case-insensitive substring match, in either direction, of any pair."""
    tags = [e.lower() for e in (expertise or []) if e]
    wanted = [o.lower() for o in (offerings or []) if o]
    return any(t in w or w in t for t in tags for w in wanted)


def _least_loaded(candidates: list, loads: Mapping) -> tuple[Any, int]:
    # min() is stable: the first candidate with the lowest load wins ties
    best = min(candidates, key=lambda c: loads.get(c.id, 0))
    return best, loads.get(best.id, 0)


def eligible_consultants(
    required_service_ids: Iterable[str],
    candidate_pool: Iterable,
    *,
    role: str | None = None,
) -> list:
    """Active candidates serving at least one of the services (and holding ``role``)."""
    services = set(required_service_ids or [])
    return [
        c for c in candidate_pool
        if _is_active(c)
        and _serves(c, services)
        and (role is None or getattr(c, "title", None) == role)
    ]


def assign(
    required_service_ids: Iterable[str],
    required_expertise: Iterable[str],
    candidate_pool: Iterable,
    current_loads: Mapping | None = None,
    *,
    role: str | None = None,
) -> Assignment | None:
    """Return the best-fit consultant for a request, or ``None``.

    Args:
        required_service_ids: Advisory service ids of the request.
        required_expertise: Selected tool/offering names.  An empty list
            means the request asks for no particular expertise, so every
            eligible consultant counts as matched.
        candidate_pool: Consultants to choose from.
        current_loads: consultant id → open-request count.  Missing ids
            count as zero.
        role: Target title (e.g. "Advisory Service Lead") when assigning for
            a specific workflow role.  The Service Head fallback ignores it.

    Returns:
        ``Assignment`` or ``None`` when no active consultant serves any of
        the services.  Never returns an inactive consultant or one outside
        the requested services.
    """
    pool = list(candidate_pool or [])
    loads = current_loads or {}
    services = set(required_service_ids or [])
    expertise = [e for e in (required_expertise or []) if e]

    eligible = eligible_consultants(services, pool, role=role)

    if expertise:
        matched = [c for c in eligible if expertise_matches(getattr(c, "expertise", None), expertise)]
    else:
        matched = eligible

    if matched:
        best, load = _least_loaded(matched, loads)
        return Assignment(consultant=best, strategy=STRATEGY_EXPERTISE_MATCH, load=load)

    heads = [
        c for c in pool
        if _is_active(c) and _serves(c, services) and getattr(c, "title", None) == TITLE_SERVICE_HEAD
    ]
    if heads:
        best, load = _least_loaded(heads, loads)
        logger.info(
            "No expertise match for services=%s offerings=%s; falling back to Service Head %s",
            sorted(services), expertise, best.id,
        )
        return Assignment(consultant=best, strategy=STRATEGY_SERVICE_HEAD, load=load)

    if eligible:
        best, load = _least_loaded(eligible, loads)
        logger.info(
            "No expertise match or Service Head for services=%s; least-loaded fallback %s",
            sorted(services), best.id,
        )
        return Assignment(consultant=best, strategy=STRATEGY_LOAD_FALLBACK, load=load)

    logger.warning("No eligible consultant for services=%s role=%s", sorted(services), role)
    return None
