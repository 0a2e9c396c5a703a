"""
Advisory Request Hub — Workflow permission map.

A status transition rule names the role that may trigger it
(``role_required``).  A user satisfies that role through either their
profile role or their consultant title, and some rule roles are satisfied by
more than one user role (``ROLE_SATISFIES``).  ``Admin`` may trigger every
rule.

Usage:
    from advisory_hub.services.permission import Actor, can_trigger

    actor = Actor(user_id="u-1", role="Standard User", title=None)
    can_trigger(actor, "Requestor")   # True
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class Role(str, Enum):
    ADMIN = "Admin"
    STANDARD_USER = "Standard User"
    REQUESTOR = "Requestor"
    ADVISORY_CONSULTANT = "Advisory Consultant"
    ADVISORY_SERVICE_LEAD = "Advisory Service Lead"
    ADVISORY_SERVICE_HEAD = "Advisory Service Head"


# role_required → user roles/titles that satisfy it
ROLE_SATISFIES: dict[str, frozenset[str]] = {
    Role.REQUESTOR.value: frozenset({Role.REQUESTOR.value, Role.STANDARD_USER.value}),
    Role.ADVISORY_CONSULTANT.value: frozenset({Role.ADVISORY_CONSULTANT.value}),
    Role.ADVISORY_SERVICE_LEAD.value: frozenset({Role.ADVISORY_SERVICE_LEAD.value}),
    Role.ADVISORY_SERVICE_HEAD.value: frozenset({Role.ADVISORY_SERVICE_HEAD.value}),
}

ADVISORY_ROLES = frozenset({
    Role.ADVISORY_CONSULTANT.value,
    Role.ADVISORY_SERVICE_LEAD.value,
    Role.ADVISORY_SERVICE_HEAD.value,
})


@dataclass(frozen=True)
class Actor:
    """The acting user as seen by workflow checks."""
    user_id: str | None
    role: str | None = None
    title: str | None = None
    consultant_id: str | None = None
    advisory_services: tuple = ()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def labels(self) -> set[str]:
        return {v for v in (self.role, self.title) if v}


def satisfies(actor: Actor, role_required: str) -> bool:
    """True if the actor's role or title satisfies ``role_required``."""
    accepted = ROLE_SATISFIES.get(role_required, frozenset({role_required}))
    return bool(actor.labels & accepted)


def can_trigger(actor: Actor, roles_required: str | Iterable[str]) -> bool:
    """
    Check whether ``actor`` may fire a transition.

    Args:
        actor: resolved acting user
        roles_required: one ``role_required`` or the roles of every rule
            matching the (from, to) pair; any one suffices

    Returns:
        True for admins, or when at least one required role is satisfied.
    """
    if actor.is_admin:
        return True
    if isinstance(roles_required, str):
        roles_required = [roles_required]
    return any(satisfies(actor, r) for r in roles_required)


def can_reassign(actor: Actor, service_ids: Iterable[str]) -> bool:
    """Admins, or an Advisory Service Head serving one of the services."""
    if actor.is_admin:
        return True
    if actor.title != Role.ADVISORY_SERVICE_HEAD.value and actor.role != Role.ADVISORY_SERVICE_HEAD.value:
        return False
    return bool(set(actor.advisory_services or ()) & set(service_ids or ()))
