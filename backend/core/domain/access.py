"""
core.domain.access — Case access guard and role-scoped list selectors.

╔══════════════════════════════════════════════════════════════════╗
║  ``can_access`` is the per-row predicate, ``CASE_SCOPE_RULES``   ║
║  the queryset filter.  They agree except that list scopes for    ║
║  psychologists and directors also require the user's village.    ║
║  Change them together.                                           ║
╚══════════════════════════════════════════════════════════════════╝

Architecture overview
---------------------
    ┌─────────┐      ┌────────────────┐      ┌──────────────────┐
    │  View   │─────▶│  App service   │─────▶│ core.domain      │
    │ (thin)  │      │ (owns logic)   │      │   .access        │
    └─────────┘      └────────────────┘      │ (shared helpers) │
                                             └──────────────────┘

Rules per role
--------------
Declarant            → cases they created.
Psychologist         → cases they are assigned to (within their village).
VillageDirector      → cases of their village.
SafeguardingOfficer  → every case.
NationalDirector     → no case (aggregate analytics only).
ITAdmin              → no case.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.constants import Role
from core.domain.exceptions import PermissionDenied
from core.permissions_constants import get_capabilities

if TYPE_CHECKING:
    from accounts.models import User
    from cases.models import Case

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]


def _village_scoped(fn: ScopeFilter) -> ScopeFilter:
    def wrapper(qs: QuerySet, user: User) -> QuerySet:
        if user.village_id is None:
            return qs.none()
        return fn(qs.filter(village_id=user.village_id), user)
    return wrapper


CASE_SCOPE_RULES: dict[str, ScopeFilter] = {
    Role.DECLARANT:            lambda qs, u: qs.filter(created_by=u),
    Role.PSYCHOLOGIST:         _village_scoped(lambda qs, u: qs.filter(assignments__psychologist=u)),
    Role.VILLAGE_DIRECTOR:     _village_scoped(lambda qs, u: qs),
    Role.SAFEGUARDING_OFFICER: lambda qs, u: qs,
    Role.NATIONAL_DIRECTOR:    lambda qs, u: qs.none(),
    Role.IT_ADMIN:             lambda qs, u: qs.none(),
}


def can_access(actor: User, case: Case) -> bool:
    """
    Return ``True`` if ``actor`` may read ``case``.

    Pure with respect to its inputs except for the assignment lookup
    needed for psychologists.
    """
    role = actor.role
    if role == Role.DECLARANT:
        return case.created_by_id == actor.pk
    if role == Role.PSYCHOLOGIST:
        return case.assignments.filter(psychologist_id=actor.pk).exists()
    if role == Role.VILLAGE_DIRECTOR:
        return actor.village_id is not None and case.village_id == actor.village_id
    if role == Role.SAFEGUARDING_OFFICER:
        return True
    return False


def require_case_access(actor: User, case: Case) -> None:
    """
    Raises:
        core.domain.exceptions.PermissionDenied: If ``can_access`` is false.
    """
    if not can_access(actor, case):
        raise PermissionDenied("You do not have access to this case.")


def apply_case_scope(queryset: QuerySet, user: User) -> QuerySet:
    """
    Filter a ``Case`` queryset down to what ``user`` may see.

    Unknown roles get an empty queryset, never the unfiltered one.
    """
    scope = CASE_SCOPE_RULES.get(user.role)
    if scope is None:
        return queryset.none()
    return scope(queryset, user).distinct()


def require_capability(user: User, *capabilities: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` unless the user's role grants
    **all** of the given capabilities.

    Example::

        require_capability(user, Capability.CAN_CREATE_CASE)
    """
    caps = get_capabilities(user.role)
    missing = [c for c in capabilities if not getattr(caps, c)]
    if missing:
        raise PermissionDenied(
            message or f"Missing required capability: {', '.join(missing)}."
        )
