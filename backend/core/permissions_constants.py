"""
Permissions Constants — **Single Source of Truth**

Every capability check in the code base (services, serializers, views,
the ``seed_demo`` command) MUST go through the matrix defined here.

Organisation
------------
- ``Capability`` lists the capability names as constants so that
  callers never spell them as bare strings.
- ``Capabilities`` is the frozen record of what one role may do.
- ``PERMISSION_MATRIX`` maps every ``Role`` to its ``Capabilities``.
  It is a read-only mapping built once at import time; a role without
  an entry prevents the module from loading.

Capabilities depend on the role only.  Whether a *specific* case is
visible to a user is decided by ``core.domain.access.can_access``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from types import MappingProxyType
from typing import Mapping

from django.core.exceptions import ImproperlyConfigured
from django.db import models

from core.constants import Role


class SensitiveContentAccess(models.TextChoices):
    """How much of a case's sensitive content a role may read."""

    NONE = "NONE", "None"
    LIMITED = "LIMITED", "Limited"
    FULL_ASSIGNED = "FULL_ASSIGNED", "Full (assigned cases)"
    FULL = "FULL", "Full"


# ════════════════════════════════════════════════════════════════════
#  Capability names
# ════════════════════════════════════════════════════════════════════

class Capability:
    """Boolean capability names (attribute names on ``Capabilities``)."""

    CAN_CREATE_CASE = "can_create_case"
    CAN_VIEW_OWN_CASES = "can_view_own_cases"
    CAN_VIEW_VILLAGE_CASES = "can_view_village_cases"
    CAN_VIEW_ALL_VILLAGES_CASES = "can_view_all_villages_cases"
    CAN_WRITE_CASE_DOCUMENTS = "can_write_case_documents"
    CAN_APPROVE_VALIDATION = "can_approve_validation"
    CAN_CLOSE_CASE = "can_close_case"
    CAN_VIEW_NATIONAL_ANALYTICS = "can_view_national_analytics"
    CAN_MANAGE_USERS = "can_manage_users"
    CAN_RECEIVE_NOTIFICATIONS = "can_receive_notifications"


@dataclass(frozen=True)
class Capabilities:
    can_create_case: bool = False
    can_view_own_cases: bool = False
    can_view_village_cases: bool = False
    can_view_all_villages_cases: bool = False
    can_write_case_documents: bool = False
    can_approve_validation: bool = False
    can_close_case: bool = False
    can_view_national_analytics: bool = False
    can_manage_users: bool = False
    can_receive_notifications: bool = False
    sensitive_content_access: str = SensitiveContentAccess.NONE

    def as_dict(self) -> dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ════════════════════════════════════════════════════════════════════
#  The matrix
# ════════════════════════════════════════════════════════════════════

_MATRIX: dict[str, Capabilities] = {
    Role.DECLARANT: Capabilities(
        can_create_case=True,
        can_view_own_cases=True,
        can_receive_notifications=True,
        sensitive_content_access=SensitiveContentAccess.NONE,
    ),
    Role.PSYCHOLOGIST: Capabilities(
        can_view_village_cases=True,
        can_write_case_documents=True,
        can_close_case=True,
        can_receive_notifications=True,
        sensitive_content_access=SensitiveContentAccess.FULL_ASSIGNED,
    ),
    Role.VILLAGE_DIRECTOR: Capabilities(
        can_view_village_cases=True,
        can_approve_validation=True,
        can_receive_notifications=True,
        sensitive_content_access=SensitiveContentAccess.LIMITED,
    ),
    Role.SAFEGUARDING_OFFICER: Capabilities(
        can_view_all_villages_cases=True,
        can_approve_validation=True,
        can_receive_notifications=True,
        sensitive_content_access=SensitiveContentAccess.FULL,
    ),
    Role.NATIONAL_DIRECTOR: Capabilities(
        can_view_national_analytics=True,
        sensitive_content_access=SensitiveContentAccess.NONE,
    ),
    Role.IT_ADMIN: Capabilities(
        can_manage_users=True,
        sensitive_content_access=SensitiveContentAccess.NONE,
    ),
}

_missing = set(Role.values) - set(_MATRIX)
if _missing:
    raise ImproperlyConfigured(
        f"PERMISSION_MATRIX has no entry for role(s): {', '.join(sorted(_missing))}."
    )

PERMISSION_MATRIX: Mapping[str, Capabilities] = MappingProxyType(_MATRIX)


def get_capabilities(role: str) -> Capabilities:
    """
    Return the capabilities granted to ``role``.

    Parameters
    ----------
    role : str
        A ``Role`` value.

    Returns
    -------
    Capabilities

    Raises
    ------
    core.domain.exceptions.PermissionDenied
        If ``role`` is not a known role.  Unknown roles never receive a
        default grant.
    """
    from core.domain.exceptions import PermissionDenied

    try:
        return PERMISSION_MATRIX[role]
    except (KeyError, TypeError):
        raise PermissionDenied(f"Unknown role: {role!r}.")
