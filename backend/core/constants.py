"""
Core constants — **Single Source of Truth** for project-wide enumerations
and magic numbers.

Any business rule that references one of these values should import it
from here instead of hardcoding.  This avoids drift between the
permission matrix, the models and the service layer.
"""

from django.db import models


class Role(models.TextChoices):
    """
    The fixed set of roles.  A user holds exactly one.

    Roles are *not* admin-editable: capabilities are compiled into
    ``core.permissions_constants.PERMISSION_MATRIX``.
    """

    DECLARANT = "DECLARANT", "Declarant"
    PSYCHOLOGIST = "PSYCHOLOGIST", "Psychologist"
    VILLAGE_DIRECTOR = "VILLAGE_DIRECTOR", "Village Director"
    SAFEGUARDING_OFFICER = "SAFEGUARDING_OFFICER", "Safeguarding Officer"
    NATIONAL_DIRECTOR = "NATIONAL_DIRECTOR", "National Director"
    IT_ADMIN = "IT_ADMIN", "IT Administrator"


# Roles that must be affiliated with exactly one village.
VILLAGE_BOUND_ROLES: frozenset[str] = frozenset({
    Role.DECLARANT,
    Role.PSYCHOLOGIST,
    Role.VILLAGE_DIRECTOR,
})

# ── Scoring ─────────────────────────────────────────────────────────
SCORE_MAX: int = 100
KEYWORD_POINTS_CAP: int = 20
AGING_POINTS_PER_HOUR: int = 2
AGING_POINTS_CAP: int = 20
ATTACHMENT_BONUS: int = 5
RECURRENCE_BONUS: int = 10
RECURRENCE_WINDOW_DAYS: int = 180

# ── Listing ─────────────────────────────────────────────────────────
NOTIFICATION_LIST_LIMIT: int = 50
