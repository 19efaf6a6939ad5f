"""
Case priority scoring.

``CaseScoringService.compute_score`` is a pure function of its inputs:
no database, no clock (``as_of`` defaults to ``created_at``).  The
recurrence flag it consumes is looked up separately by
``CaseScoringService.is_recurrent``.

Score components
----------------
urgency             LOW 0 · MEDIUM 10 · HIGH 20 · CRITICAL 30
incident type       SEXUAL_ABUSE 45 · VIOLENCE 35 · NEGLECT 30 · HEALTH 25
                    BEHAVIOR 15 · CONFLICT 10 · OTHER 5
keywords            per distinct matched term, capped at 20
attachment          +5
recurrence          +10
aging               +2 per elapsed hour, capped at 20

The total is clamped to 100.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import Q
from django.utils.module_loading import import_string

from core.constants import (
    AGING_POINTS_CAP,
    AGING_POINTS_PER_HOUR,
    ATTACHMENT_BONUS,
    KEYWORD_POINTS_CAP,
    RECURRENCE_BONUS,
    RECURRENCE_WINDOW_DAYS,
    SCORE_MAX,
)

from .lexicon import KeywordLexicon
from .models import IncidentType, Urgency

if TYPE_CHECKING:
    from accounts.models import Village

logger = logging.getLogger(__name__)

URGENCY_POINTS: dict[str, int] = {
    Urgency.LOW: 0,
    Urgency.MEDIUM: 10,
    Urgency.HIGH: 20,
    Urgency.CRITICAL: 30,
}

INCIDENT_TYPE_POINTS: dict[str, int] = {
    IncidentType.SEXUAL_ABUSE: 45,
    IncidentType.VIOLENCE: 35,
    IncidentType.NEGLECT: 30,
    IncidentType.HEALTH: 25,
    IncidentType.BEHAVIOR: 15,
    IncidentType.CONFLICT: 10,
    IncidentType.OTHER: 5,
}


def get_lexicon() -> KeywordLexicon:
    return import_string(settings.CASE_SCORING_LEXICON)


class CaseScoringService:
    """
    Stateless priority-score calculator.

    All methods are ``@staticmethod``: pure functions that can be
    called from any service or from tests without a database.
    """

    @staticmethod
    def keyword_points(description: str | None, lexicon: KeywordLexicon | None = None) -> int:
        """
        Sum the tier points of every distinct lexicon term present in
        ``description``, capped at ``KEYWORD_POINTS_CAP``.
        """
        if not description:
            return 0
        lexicon = lexicon or get_lexicon()
        points = 0
        for terms, tier_points in lexicon.tiers():
            for term in terms:
                if lexicon.pattern(term).search(description):
                    points += tier_points
        return min(points, KEYWORD_POINTS_CAP)

    @staticmethod
    def aging_points(created_at: datetime, as_of: datetime | None) -> int:
        if as_of is None or as_of <= created_at:
            return 0
        hours = int((as_of - created_at).total_seconds() // 3600)
        return min(hours * AGING_POINTS_PER_HOUR, AGING_POINTS_CAP)

    @staticmethod
    def compute_score(
        *,
        urgency: str,
        incident_type: str,
        description: str | None,
        has_attachment: bool,
        recurrence: bool,
        created_at: datetime,
        as_of: datetime | None = None,
        lexicon: KeywordLexicon | None = None,
    ) -> int:
        """
        Compute the priority score of a case.

        Parameters
        ----------
        urgency, incident_type : str
            ``Urgency`` / ``IncidentType`` values.
        description : str | None
            Free text scanned for lexicon terms.
        has_attachment : bool
            At least one attachment was supplied.
        recurrence : bool
            A recent case in the same village names the same child or
            abuser (see ``is_recurrent``).
        created_at : datetime
            Creation time of the case.
        as_of : datetime | None
            Evaluation time for the aging component.  Defaults to
            ``created_at`` (aging 0), which is what is stored.

        Returns
        -------
        int
            Score in ``[0, 100]``.
        """
        score = URGENCY_POINTS.get(urgency, 0)
        score += INCIDENT_TYPE_POINTS.get(incident_type, 0)
        score += CaseScoringService.keyword_points(description, lexicon)
        if has_attachment:
            score += ATTACHMENT_BONUS
        if recurrence:
            score += RECURRENCE_BONUS
        score += CaseScoringService.aging_points(created_at, as_of)
        return max(0, min(score, SCORE_MAX))

    @staticmethod
    def is_recurrent(
        *,
        village: Village,
        child_name: str | None,
        abuser_name: str | None,
        as_of: datetime,
    ) -> bool:
        """
        ``True`` if a case of the same village created in the
        ``RECURRENCE_WINDOW_DAYS`` before ``as_of`` names the same child
        OR the same abuser (exact match).
        """
        from .models import Case

        name_match = Q()
        if child_name:
            name_match |= Q(child_name=child_name)
        if abuser_name:
            name_match |= Q(abuser_name=abuser_name)
        if not name_match:
            return False

        window_start = as_of - timedelta(days=RECURRENCE_WINDOW_DAYS)
        recurrent = (
            Case.objects
            .filter(village=village, created_at__gte=window_start, created_at__lte=as_of)
            .filter(name_match)
            .exists()
        )
        if recurrent:
            logger.debug("Recurrence detected in village=%s", village.pk)
        return recurrent
