"""
Load-balanced psychologist assignment.

Every new case gets the least-loaded psychologist of its village as
PRIMARY and the next one as SECONDARY.  Load is the number of
assignments a psychologist holds on cases that are still open
(``PENDING`` or ``IN_PROGRESS``).  Ties break on the lower user id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Sequence

from django.db.models import Count, Q

from core.constants import Role
from core.domain.exceptions import NoPsychologistAvailable
from core.domain.notifications import EMAIL, NotificationService
from core.models import NotificationKind

from .models import OPEN_STATUSES, AssignmentRole, Case, CaseAssignment

if TYPE_CHECKING:
    from accounts.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    user_id: int
    load: int


@dataclass(frozen=True)
class AssignmentResult:
    primary: CaseAssignment
    secondary: CaseAssignment | None


def select_assignees(candidates: Iterable[Candidate]) -> list[Candidate]:
    """
    Return at most two candidates ordered by ``(load, user_id)``.

    Pure; the caller decides what to do with fewer than two.
    """
    return sorted(candidates, key=lambda c: (c.load, c.user_id))[:2]


class AssignmentBalancer:

    @staticmethod
    def candidates_for(village_id: int) -> list[Candidate]:
        from accounts.models import User

        rows = (
            User.objects
            .filter(role=Role.PSYCHOLOGIST, village_id=village_id, is_active=True)
            .annotate(
                load=Count(
                    "case_assignments",
                    filter=Q(case_assignments__case__status__in=OPEN_STATUSES),
                )
            )
            .values_list("pk", "load")
        )
        return [Candidate(user_id=pk, load=load) for pk, load in rows]

    @staticmethod
    def assign(case: Case, *, actor: User | None = None) -> AssignmentResult:
        """
        Create the assignment rows for a freshly created ``case``.

        Must run inside the case-creation transaction.

        Raises
        ------
        NoPsychologistAvailable
            The village has no active psychologist.
        """
        chosen: Sequence[Candidate] = select_assignees(
            AssignmentBalancer.candidates_for(case.village_id)
        )
        if not chosen:
            raise NoPsychologistAvailable(
                f"No psychologist is available in village '{case.village}'."
            )
        if len(chosen) == 1:
            logger.warning(
                "Village %s has a single psychologist; case %s gets a primary assignment only.",
                case.village_id,
                case.pk,
            )

        assignments = [
            CaseAssignment.objects.create(
                case=case,
                psychologist_id=candidate.user_id,
                assignment_role=role,
            )
            for candidate, role in zip(chosen, (AssignmentRole.PRIMARY, AssignmentRole.SECONDARY))
        ]

        NotificationService.create(
            actor=actor,
            recipients=[a.psychologist for a in assignments],
            kind=NotificationKind.CASE_ASSIGNED,
            case=case,
            channels=(EMAIL,),
        )

        logger.info(
            "Case %s assigned: %s",
            case.pk,
            ", ".join(f"{a.assignment_role}={a.psychologist_id}" for a in assignments),
        )
        return AssignmentResult(
            primary=assignments[0],
            secondary=assignments[1] if len(assignments) > 1 else None,
        )
