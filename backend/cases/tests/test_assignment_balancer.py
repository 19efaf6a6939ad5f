"""
Tests for the load-balanced psychologist assignment.
"""

from __future__ import annotations

import itertools

import pytest

from cases.assignment import AssignmentBalancer, Candidate, select_assignees
from cases.models import AssignmentRole, Case, CaseAssignment, CaseStatus, IncidentType, Urgency
from core.constants import Role
from core.domain.exceptions import NoPsychologistAvailable
from core.models import Notification, NotificationKind


class TestSelectAssignees:

    def test_lowest_loads_win(self):
        chosen = select_assignees([Candidate(1, 2), Candidate(2, 0), Candidate(3, 1)])
        assert [c.user_id for c in chosen] == [2, 3]

    def test_tie_breaks_on_user_id(self):
        chosen = select_assignees([Candidate(9, 1), Candidate(4, 1), Candidate(7, 1)])
        assert [c.user_id for c in chosen] == [4, 7]

    def test_fewer_than_two(self):
        assert select_assignees([]) == []
        assert select_assignees([Candidate(5, 3)]) == [Candidate(5, 3)]

    @pytest.mark.parametrize("loads", list(itertools.permutations([0, 1, 2, 3])))
    def test_no_lower_load_is_skipped(self, loads):
        candidates = [Candidate(i + 1, load) for i, load in enumerate(loads)]
        chosen = select_assignees(candidates)
        rest = [c for c in candidates if c not in chosen]
        assert max(c.load for c in chosen) <= min(c.load for c in rest)


@pytest.mark.django_db
class TestAssignmentBalancer:

    @pytest.fixture()
    def declarant(self, create_user, village):
        return create_user(role=Role.DECLARANT, village=village)

    def _case(self, declarant, village, status=CaseStatus.PENDING):
        return Case.objects.create(
            village=village,
            created_by=declarant,
            incident_type=IncidentType.HEALTH,
            urgency=Urgency.LOW,
            status=status,
        )

    def _give_load(self, psychologist, declarant, village, count, status=CaseStatus.IN_PROGRESS):
        for _ in range(count):
            case = self._case(declarant, village, status=status)
            CaseAssignment.objects.create(
                case=case, psychologist=psychologist, assignment_role=AssignmentRole.PRIMARY,
            )

    def test_picks_two_least_loaded(self, create_user, declarant, village):
        busy = create_user(role=Role.PSYCHOLOGIST, village=village)
        idle = create_user(role=Role.PSYCHOLOGIST, village=village)
        light = create_user(role=Role.PSYCHOLOGIST, village=village)
        self._give_load(busy, declarant, village, 2)
        self._give_load(light, declarant, village, 1)

        case = self._case(declarant, village)
        result = AssignmentBalancer.assign(case, actor=declarant)

        assert result.primary.psychologist_id == idle.pk
        assert result.secondary.psychologist_id == light.pk
        assert case.assignments.count() == 2

    def test_closed_cases_do_not_count_as_load(self, create_user, declarant, village):
        first = create_user(role=Role.PSYCHOLOGIST, village=village)
        second = create_user(role=Role.PSYCHOLOGIST, village=village)
        third = create_user(role=Role.PSYCHOLOGIST, village=village)
        self._give_load(first, declarant, village, 3, status=CaseStatus.CLOSED)
        self._give_load(second, declarant, village, 1)
        self._give_load(third, declarant, village, 1, status=CaseStatus.FALSE_REPORT)

        loads = {c.user_id: c.load for c in AssignmentBalancer.candidates_for(village.pk)}
        assert loads == {first.pk: 0, second.pk: 1, third.pk: 0}

    def test_ignores_other_villages_and_inactive_accounts(
        self, create_user, declarant, village, other_village,
    ):
        local = create_user(role=Role.PSYCHOLOGIST, village=village)
        create_user(role=Role.PSYCHOLOGIST, village=other_village)
        create_user(role=Role.PSYCHOLOGIST, village=village, is_active=False)

        case = self._case(declarant, village)
        result = AssignmentBalancer.assign(case)

        assert result.primary.psychologist_id == local.pk
        assert result.secondary is None

    def test_single_psychologist_gets_primary_only(self, create_user, declarant, village, caplog):
        only = create_user(role=Role.PSYCHOLOGIST, village=village)
        case = self._case(declarant, village)

        with caplog.at_level("WARNING", logger="cases.assignment"):
            result = AssignmentBalancer.assign(case)

        assert result.primary.psychologist_id == only.pk
        assert result.primary.assignment_role == AssignmentRole.PRIMARY
        assert result.secondary is None
        assert "single psychologist" in caplog.text

    def test_no_psychologist_raises(self, declarant, village):
        case = self._case(declarant, village)
        with pytest.raises(NoPsychologistAvailable):
            AssignmentBalancer.assign(case)
        assert not case.assignments.exists()

    def test_assigned_psychologists_are_notified(self, create_user, declarant, village):
        a = create_user(role=Role.PSYCHOLOGIST, village=village)
        b = create_user(role=Role.PSYCHOLOGIST, village=village)
        case = self._case(declarant, village)

        AssignmentBalancer.assign(case, actor=declarant)

        recipients = set(
            Notification.objects
            .filter(case=case, kind=NotificationKind.CASE_ASSIGNED)
            .values_list("recipient_id", flat=True)
        )
        assert recipients == {a.pk, b.pk}
