"""
Unit tests for ``CaseScoringService``.

``compute_score`` and ``keyword_points`` are pure and run without a
database; ``is_recurrent`` is covered against real rows at the end.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.utils import timezone

from cases.lexicon import ENGLISH_LEXICON, FRENCH_LEXICON
from cases.models import Case, IncidentType, Urgency
from cases.scoring import INCIDENT_TYPE_POINTS, URGENCY_POINTS, CaseScoringService
from core.constants import Role

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=dt_timezone.utc)


def _score(**overrides) -> int:
    params = dict(
        urgency=Urgency.LOW,
        incident_type=IncidentType.OTHER,
        description="",
        has_attachment=False,
        recurrence=False,
        created_at=T0,
        lexicon=FRENCH_LEXICON,
    )
    params.update(overrides)
    return CaseScoringService.compute_score(**params)


class TestComputeScore:

    def test_critical_sexual_abuse_with_attachment(self):
        score = _score(
            urgency=Urgency.CRITICAL,
            incident_type=IncidentType.SEXUAL_ABUSE,
            has_attachment=True,
        )
        assert score == 80

    def test_minimum_inputs(self):
        assert _score() == URGENCY_POINTS[Urgency.LOW] + INCIDENT_TYPE_POINTS[IncidentType.OTHER]

    def test_recurrence_adds_ten(self):
        assert _score(recurrence=True) - _score() == 10

    def test_clamped_to_one_hundred(self):
        score = _score(
            urgency=Urgency.CRITICAL,
            incident_type=IncidentType.SEXUAL_ABUSE,
            description="suicide viol arme agression",
            has_attachment=True,
            recurrence=True,
            as_of=T0 + timedelta(days=3),
        )
        assert score == 100

    def test_deterministic(self):
        kwargs = dict(
            urgency=Urgency.HIGH,
            incident_type=IncidentType.NEGLECT,
            description="Peur et insomnie depuis la fugue.",
            has_attachment=True,
        )
        assert _score(**kwargs) == _score(**kwargs)

    def test_stored_snapshot_has_no_aging(self):
        assert _score(as_of=None) == _score(as_of=T0)

    @pytest.mark.parametrize("incident_type", IncidentType.values)
    def test_monotonic_in_urgency(self, incident_type):
        ordered = [Urgency.LOW, Urgency.MEDIUM, Urgency.HIGH, Urgency.CRITICAL]
        scores = [_score(urgency=u, incident_type=incident_type) for u in ordered]
        assert scores == sorted(scores)

    @pytest.mark.parametrize("urgency", Urgency.values)
    def test_monotonic_in_incident_severity(self, urgency):
        by_severity = sorted(IncidentType.values, key=INCIDENT_TYPE_POINTS.__getitem__)
        scores = [_score(urgency=urgency, incident_type=t) for t in by_severity]
        assert scores == sorted(scores)

    @pytest.mark.parametrize(
        "urgency,incident_type,has_attachment,recurrence",
        [
            (Urgency.LOW, IncidentType.OTHER, False, False),
            (Urgency.CRITICAL, IncidentType.SEXUAL_ABUSE, True, True),
            (Urgency.MEDIUM, IncidentType.HEALTH, True, False),
        ],
    )
    def test_bounded(self, urgency, incident_type, has_attachment, recurrence):
        score = _score(
            urgency=urgency,
            incident_type=incident_type,
            description="arme fracture crise " * 10,
            has_attachment=has_attachment,
            recurrence=recurrence,
            as_of=T0 + timedelta(hours=500),
        )
        assert 0 <= score <= 100


class TestKeywordPoints:

    def test_one_severe_one_mild(self):
        text = "L'enfant parle de suicide et d'une fugue récente."
        assert CaseScoringService.keyword_points(text, FRENCH_LEXICON) == 12

    def test_capped_at_twenty(self):
        text = "suicide, viol, arme, agression"
        assert CaseScoringService.keyword_points(text, FRENCH_LEXICON) == 20

    def test_repeated_term_counts_once(self):
        text = "crise crise crise"
        assert CaseScoringService.keyword_points(text, FRENCH_LEXICON) == 2

    def test_case_insensitive_whole_word(self):
        assert CaseScoringService.keyword_points("FRACTURE du bras", FRENCH_LEXICON) == 5
        # "violence" must not match the term "viol"
        assert CaseScoringService.keyword_points("violence verbale", FRENCH_LEXICON) == 0

    def test_multi_word_term(self):
        assert CaseScoringService.keyword_points("a death threat was made", ENGLISH_LEXICON) == 10

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_description(self, text):
        assert CaseScoringService.keyword_points(text, FRENCH_LEXICON) == 0

    def test_default_lexicon_comes_from_settings(self, settings):
        settings.CASE_SCORING_LEXICON = "cases.lexicon.ENGLISH_LEXICON"
        assert CaseScoringService.keyword_points("anxiety") == 2


class TestAgingPoints:

    @pytest.mark.parametrize(
        "elapsed,expected",
        [
            (timedelta(0), 0),
            (timedelta(minutes=59), 0),
            (timedelta(hours=1), 2),
            (timedelta(hours=5, minutes=30), 10),
            (timedelta(hours=10), 20),
            (timedelta(days=30), 20),
        ],
    )
    def test_two_points_per_hour_capped(self, elapsed, expected):
        assert CaseScoringService.aging_points(T0, T0 + elapsed) == expected

    def test_clock_before_creation(self):
        assert CaseScoringService.aging_points(T0, T0 - timedelta(hours=3)) == 0


@pytest.mark.django_db
class TestRecurrence:

    @pytest.fixture()
    def declarant(self, create_user, village):
        return create_user(role=Role.DECLARANT, village=village)

    def _case(self, declarant, village, **fields):
        return Case.objects.create(
            village=village,
            created_by=declarant,
            incident_type=IncidentType.VIOLENCE,
            urgency=Urgency.HIGH,
            **fields,
        )

    def test_same_child_same_village(self, declarant, village):
        self._case(declarant, village, child_name="Amine")
        assert CaseScoringService.is_recurrent(
            village=village, child_name="Amine", abuser_name="", as_of=timezone.now(),
        )

    def test_abuser_match_alone_is_enough(self, declarant, village):
        self._case(declarant, village, child_name="Amine", abuser_name="X")
        assert CaseScoringService.is_recurrent(
            village=village, child_name="Sami", abuser_name="X", as_of=timezone.now(),
        )

    def test_other_village_does_not_count(self, declarant, village, other_village):
        self._case(declarant, village, child_name="Amine")
        assert not CaseScoringService.is_recurrent(
            village=other_village, child_name="Amine", abuser_name="", as_of=timezone.now(),
        )

    def test_outside_window(self, declarant, village):
        case = self._case(declarant, village, child_name="Amine")
        Case.objects.filter(pk=case.pk).update(created_at=timezone.now() - timedelta(days=181))
        assert not CaseScoringService.is_recurrent(
            village=village, child_name="Amine", abuser_name="", as_of=timezone.now(),
        )

    def test_no_names_never_recurs(self, declarant, village):
        self._case(declarant, village)
        assert not CaseScoringService.is_recurrent(
            village=village, child_name="", abuser_name=None, as_of=timezone.now(),
        )
