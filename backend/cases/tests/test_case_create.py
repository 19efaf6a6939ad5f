"""
Integration tests for filing a report: ``POST /api/cases/``.

Covers scoring at creation, psychologist assignment, attachments,
the audit entry and the creation-time failures.
"""

from __future__ import annotations

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status

from accounts.models import Village
from cases.models import (
    AssignmentRole,
    Case,
    CaseAssignment,
    CaseStatus,
    IncidentType,
    Urgency,
)
from core.constants import Role
from core.domain.audit import AuditAction
from core.models import AuditLog, Notification, NotificationKind

from .base import CaseFlowTestCase, make_user


class TestCaseCreation(CaseFlowTestCase):

    def _give_open_load(self, psychologist, count):
        for _ in range(count):
            case = Case.objects.create(
                village=self.tunis,
                created_by=self.declarant_2,
                incident_type=IncidentType.OTHER,
                urgency=Urgency.LOW,
                status=CaseStatus.IN_PROGRESS,
            )
            CaseAssignment.objects.create(
                case=case, psychologist=psychologist, assignment_role=AssignmentRole.PRIMARY,
            )

    def test_scored_and_assigned_to_least_loaded(self):
        self._give_open_load(self.psy_1, 2)
        self._give_open_load(self.psy_3, 1)

        self.login_as(self.declarant)
        resp = self.client.post(
            self.case_list_url,
            {
                "incident_type": IncidentType.SEXUAL_ABUSE,
                "urgency": Urgency.CRITICAL,
                "child_name": "Yasmine",
                "description": "",
                "attachments": [SimpleUploadedFile("photo.jpg", b"jpegdata", content_type="image/jpeg")],
            },
            format="multipart",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["score"], 80)
        self.assertEqual(resp.data["status"], CaseStatus.PENDING)
        self.assertEqual(resp.data["village"], self.tunis.pk)

        roles = {a["assignment_role"]: a["psychologist"] for a in resp.data["assignments"]}
        self.assertEqual(roles[AssignmentRole.PRIMARY], self.psy_2.pk)
        self.assertEqual(roles[AssignmentRole.SECONDARY], self.psy_3.pk)

        case = Case.objects.get(pk=resp.data["id"])
        self.assertEqual(case.attachments.count(), 1)
        self.assertEqual(case.attachments.get().mime_type, "image/jpeg")

    def test_recurrence_bonus_for_same_child(self):
        first = self.create_case(
            incident_type=IncidentType.OTHER, urgency=Urgency.LOW, child_name="Amine", description="",
        )
        second = self.create_case(
            declarant=self.declarant_2,
            incident_type=IncidentType.OTHER, urgency=Urgency.LOW, child_name="Amine", description="",
        )
        self.assertEqual(Case.objects.get(pk=first).score, 5)
        self.assertEqual(Case.objects.get(pk=second).score, 15)

    def test_keywords_raise_score(self):
        case_id = self.create_case(
            incident_type=IncidentType.OTHER,
            urgency=Urgency.LOW,
            child_name="",
            description="L'enfant parle de suicide et d'une fugue.",
        )
        self.assertEqual(Case.objects.get(pk=case_id).score, 5 + 12)

    def test_creation_notifies_and_audits(self):
        case_id = self.create_case()

        notified = set(
            Notification.objects
            .filter(case_id=case_id, kind=NotificationKind.CASE_ASSIGNED)
            .values_list("recipient_id", flat=True)
        )
        self.assertEqual(notified, {self.psy_1.pk, self.psy_2.pk})

        entry = AuditLog.objects.get(action=AuditAction.CREATE_CASE, entity_id=str(case_id))
        self.assertEqual(entry.actor, self.declarant)
        self.assertIn("score", entry.metadata)

    def test_village_defaults_to_declarant(self):
        case_id = self.create_case(declarant=self.declarant_sousse)
        case = Case.objects.get(pk=case_id)
        self.assertEqual(case.village, self.sousse)
        self.assertEqual(
            list(case.assignments.values_list("psychologist_id", flat=True)),
            [self.psy_sousse.pk],
        )

    def test_anonymous_report_hides_declarant_from_staff(self):
        case_id = self.create_case(is_anonymous=True)

        self.login_as(self.psy_1)
        resp = self.client.get(self.detail_url(case_id))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIsNone(resp.data["created_by"])
        self.assertIsNone(resp.data["created_by_name"])

        self.login_as(self.declarant)
        resp = self.client.get(self.detail_url(case_id))
        self.assertEqual(resp.data["created_by"], self.declarant.pk)

    # ── Failures ─────────────────────────────────────────────────────

    def test_only_declarants_can_file(self):
        for user in (self.psy_1, self.director, self.officer, self.national_director, self.it_admin):
            self.login_as(user)
            resp = self.client.post(
                self.case_list_url,
                {"incident_type": IncidentType.HEALTH, "urgency": Urgency.LOW},
                format="json",
            )
            self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=user.username)
            self.assertEqual(resp.data["code"], "FORBIDDEN")
        self.assertFalse(Case.objects.exists())

    def test_missing_fields_rejected(self):
        self.login_as(self.declarant)
        resp = self.client.post(self.case_list_url, {"urgency": Urgency.LOW}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("incident_type", resp.data)
        self.assertFalse(Case.objects.exists())

    def test_village_without_psychologist_rolls_back(self):
        empty = Village.objects.create(name="Bizerte")
        declarant = make_user("declarant_bizerte", Role.DECLARANT, empty)

        self.login_as(declarant)
        resp = self.client.post(
            self.case_list_url,
            {"incident_type": IncidentType.HEALTH, "urgency": Urgency.LOW},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "NO_PSYCHOLOGIST_AVAILABLE")
        self.assertFalse(Case.objects.filter(village=empty).exists())
        self.assertFalse(AuditLog.objects.filter(action=AuditAction.CREATE_CASE).exists())

    @override_settings(MAX_UPLOAD_BYTES=10, MAX_UPLOAD_MB=0)
    def test_oversized_attachment_rejected(self):
        self.login_as(self.declarant)
        resp = self.client.post(
            self.case_list_url,
            {
                "incident_type": IncidentType.HEALTH,
                "urgency": Urgency.LOW,
                "attachments": [SimpleUploadedFile("big.pdf", b"x" * 64, content_type="application/pdf")],
            },
            format="multipart",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Case.objects.exists())

    def test_unauthenticated_rejected(self):
        resp = self.client.post(
            self.case_list_url,
            {"incident_type": IncidentType.HEALTH, "urgency": Urgency.LOW},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
