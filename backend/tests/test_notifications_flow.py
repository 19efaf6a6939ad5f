from __future__ import annotations

from datetime import timedelta
from io import StringIO
from smtplib import SMTPException
from unittest import mock

from django.core import mail
from django.core.management import call_command
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from accounts.models import User, Village
from cases.models import Case, CaseStatus
from cases.services import CaseReminderService
from cases.tests.base import CaseFlowTestCase, make_user
from core.constants import Role
from core.domain.notifications import EMAIL, NotificationService
from core.models import Notification, NotificationKind


class TestNotificationsFlow(CaseFlowTestCase):

    def _age(self, case_id: int, hours: int) -> None:
        Case.objects.filter(pk=case_id).update(created_at=timezone.now() - timedelta(hours=hours))

    def _give_phones(self, *users) -> None:
        for n, user in enumerate(users, start=1):
            User.objects.filter(pk=user.pk).update(phone_number=f"+2162000000{n}")

    # ── Delivery ─────────────────────────────────────────────────────

    def test_assignment_emails_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            case_id = self.create_case(child_name="Yasmine")

        recipients = sorted(m.to[0] for m in mail.outbox)
        self.assertEqual(recipients, sorted([self.psy_1.email, self.psy_2.email]))
        for message in mail.outbox:
            self.assertIn(f"#{case_id}", message.body)
            self.assertNotIn("Yasmine", message.body)
            self.assertNotIn("Yasmine", message.subject)

    def test_failed_delivery_is_logged_and_case_kept(self):
        with mock.patch(
            "core.domain.notifications.send_mail",
            side_effect=SMTPException("relay down"),
        ):
            with self.assertLogs("core.domain.notifications", level="ERROR") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    case_id = self.create_case()

        self.assertTrue(Case.objects.filter(pk=case_id).exists())
        self.assertEqual(
            Notification.objects.filter(case_id=case_id, kind=NotificationKind.CASE_ASSIGNED).count(),
            2,
        )
        self.assertTrue(any("Delivery via email failed" in line for line in logs.output))

    def test_rolled_back_creation_sends_nothing(self):
        empty = Village.objects.create(name="Kairouan")
        declarant = make_user("declarant_kairouan", Role.DECLARANT, empty)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.login_as(declarant)
            resp = self.client.post(
                self.case_list_url,
                {"incident_type": "HEALTH", "urgency": "LOW"},
                format="json",
            )

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])

    # ── Fan-out along the workflow ───────────────────────────────────

    def test_workflow_fan_out(self):
        case_id = self.bring_to_signed()
        self.set_status(case_id, CaseStatus.CLOSED)

        def recipients(kind):
            return set(
                Notification.objects
                .filter(case_id=case_id, kind=kind)
                .values_list("recipient_id", flat=True)
            )

        self.assertEqual(recipients(NotificationKind.CASE_ASSIGNED), {self.psy_1.pk, self.psy_2.pk})
        self.assertEqual(recipients(NotificationKind.DOCUMENTS_COMPLETE), {self.director.pk})
        self.assertEqual(recipients(NotificationKind.DIRECTOR_VALIDATED), {self.officer.pk})
        self.assertEqual(recipients(NotificationKind.CASE_SIGNED), {self.psy_1.pk, self.psy_2.pk})
        self.assertEqual(recipients(NotificationKind.CASE_CLOSED), {self.declarant.pk})

        # No one outside the village or the national office is involved.
        self.assertFalse(
            Notification.objects.filter(
                case_id=case_id,
                recipient__in=[self.director_sousse, self.national_director, self.psy_3],
            ).exists()
        )

    def test_duplicate_event_creates_nothing(self):
        case_id = self.create_case()
        case = Case.objects.get(pk=case_id)

        created = NotificationService.create(
            actor=None,
            recipients=[self.psy_1],
            kind=NotificationKind.CASE_ASSIGNED,
            case=case,
            channels=(EMAIL,),
        )

        self.assertEqual(created, [])
        self.assertEqual(
            Notification.objects.filter(case=case, recipient=self.psy_1, kind=NotificationKind.CASE_ASSIGNED).count(),
            1,
        )

    def test_roles_without_inbox_are_skipped(self):
        created = NotificationService.create(
            actor=None,
            recipients=[self.national_director, self.it_admin],
            kind=NotificationKind.CASE_CLOSED,
        )
        self.assertEqual(created, [])

    # ── Pending reminders ────────────────────────────────────────────

    def test_reminder_sent_once_per_psychologist(self):
        self._give_phones(self.psy_1, self.psy_2)
        stale = self.create_case()
        fresh = self.create_case(declarant=self.declarant_2)
        self._age(stale, 25)

        self.assertEqual(CaseReminderService.send_pending_reminders(), 2)
        self.assertEqual(CaseReminderService.send_pending_reminders(), 0)

        reminded = Notification.objects.filter(kind=NotificationKind.PENDING_REMINDER)
        self.assertEqual(
            set(reminded.values_list("case_id", "recipient_id")),
            {(stale, self.psy_1.pk), (stale, self.psy_2.pk)},
        )
        self.assertFalse(reminded.filter(case_id=fresh).exists())

    def test_psychologist_without_phone_is_reminded_after_adding_one(self):
        self._give_phones(self.psy_1)
        case_id = self.create_case()
        self._age(case_id, 25)

        self.assertEqual(CaseReminderService.send_pending_reminders(), 1)
        self.assertFalse(
            Notification.objects.filter(
                kind=NotificationKind.PENDING_REMINDER, recipient=self.psy_2,
            ).exists()
        )

        User.objects.filter(pk=self.psy_2.pk).update(phone_number="+21620000099")

        self.assertEqual(CaseReminderService.send_pending_reminders(), 1)
        self.assertTrue(
            Notification.objects.filter(
                kind=NotificationKind.PENDING_REMINDER, recipient=self.psy_2, case_id=case_id,
            ).exists()
        )

    def test_started_cases_are_not_reminded(self):
        case_id = self.bring_to_in_progress()
        self._age(case_id, 48)
        self.assertEqual(CaseReminderService.send_pending_reminders(), 0)

    def test_reminder_uses_given_clock(self):
        self._give_phones(self.psy_1, self.psy_2)
        self.create_case()
        later = timezone.now() + timedelta(hours=30)
        self.assertEqual(CaseReminderService.send_pending_reminders(now=later), 2)

    @override_settings(
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="secret",
        TWILIO_WHATSAPP_NUMBER="+14155238886",
    )
    def test_reminder_goes_out_over_whatsapp(self):
        User.objects.filter(pk=self.psy_1.pk).update(phone_number="+21620000001")
        case_id = self.create_case()
        self._age(case_id, 25)

        with mock.patch("core.domain.notifications.requests.post") as post:
            with self.captureOnCommitCallbacks(execute=True):
                CaseReminderService.send_pending_reminders()

        # psy_2 has no phone number and is skipped.
        self.assertEqual(post.call_count, 1)
        args, kwargs = post.call_args
        self.assertIn("AC123", args[0])
        self.assertEqual(kwargs["data"]["To"], "whatsapp:+21620000001")
        self.assertEqual(kwargs["auth"], ("AC123", "secret"))

    @override_settings(TWILIO_ACCOUNT_SID="", TWILIO_AUTH_TOKEN="")
    def test_whatsapp_disabled_without_credentials(self):
        User.objects.filter(pk=self.psy_1.pk).update(phone_number="+21620000001")
        case_id = self.create_case()
        self._age(case_id, 25)

        with mock.patch("core.domain.notifications.requests.post") as post:
            with self.captureOnCommitCallbacks(execute=True):
                CaseReminderService.send_pending_reminders()

        post.assert_not_called()

    def test_management_command(self):
        self._give_phones(self.psy_1, self.psy_2)
        case_id = self.create_case()
        self._age(case_id, 25)

        out = StringIO()
        call_command("send_pending_reminders", stdout=out)
        self.assertIn("2 reminder(s) sent", out.getvalue())

        out = StringIO()
        call_command("send_pending_reminders", stdout=out)
        self.assertIn("0 reminder(s) sent", out.getvalue())

    def test_loop_survives_a_failed_sweep(self):
        command_module = "cases.management.commands.send_pending_reminders"
        out = StringIO()

        with mock.patch.object(
            CaseReminderService,
            "send_pending_reminders",
            side_effect=[RuntimeError("twilio exploded"), 3],
        ) as sweep, mock.patch(
            f"{command_module}.time.sleep", side_effect=[None, KeyboardInterrupt],
        ):
            with self.assertLogs(command_module, level="ERROR") as logs:
                call_command("send_pending_reminders", "--loop", "--interval", "1", stdout=out)

        self.assertEqual(sweep.call_count, 2)
        self.assertIn("Reminder sweep failed", logs.output[0])
        self.assertIn("3 reminder(s) sent", out.getvalue())
        self.assertIn("Reminder loop stopped", out.getvalue())

    # ── Inbox ────────────────────────────────────────────────────────

    def test_inbox_and_mark_as_read(self):
        case_id = self.create_case()
        self.login_as(self.psy_1)

        resp = self.client.get(reverse("core:notification-unread-count"))
        self.assertEqual(resp.data, {"unread": 1})

        resp = self.client.get(reverse("core:notification-list"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data), 1)
        note = resp.data[0]
        self.assertEqual(note["kind"], NotificationKind.CASE_ASSIGNED)
        self.assertEqual(note["case_id"], case_id)
        self.assertFalse(note["is_read"])

        url = reverse("core:notification-mark-as-read", kwargs={"pk": note["id"]})
        resp = self.client.post(url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["is_read"])
        first_read_at = resp.data["read_at"]

        resp = self.client.post(url)
        self.assertEqual(resp.data["read_at"], first_read_at)

        resp = self.client.get(reverse("core:notification-list"), {"unread": "true"})
        self.assertEqual(resp.data, [])
        resp = self.client.get(reverse("core:notification-unread-count"))
        self.assertEqual(resp.data, {"unread": 0})

    def test_cannot_read_someone_elses_notification(self):
        self.create_case()
        note = Notification.objects.filter(recipient=self.psy_1).first()

        self.login_as(self.psy_2)
        resp = self.client.post(reverse("core:notification-mark-as-read", kwargs={"pk": note.pk}))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        note.refresh_from_db()
        self.assertIsNone(note.read_at)

    def test_missing_notification(self):
        self.login_as(self.psy_1)
        resp = self.client.post(reverse("core:notification-mark-as-read", kwargs={"pk": 424242}))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
