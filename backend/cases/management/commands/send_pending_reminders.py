"""
Management command: send_pending_reminders
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Reminds assigned psychologists (WhatsApp) of cases still ``PENDING``
after ``PENDING_REMINDER_HOURS``.  Each psychologist is reminded at most
once per case, so the command can run as often as needed.

Usage::

    python manage.py send_pending_reminders            # one sweep (cron)
    python manage.py send_pending_reminders --loop     # run forever
    python manage.py send_pending_reminders --loop --interval 5
"""

import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from cases.services import CaseReminderService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Sends a one-time reminder for every case left pending too long."

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep sweeping every --interval minutes until interrupted.",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=settings.PENDING_REMINDER_INTERVAL_MIN,
            help="Minutes between sweeps in --loop mode "
                 "(default: PENDING_REMINDER_INTERVAL_MIN).",
        )

    def handle(self, *args, **options):
        if not options["loop"]:
            sent = CaseReminderService.send_pending_reminders()
            self.stdout.write(self.style.SUCCESS(f"  ✔  {sent} reminder(s) sent."))
            return

        interval_seconds = max(1, options["interval"]) * 60
        self.stdout.write(self.style.MIGRATE_HEADING(
            f"Pending-case reminder loop started (every {interval_seconds // 60} min)."
        ))
        try:
            while True:
                try:
                    sent = CaseReminderService.send_pending_reminders()
                    self.stdout.write(f"  ✔  {sent} reminder(s) sent.")
                except Exception:
                    logger.exception("Reminder sweep failed; retrying next interval.")
                time.sleep(interval_seconds)
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING("Reminder loop stopped."))
