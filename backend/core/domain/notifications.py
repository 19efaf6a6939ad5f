"""
core.domain.notifications — Notification creation and out-of-band delivery.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **Record first, deliver after commit** — the ``Notification`` row is
  written inside the caller's transaction; e-mail / WhatsApp delivery is
  scheduled with ``transaction.on_commit`` so that a rolled-back
  operation never notifies anyone, and a failed delivery never rolls
  back the operation.
* **Idempotent per (recipient, case, kind)** — a database constraint
  guarantees at most one row; a duplicate insert inside a savepoint is
  treated as "already sent" and produces no delivery.
* **Delivery is best effort** — channel errors are logged with the
  traceback and dropped.  Message bodies never contain child or abuser
  names.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.create(
        actor=request.user,
        recipients=directors,
        kind=NotificationKind.DOCUMENTS_COMPLETE,
        case=case,
        channels=(EMAIL,),
    )
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Iterable, Sequence

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.db import IntegrityError, models, transaction

from core.permissions_constants import get_capabilities

if TYPE_CHECKING:
    from accounts.models import User
    from cases.models import Case
    from core.models import Notification

logger = logging.getLogger(__name__)

EMAIL = "email"
WHATSAPP = "whatsapp"

# ── Kind → human-readable templates ─────────────────────────────────
# Templates may use {case_id} and {village}.
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # kind: (title_template, message_template)
    "CASE_ASSIGNED":      ("Case Assigned",           "You have been assigned to report #{case_id} ({village})."),
    "DOCUMENTS_COMPLETE": ("Case Ready for Review",   "Report #{case_id} has its initial form and DPE report and awaits your validation."),
    "DIRECTOR_VALIDATED": ("Director Validation",     "Report #{case_id} ({village}) was validated by the village director and awaits safeguarding validation."),
    "CASE_SIGNED":        ("Case Signed",             "Report #{case_id} has been signed by the safeguarding office."),
    "CASE_CLOSED":        ("Case Closed",             "Report #{case_id} has been closed."),
    "CASE_FALSE_REPORT":  ("Case Classified",         "Report #{case_id} was classified as a false report."),
    "PENDING_REMINDER":   ("Case Still Pending",      "Report #{case_id} ({village}) has been pending for more than {hours} hours."),
}


# ════════════════════════════════════════════════════════════════════
#  Delivery channels
# ════════════════════════════════════════════════════════════════════

class EmailChannel:
    """Sends the notification to the recipient's e-mail address."""

    name = EMAIL

    @staticmethod
    def send(notification: Notification) -> None:
        address = notification.recipient.email
        if not address:
            logger.info("No e-mail address for user=%s; skipping.", notification.recipient_id)
            return
        send_mail(
            subject=f"[SOS] {notification.title}",
            message=notification.message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[address],
            fail_silently=False,
        )


class WhatsAppChannel:
    """
    Sends the notification through the Twilio WhatsApp REST API.

    Disabled (no-op) unless ``TWILIO_ACCOUNT_SID``, ``TWILIO_AUTH_TOKEN``
    and ``TWILIO_WHATSAPP_NUMBER`` are all configured.
    """

    name = WHATSAPP
    API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

    @classmethod
    def is_configured(cls) -> bool:
        return bool(
            settings.TWILIO_ACCOUNT_SID
            and settings.TWILIO_AUTH_TOKEN
            and settings.TWILIO_WHATSAPP_NUMBER
        )

    @classmethod
    def send(cls, notification: Notification) -> None:
        phone = notification.recipient.phone_number
        if not cls.is_configured() or not phone:
            logger.info(
                "WhatsApp delivery skipped for user=%s (configured=%s).",
                notification.recipient_id,
                cls.is_configured(),
            )
            return
        response = requests.post(
            cls.API_URL.format(sid=settings.TWILIO_ACCOUNT_SID),
            data={
                "From": f"whatsapp:{settings.TWILIO_WHATSAPP_NUMBER}",
                "To": f"whatsapp:{phone}",
                "Body": f"{notification.title}\n{notification.message}",
            },
            auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
        response.raise_for_status()


CHANNELS = {
    EMAIL: EmailChannel,
    WHATSAPP: WhatsAppChannel,
}


def deliver(notifications: Sequence[Notification], channels: Sequence[str]) -> None:
    """
    Push already-persisted notifications through the given channels.

    Runs after commit.  Every failure is logged and dropped so that one
    unreachable recipient never blocks the others.
    """
    for notification in notifications:
        for channel_name in channels:
            channel = CHANNELS[channel_name]
            try:
                channel.send(notification)
            except Exception:
                logger.exception(
                    "Delivery via %s failed for notification=%s (user=%s)",
                    channel_name,
                    notification.pk,
                    notification.recipient_id,
                )


# ════════════════════════════════════════════════════════════════════
#  Service
# ════════════════════════════════════════════════════════════════════

class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def render(cls, kind: str, case: Case | None, **extra) -> tuple[str, str]:
        title, message = _EVENT_TEMPLATES.get(
            kind,
            (kind.replace("_", " ").title(), f"Event: {kind}"),
        )
        context = {
            "case_id": getattr(case, "pk", ""),
            "village": getattr(getattr(case, "village", None), "name", ""),
            "hours": settings.PENDING_REMINDER_HOURS,
            **extra,
        }
        return title, message.format(**context)

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        kind: str,
        case: Case | None = None,
        channels: Sequence[str] = (),
    ) -> list[Notification]:
        """
        Create one ``Notification`` per eligible recipient.

        Args:
            actor:      The user who performed the action (``None`` for
                        the scheduled reminder sweep).  Used for logging.
            recipients: A single ``User`` or iterable of ``User``
                        instances.  Users whose role cannot receive
                        notifications are skipped.
            kind:       A ``NotificationKind`` value.
            case:       The case the notification is about.  When set,
                        the notification is created at most once per
                        ``(recipient, case, kind)``.
            channels:   External channels to deliver through after the
                        surrounding transaction commits.

        Returns:
            List of newly created ``Notification`` instances (duplicates
            are not included).
        """
        from core.models import Notification  # lazy import — avoids circular deps

        # Normalise recipients to a list
        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for kind=%s case=%s by actor=%s",
                kind,
                getattr(case, "pk", None),
                getattr(actor, "pk", None),
            )
            return []

        title, message = cls.render(kind, case)

        created: list[Notification] = []
        for recipient in recipients:
            if not get_capabilities(recipient.role).can_receive_notifications:
                logger.debug("User=%s cannot receive notifications; skipped.", recipient.pk)
                continue
            try:
                with transaction.atomic():
                    notif = Notification.objects.create(
                        recipient=recipient,
                        case=case,
                        kind=kind,
                        title=title,
                        message=message,
                    )
            except IntegrityError:
                logger.info(
                    "Notification [%s] for user=%s case=%s already sent.",
                    kind,
                    recipient.pk,
                    getattr(case, "pk", None),
                )
                continue
            created.append(notif)

        if created and channels:
            transaction.on_commit(partial(deliver, created, tuple(channels)))

        logger.info(
            "Created %d notification(s) [%s] case=%s by actor=%s",
            len(created),
            kind,
            getattr(case, "pk", None),
            getattr(actor, "pk", None),
        )
        return created
