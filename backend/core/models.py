"""
Core app models.

Provides the abstract timestamp base plus the two cross-cutting,
append-only records every workflow writes to: ``Notification`` and
``AuditLog``.
"""

from django.conf import settings
from django.db import models

from core.domain.exceptions import Conflict


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class NotificationKind(models.TextChoices):
    CASE_ASSIGNED = "CASE_ASSIGNED", "Case assigned"
    DOCUMENTS_COMPLETE = "DOCUMENTS_COMPLETE", "Documents complete"
    DIRECTOR_VALIDATED = "DIRECTOR_VALIDATED", "Validated by village director"
    CASE_SIGNED = "CASE_SIGNED", "Case signed"
    CASE_CLOSED = "CASE_CLOSED", "Case closed"
    CASE_FALSE_REPORT = "CASE_FALSE_REPORT", "Case marked as false report"
    PENDING_REMINDER = "PENDING_REMINDER", "Case pending for too long"


class Notification(models.Model):
    """
    In-app notification, the durable record of one fan-out event.

    At most one notification exists per ``(recipient, case, kind)``;
    the constraint is what makes the fan-out idempotent.  External
    delivery (e-mail / WhatsApp) is triggered after commit and is never
    recorded here.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    case = models.ForeignKey(
        "cases.Case",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
        verbose_name="Case",
    )
    kind = models.CharField(
        max_length=32,
        choices=NotificationKind.choices,
        verbose_name="Kind",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    read_at = models.DateTimeField(null=True, blank=True, verbose_name="Read At")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "read_at"], name="notif_recipient_read_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["recipient", "case", "kind"],
                condition=models.Q(case__isnull=False),
                name="uniq_notification_per_recipient_case_kind",
            ),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.title}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class AuditLog(models.Model):
    """
    Immutable trail of every mutating operation.

    Rows are written once by ``core.domain.audit.record`` and never
    updated or deleted.
    """

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_entries",
        verbose_name="Actor",
    )
    action = models.CharField(max_length=64, db_index=True, verbose_name="Action")
    entity = models.CharField(max_length=64, verbose_name="Entity")
    entity_id = models.CharField(max_length=64, verbose_name="Entity ID")
    metadata = models.JSONField(default=dict, blank=True, verbose_name="Metadata")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Audit Log Entry"
        verbose_name_plural = "Audit Log"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["entity", "entity_id"], name="audit_entity_idx"),
        ]

    def __str__(self):
        return f"{self.action} {self.entity}#{self.entity_id} by {self.actor_id}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise Conflict("Audit log entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise Conflict("Audit log entries cannot be deleted.")
