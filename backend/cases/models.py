"""
Cases app models.

Covers the complete report lifecycle: declaration with its attachments,
psychologist assignment, the two required documents, the village
director's validation and the safeguarding officer's final signature.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseStatus(models.TextChoices):
    """
    ``PENDING → IN_PROGRESS → {SIGNED | FALSE_REPORT}``, ``SIGNED → CLOSED``.

    ``FALSE_REPORT`` and ``CLOSED`` are terminal.
    """

    PENDING = "PENDING", "Pending"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    SIGNED = "SIGNED", "Signed"
    FALSE_REPORT = "FALSE_REPORT", "False Report"
    CLOSED = "CLOSED", "Closed"


# Statuses that count towards a psychologist's workload.
OPEN_STATUSES = (CaseStatus.PENDING, CaseStatus.IN_PROGRESS)
TERMINAL_STATUSES = (CaseStatus.FALSE_REPORT, CaseStatus.CLOSED)


class IncidentType(models.TextChoices):
    HEALTH = "HEALTH", "Health"
    BEHAVIOR = "BEHAVIOR", "Behavior"
    VIOLENCE = "VIOLENCE", "Violence"
    SEXUAL_ABUSE = "SEXUAL_ABUSE", "Sexual Abuse"
    NEGLECT = "NEGLECT", "Neglect"
    CONFLICT = "CONFLICT", "Conflict"
    OTHER = "OTHER", "Other"


class Urgency(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    CRITICAL = "CRITICAL", "Critical"


class AssignmentRole(models.TextChoices):
    PRIMARY = "PRIMARY", "Primary"
    SECONDARY = "SECONDARY", "Secondary"


class DocumentType(models.TextChoices):
    INITIAL_FORM = "INITIAL_FORM", "Initial Form"
    DPE_REPORT = "DPE_REPORT", "DPE Report"


REQUIRED_DOCUMENT_TYPES = frozenset(DocumentType.values)


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    A child-protection report ("signalement").

    * ``score`` is computed once at creation and never recomputed.
    * Each validation block (director, safeguarding) is written exactly
      once; the safeguarding block can only exist after the director's.
    """

    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        default=CaseStatus.PENDING,
        verbose_name="Status",
        db_index=True,
    )
    score = models.PositiveSmallIntegerField(
        default=0,
        verbose_name="Priority Score",
        help_text="0-100, snapshot taken at creation.",
    )
    is_anonymous = models.BooleanField(default=False, verbose_name="Anonymous")
    village = models.ForeignKey(
        "accounts.Village",
        on_delete=models.PROTECT,
        related_name="cases",
        verbose_name="Village",
    )
    incident_type = models.CharField(
        max_length=20,
        choices=IncidentType.choices,
        verbose_name="Incident Type",
    )
    urgency = models.CharField(
        max_length=10,
        choices=Urgency.choices,
        verbose_name="Urgency",
    )
    abuser_name = models.CharField(max_length=255, blank=True, default="", verbose_name="Abuser Name")
    child_name = models.CharField(max_length=255, blank=True, default="", verbose_name="Child Name")
    description = models.TextField(blank=True, default="", verbose_name="Description")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_cases",
        verbose_name="Created By",
    )

    # ── Village director validation ─────────────────────────────────
    dir_village_validated_at = models.DateTimeField(null=True, blank=True)
    dir_village_validated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="director_validated_cases",
    )
    dir_village_signature_path = models.CharField(max_length=500, blank=True, default="")
    dir_village_signature_filename = models.CharField(max_length=255, blank=True, default="")
    dir_village_signature_mime_type = models.CharField(max_length=100, blank=True, default="")

    # ── Safeguarding validation ─────────────────────────────────────
    sauvegarde_validated_at = models.DateTimeField(null=True, blank=True)
    sauvegarde_validated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="safeguarding_validated_cases",
    )
    sauvegarde_signature_path = models.CharField(max_length=500, blank=True, default="")
    sauvegarde_signature_filename = models.CharField(max_length=255, blank=True, default="")
    sauvegarde_signature_mime_type = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-score", "created_at"]
        indexes = [
            models.Index(fields=["village", "status"], name="case_village_status_idx"),
            models.Index(fields=["village", "created_at"], name="case_village_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(sauvegarde_validated_at__isnull=True)
                    | models.Q(dir_village_validated_at__isnull=False)
                ),
                name="case_safeguarding_requires_director_validation",
            ),
            models.CheckConstraint(
                condition=models.Q(score__lte=100),
                name="case_score_at_most_100",
            ),
        ]

    def __str__(self):
        return f"Case #{self.pk} [{self.get_status_display()}]"

    @property
    def is_director_validated(self) -> bool:
        return self.dir_village_validated_at is not None

    @property
    def is_safeguarding_validated(self) -> bool:
        return self.sauvegarde_validated_at is not None

    def document_types(self) -> set[str]:
        return set(self.documents.values_list("doc_type", flat=True).distinct())

    def is_document_complete(self) -> bool:
        return REQUIRED_DOCUMENT_TYPES <= self.document_types()


class CaseAssignment(models.Model):
    """
    A psychologist assigned to a case.  Created only during case
    creation and never modified afterwards.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="assignments",
    )
    psychologist = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="case_assignments",
    )
    assignment_role = models.CharField(max_length=10, choices=AssignmentRole.choices)
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Case Assignment"
        verbose_name_plural = "Case Assignments"
        ordering = ["assignment_role"]
        constraints = [
            models.UniqueConstraint(
                fields=["case", "assignment_role"],
                name="uniq_assignment_role_per_case",
            ),
            models.UniqueConstraint(
                fields=["case", "psychologist"],
                name="uniq_psychologist_per_case",
            ),
        ]

    def __str__(self):
        return f"{self.psychologist_id} → case {self.case_id} ({self.assignment_role})"


class _StoredFileModel(models.Model):
    file_path = models.CharField(max_length=500)
    filename = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100)
    size_bytes = models.PositiveBigIntegerField()
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True


class CaseDocument(_StoredFileModel):
    """A psychologist-authored document (initial form or DPE report)."""

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="documents",
    )
    doc_type = models.CharField(max_length=20, choices=DocumentType.choices, db_index=True)

    class Meta:
        verbose_name = "Case Document"
        verbose_name_plural = "Case Documents"
        ordering = ["uploaded_at", "id"]

    def __str__(self):
        return f"{self.get_doc_type_display()} for case {self.case_id}"


class CaseAttachment(_StoredFileModel):
    """A file supplied by the declarant when filing the report."""

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="attachments",
    )

    class Meta:
        verbose_name = "Case Attachment"
        verbose_name_plural = "Case Attachments"
        ordering = ["uploaded_at", "id"]

    def __str__(self):
        return f"{self.filename} (case {self.case_id})"
