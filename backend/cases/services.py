"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``CaseQueryService``       — Role-scoped listing and guarded retrieval.
- ``CaseCreationService``    — Declaration: score, assign, store attachments.
- ``CaseWorkflowService``    — Psychologist-driven status transitions.
- ``CaseDocumentService``    — Initial form / DPE report uploads.
- ``CaseValidationService``  — Director and safeguarding signatures.
- ``CaseReminderService``    — Sweep for cases left pending too long.

Workflow State-Machine Overview
--------------------------------
  PENDING
    → IN_PROGRESS              (assigned psychologist starts work)
    → FALSE_REPORT             (assigned psychologist)
  IN_PROGRESS
    → FALSE_REPORT             (assigned psychologist)
    ·  director validation     (village director; both documents required)
    → SIGNED                   (safeguarding validation; implicit)
  SIGNED
    → CLOSED                   (assigned psychologist)

  FALSE_REPORT and CLOSED are terminal.  There is no backward move.

Notification fan-out
--------------------
  creation               → assigned psychologists       (email)
  both documents present → village directors            (email, once)
  director validation    → safeguarding officers        (email, once)
  signed                 → assigned psychologists       (email)
  closed / false report  → declarant                    (email)
  pending > N hours      → assigned psychologists with a phone number (WhatsApp, once)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Iterable

from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from core.constants import Role
from core.domain.access import apply_case_scope, require_capability, require_case_access
from core.domain.audit import AuditAction, record
from core.domain.exceptions import (
    AlreadyValidated,
    DirVillageSignatureRequired,
    DirVillageValidationRequired,
    DomainError,
    FileTooLarge,
    InvalidCaseStatus,
    MissingRequiredDocuments,
    NotFound,
    OnlySignedCaseCanBeClosed,
    PermissionDenied,
    SignatureFileUnsupported,
    SignatureRequired,
    SignedCaseCanOnlyBeClosed,
)
from core.domain.notifications import EMAIL, WHATSAPP, NotificationService
from core.domain.storage import PendingFiles, is_signature_file
from core.domain.transactions import compare_and_set, lock_for_update
from core.models import NotificationKind
from core.permissions_constants import Capability

from .assignment import AssignmentBalancer
from .models import (
    Case,
    CaseAttachment,
    CaseDocument,
    CaseStatus,
)
from .scoring import CaseScoringService

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Valid transition map
# ═══════════════════════════════════════════════════════════════════

#: Maps (from_status, to_status) → capability the psychologist's role
#: must hold, or ``None``.  Pairs not listed here are illegal through
#: ``CaseWorkflowService.update_status``.  ``IN_PROGRESS → SIGNED`` is
#: deliberately absent: only safeguarding validation produces it.
ALLOWED_TRANSITIONS: dict[tuple[str, str], str | None] = {
    (CaseStatus.PENDING, CaseStatus.IN_PROGRESS): None,
    (CaseStatus.PENDING, CaseStatus.FALSE_REPORT): None,
    (CaseStatus.IN_PROGRESS, CaseStatus.FALSE_REPORT): None,
    (CaseStatus.SIGNED, CaseStatus.CLOSED): Capability.CAN_CLOSE_CASE,
}


def _case_queryset() -> QuerySet:
    return Case.objects.select_related(
        "village",
        "created_by",
        "dir_village_validated_by",
        "sauvegarde_validated_by",
    ).prefetch_related("assignments__psychologist", "documents")


def _assigned_psychologists(case: Case) -> list:
    return [a.psychologist for a in case.assignments.select_related("psychologist")]


def _require_assignment(actor, case: Case) -> None:
    if not case.assignments.filter(psychologist_id=actor.pk).exists():
        raise PermissionDenied("You are not assigned to this case.")


# ═══════════════════════════════════════════════════════════════════
#  Query Service
# ═══════════════════════════════════════════════════════════════════


class CaseQueryService:
    """Read-side access to cases, always filtered through the access guard."""

    @staticmethod
    def list_cases(user: Any, *, status: str | None = None) -> QuerySet:
        """
        Return the cases ``user`` may see, highest score first, then
        oldest first.

        Psychologists and village directors without a village get an
        empty queryset; national directors and IT admins always do.
        """
        qs = apply_case_scope(_case_queryset(), user)
        if status:
            qs = qs.filter(status=status)
        return qs.order_by("-score", "created_at", "id")

    @staticmethod
    def get_case(user: Any, case_id: int) -> Case:
        """
        Retrieve a single case for ``user``.

        Raises
        ------
        PermissionDenied
            Roles that can never read case content are refused before
            the lookup, so they cannot probe for existence.
        NotFound
            No case with that id.
        """
        caps = user.capabilities
        if not (
            caps.can_view_own_cases
            or caps.can_view_village_cases
            or caps.can_view_all_villages_cases
        ):
            raise PermissionDenied("Your role cannot read case content.")

        try:
            case = _case_queryset().get(pk=case_id)
        except Case.DoesNotExist:
            raise NotFound(f"Case with id {case_id} not found.")

        require_case_access(user, case)
        return case


# ═══════════════════════════════════════════════════════════════════
#  Creation Service
# ═══════════════════════════════════════════════════════════════════


class CaseCreationService:

    @staticmethod
    @transaction.atomic
    def create_case(
        requesting_user: Any,
        validated_data: dict[str, Any],
        attachments: Iterable[UploadedFile] = (),
    ) -> Case:
        """
        File a new report.

        Scoring, assignment, attachment storage, notifications and the
        audit entry all happen in one transaction: either the case
        exists with its assignments or nothing does.

        Parameters
        ----------
        requesting_user : User
            Must hold ``can_create_case``.
        validated_data : dict
            ``incident_type``, ``urgency``, ``is_anonymous`` and optional
            ``village`` (defaults to the declarant's own),
            ``child_name``, ``abuser_name``, ``description``.
        attachments : iterable of UploadedFile

        Raises
        ------
        PermissionDenied
        DomainError
            No village given and the declarant has none.
        FileTooLarge
        NoPsychologistAvailable
        """
        require_capability(
            requesting_user,
            Capability.CAN_CREATE_CASE,
            message="Only declarants can file a report.",
        )

        village = validated_data.get("village") or requesting_user.village
        if village is None:
            raise DomainError("A village is required to file a report.")

        attachments = list(attachments)
        for upload in attachments:
            if (upload.size or 0) > settings.MAX_UPLOAD_BYTES:
                raise FileTooLarge(
                    f"Attachment '{upload.name}' exceeds {settings.MAX_UPLOAD_MB} MB."
                )

        child_name = (validated_data.get("child_name") or "").strip()
        abuser_name = (validated_data.get("abuser_name") or "").strip()
        description = validated_data.get("description") or ""
        now = timezone.now()

        recurrence = CaseScoringService.is_recurrent(
            village=village,
            child_name=child_name,
            abuser_name=abuser_name,
            as_of=now,
        )
        score = CaseScoringService.compute_score(
            urgency=validated_data["urgency"],
            incident_type=validated_data["incident_type"],
            description=description,
            has_attachment=bool(attachments),
            recurrence=recurrence,
            created_at=now,
        )

        case = Case.objects.create(
            village=village,
            created_by=requesting_user,
            is_anonymous=validated_data.get("is_anonymous", False),
            incident_type=validated_data["incident_type"],
            urgency=validated_data["urgency"],
            child_name=child_name,
            abuser_name=abuser_name,
            description=description,
            score=score,
            status=CaseStatus.PENDING,
        )

        AssignmentBalancer.assign(case, actor=requesting_user)

        with PendingFiles() as files:
            for upload in attachments:
                stored = files.save(upload, folder=f"cases/{case.pk}/attachments")
                CaseAttachment.objects.create(
                    case=case,
                    file_path=stored.path,
                    filename=stored.filename,
                    mime_type=stored.mime_type,
                    size_bytes=stored.size_bytes,
                    uploaded_by=requesting_user,
                )

            record(
                actor=requesting_user,
                action=AuditAction.CREATE_CASE,
                entity="Case",
                entity_id=case.pk,
                metadata={
                    "score": score,
                    "recurrence": recurrence,
                    "attachments": len(attachments),
                },
            )

        logger.info(
            "Case %s created by user=%s in village=%s (score=%s, recurrence=%s)",
            case.pk,
            requesting_user.pk,
            village.pk,
            score,
            recurrence,
        )
        return case


# ═══════════════════════════════════════════════════════════════════
#  Workflow Service
# ═══════════════════════════════════════════════════════════════════


class CaseWorkflowService:

    @staticmethod
    def check_transition(current: str, target: str) -> str | None:
        """
        Validate ``current → target`` and return the required capability.

        Raises
        ------
        SignedCaseCanOnlyBeClosed
            ``current`` is SIGNED and ``target`` is not CLOSED.
        OnlySignedCaseCanBeClosed
            ``target`` is CLOSED and ``current`` is not SIGNED.
        InvalidCaseStatus
            Any other pair missing from ``ALLOWED_TRANSITIONS``.
        """
        if current == CaseStatus.SIGNED and target != CaseStatus.CLOSED:
            raise SignedCaseCanOnlyBeClosed(current=current, target=target)
        if target == CaseStatus.CLOSED and current != CaseStatus.SIGNED:
            raise OnlySignedCaseCanBeClosed(current=current, target=target)
        if (current, target) not in ALLOWED_TRANSITIONS:
            raise InvalidCaseStatus(current=current, target=target)
        return ALLOWED_TRANSITIONS[(current, target)]

    @staticmethod
    @transaction.atomic
    def update_status(requesting_user: Any, case_id: int, new_status: str) -> Case:
        """
        Move a case along the psychologist-controlled edges of the
        state machine.

        Raises
        ------
        PermissionDenied
            Caller is not a psychologist assigned to the case, or lacks
            the capability for this edge (closing).
        NotFound
        SignedCaseCanOnlyBeClosed, OnlySignedCaseCanBeClosed, InvalidCaseStatus
        """
        if requesting_user.role != Role.PSYCHOLOGIST:
            raise PermissionDenied("Only psychologists can change a case's status.")

        case = lock_for_update(Case, case_id)
        _require_assignment(requesting_user, case)

        old_status = case.status
        required = CaseWorkflowService.check_transition(old_status, new_status)
        if required:
            require_capability(requesting_user, required)

        case.status = new_status
        case.save(update_fields=["status", "updated_at"])

        record(
            actor=requesting_user,
            action=AuditAction.PSY_UPDATE_STATUS,
            entity="Case",
            entity_id=case.pk,
            metadata={"from": old_status, "to": new_status},
        )

        closing_kind = {
            CaseStatus.CLOSED: NotificationKind.CASE_CLOSED,
            CaseStatus.FALSE_REPORT: NotificationKind.CASE_FALSE_REPORT,
        }.get(new_status)
        if closing_kind:
            NotificationService.create(
                actor=requesting_user,
                recipients=case.created_by,
                kind=closing_kind,
                case=case,
                channels=(EMAIL,),
            )

        logger.info(
            "Case %s: %s → %s by psychologist=%s",
            case.pk,
            old_status,
            new_status,
            requesting_user.pk,
        )
        return case


# ═══════════════════════════════════════════════════════════════════
#  Document Service
# ═══════════════════════════════════════════════════════════════════


class CaseDocumentService:

    @staticmethod
    def list_documents(requesting_user: Any, case_id: int) -> QuerySet:
        case = CaseQueryService.get_case(requesting_user, case_id)
        return case.documents.select_related("uploaded_by").all()

    @staticmethod
    def get_document(requesting_user: Any, case_id: int, document_id: int) -> CaseDocument:
        case = CaseQueryService.get_case(requesting_user, case_id)
        try:
            return case.documents.get(pk=document_id)
        except CaseDocument.DoesNotExist:
            raise NotFound(f"Document with id {document_id} not found.")

    @staticmethod
    def list_attachments(requesting_user: Any, case_id: int) -> QuerySet:
        case = CaseQueryService.get_case(requesting_user, case_id)
        return case.attachments.all()

    @staticmethod
    def get_attachment(requesting_user: Any, case_id: int, attachment_id: int) -> CaseAttachment:
        case = CaseQueryService.get_case(requesting_user, case_id)
        try:
            return case.attachments.get(pk=attachment_id)
        except CaseAttachment.DoesNotExist:
            raise NotFound(f"Attachment with id {attachment_id} not found.")

    @staticmethod
    @transaction.atomic
    def upload_document(
        requesting_user: Any,
        case_id: int,
        doc_type: str,
        upload: UploadedFile,
    ) -> CaseDocument:
        """
        Attach an initial form or DPE report to an in-progress case.

        When this upload makes the case document-complete, the village
        directors are notified (once per director and case).

        Raises
        ------
        PermissionDenied
            Not an assigned psychologist with ``can_write_case_documents``.
        NotFound
        InvalidCaseStatus
            The case is not ``IN_PROGRESS``.
        FileTooLarge
        """
        require_capability(requesting_user, Capability.CAN_WRITE_CASE_DOCUMENTS)

        case = lock_for_update(Case, case_id)
        _require_assignment(requesting_user, case)

        if case.status != CaseStatus.IN_PROGRESS:
            raise InvalidCaseStatus(
                current=case.status,
                reason="documents can only be added while the case is in progress",
            )

        with PendingFiles() as files:
            stored = files.save(upload, folder=f"cases/{case.pk}/documents")
            document = CaseDocument.objects.create(
                case=case,
                doc_type=doc_type,
                file_path=stored.path,
                filename=stored.filename,
                mime_type=stored.mime_type,
                size_bytes=stored.size_bytes,
                uploaded_by=requesting_user,
            )

            record(
                actor=requesting_user,
                action=AuditAction.PSY_UPLOAD_DOCUMENT,
                entity="CaseDocument",
                entity_id=document.pk,
                metadata={"case_id": case.pk, "doc_type": doc_type},
            )

        if case.is_document_complete():
            from accounts.models import User

            directors = User.objects.filter(
                role=Role.VILLAGE_DIRECTOR,
                village_id=case.village_id,
                is_active=True,
            )
            NotificationService.create(
                actor=requesting_user,
                recipients=directors,
                kind=NotificationKind.DOCUMENTS_COMPLETE,
                case=case,
                channels=(EMAIL,),
            )

        logger.info(
            "Document %s (%s) uploaded to case %s by psychologist=%s",
            document.pk,
            doc_type,
            case.pk,
            requesting_user.pk,
        )
        return document


# ═══════════════════════════════════════════════════════════════════
#  Validation Service
# ═══════════════════════════════════════════════════════════════════


def _check_signature(signature: UploadedFile | None) -> None:
    if signature is None:
        raise SignatureRequired()
    if not is_signature_file(signature):
        raise SignatureFileUnsupported()


class CaseValidationService:
    """
    The two signature steps.  Each validation is written exactly once:
    the row is locked, and the timestamp is set with a compare-and-set
    so a concurrent second validator receives ``AlreadyValidated``.
    """

    @staticmethod
    @transaction.atomic
    def validate_as_director(
        requesting_user: Any,
        case_id: int,
        signature: UploadedFile | None,
    ) -> Case:
        """
        Record the village director's validation.

        Check order: role, village, signature, status, already
        validated, documents.

        Raises
        ------
        PermissionDenied
            Not a village director of the case's village.
        NotFound
        SignatureRequired, SignatureFileUnsupported
        InvalidCaseStatus
        AlreadyValidated
        MissingRequiredDocuments
        """
        if requesting_user.role != Role.VILLAGE_DIRECTOR:
            raise PermissionDenied("Only village directors can perform this validation.")
        require_capability(requesting_user, Capability.CAN_APPROVE_VALIDATION)
        if requesting_user.village_id is None:
            raise PermissionDenied("You are not affiliated with a village.")

        case = lock_for_update(Case, case_id)
        if case.village_id != requesting_user.village_id:
            raise PermissionDenied("This case belongs to another village.")

        _check_signature(signature)

        if case.status != CaseStatus.IN_PROGRESS:
            raise InvalidCaseStatus(
                current=case.status,
                reason="director validation requires an in-progress case",
            )
        if case.is_director_validated:
            raise AlreadyValidated("The village director has already validated this case.")
        if not case.is_document_complete():
            raise MissingRequiredDocuments(current=case.status)

        with PendingFiles() as files:
            stored = files.save(signature, folder=f"cases/{case.pk}/signatures/dir_village")
            now = timezone.now()
            if not compare_and_set(
                Case,
                case.pk,
                expected={"dir_village_validated_at__isnull": True},
                changes={
                    "dir_village_validated_at": now,
                    "dir_village_validated_by": requesting_user,
                    "dir_village_signature_path": stored.path,
                    "dir_village_signature_filename": stored.filename,
                    "dir_village_signature_mime_type": stored.mime_type,
                    "updated_at": now,
                },
            ):
                raise AlreadyValidated("The village director has already validated this case.")
            case.refresh_from_db()

            record(
                actor=requesting_user,
                action=AuditAction.DIR_VILLAGE_VALIDATE_CASE,
                entity="Case",
                entity_id=case.pk,
                metadata={"signature_file": stored.filename},
            )

        from accounts.models import User

        officers = User.objects.filter(role=Role.SAFEGUARDING_OFFICER, is_active=True)
        NotificationService.create(
            actor=requesting_user,
            recipients=officers,
            kind=NotificationKind.DIRECTOR_VALIDATED,
            case=case,
            channels=(EMAIL,),
        )

        logger.info("Case %s validated by village director=%s", case.pk, requesting_user.pk)
        return case

    @staticmethod
    @transaction.atomic
    def validate_as_safeguarding(
        requesting_user: Any,
        case_id: int,
        signature: UploadedFile | None,
    ) -> Case:
        """
        Record the safeguarding officer's validation; the case becomes
        ``SIGNED``.

        Director validation is checked first, so an early attempt
        always fails with ``DirVillageValidationRequired`` whatever the
        documents or the signature supplied.

        Raises
        ------
        PermissionDenied
        NotFound
        DirVillageValidationRequired
        AlreadyValidated
        InvalidCaseStatus
        MissingRequiredDocuments
        DirVillageSignatureRequired
        SignatureRequired, SignatureFileUnsupported
        """
        if requesting_user.role != Role.SAFEGUARDING_OFFICER:
            raise PermissionDenied("Only safeguarding officers can perform this validation.")
        require_capability(requesting_user, Capability.CAN_APPROVE_VALIDATION)

        case = lock_for_update(Case, case_id)

        if not case.is_director_validated:
            raise DirVillageValidationRequired(current=case.status)
        if case.is_safeguarding_validated:
            raise AlreadyValidated("The safeguarding office has already validated this case.")
        if case.status != CaseStatus.IN_PROGRESS:
            raise InvalidCaseStatus(
                current=case.status,
                target=CaseStatus.SIGNED,
            )
        if not case.is_document_complete():
            raise MissingRequiredDocuments(current=case.status)
        if not case.dir_village_signature_path:
            raise DirVillageSignatureRequired(current=case.status)

        _check_signature(signature)

        with PendingFiles() as files:
            stored = files.save(signature, folder=f"cases/{case.pk}/signatures/sauvegarde")
            now = timezone.now()
            if not compare_and_set(
                Case,
                case.pk,
                expected={
                    "sauvegarde_validated_at__isnull": True,
                    "status": CaseStatus.IN_PROGRESS,
                },
                changes={
                    "status": CaseStatus.SIGNED,
                    "sauvegarde_validated_at": now,
                    "sauvegarde_validated_by": requesting_user,
                    "sauvegarde_signature_path": stored.path,
                    "sauvegarde_signature_filename": stored.filename,
                    "sauvegarde_signature_mime_type": stored.mime_type,
                    "updated_at": now,
                },
            ):
                raise AlreadyValidated("The safeguarding office has already validated this case.")
            case.refresh_from_db()

            record(
                actor=requesting_user,
                action=AuditAction.SAUVEGARDE_VALIDATE_CASE,
                entity="Case",
                entity_id=case.pk,
                metadata={"signature_file": stored.filename, "status": CaseStatus.SIGNED},
            )

        NotificationService.create(
            actor=requesting_user,
            recipients=_assigned_psychologists(case),
            kind=NotificationKind.CASE_SIGNED,
            case=case,
            channels=(EMAIL,),
        )

        logger.info("Case %s signed by safeguarding officer=%s", case.pk, requesting_user.pk)
        return case


# ═══════════════════════════════════════════════════════════════════
#  Reminder Service
# ═══════════════════════════════════════════════════════════════════


class CaseReminderService:

    @staticmethod
    def send_pending_reminders(*, now=None) -> int:
        """
        Send a WhatsApp reminder to the assigned psychologists of every
        case still ``PENDING`` after ``PENDING_REMINDER_HOURS``.
        Psychologists without a phone number are left out and nothing is
        recorded for them, so they are reminded once they add one.

        Each (psychologist, case) pair is reminded at most once.  A
        failure on one case is logged and the sweep moves on.

        Returns
        -------
        int
            Number of reminders created in this run.
        """
        now = now or timezone.now()
        threshold = now - timedelta(hours=settings.PENDING_REMINDER_HOURS)
        pending = (
            Case.objects
            .filter(status=CaseStatus.PENDING, created_at__lte=threshold)
            .select_related("village")
            .order_by("created_at")
        )

        sent = 0
        for case in pending:
            try:
                with transaction.atomic():
                    created = NotificationService.create(
                        actor=None,
                        recipients=[
                            psy for psy in _assigned_psychologists(case) if psy.phone_number
                        ],
                        kind=NotificationKind.PENDING_REMINDER,
                        case=case,
                        channels=(WHATSAPP,),
                    )
            except Exception:
                logger.exception("Pending reminder failed for case %s", case.pk)
                continue
            sent += len(created)

        logger.info("Pending reminder sweep: %d reminder(s) sent.", sent)
        return sent
