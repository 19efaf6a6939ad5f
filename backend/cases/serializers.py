"""
Cases app serializers.

Contains all Request and Response serializers for the Cases API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic or workflow transitions live here**;
those belong in ``services.py``.

The one rule applied here is *rendering*: which sensitive fields a
viewer sees, driven by the role's ``sensitive_content_access`` level
(see ``SensitiveContentMixin``).

Structure
---------
1. Filter / query-param serializers
2. Case read serializers (list, detail)
3. Case write serializers (create)
4. Workflow action serializers (status, validation)
5. Sub-resource serializers (assignment, document, attachment)
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from accounts.models import Village
from core.constants import Role
from core.permissions_constants import SensitiveContentAccess, get_capabilities

from .models import (
    Case,
    CaseAssignment,
    CaseAttachment,
    CaseDocument,
    CaseStatus,
    DocumentType,
    IncidentType,
    Urgency,
)

_NAME_FIELDS = ("child_name", "abuser_name")


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseFilterSerializer(serializers.Serializer):
    """
    Validates query-parameter filters for ``GET /api/cases/``.

    Query Parameters
    ----------------
    ``status`` : str — one of ``CaseStatus`` values
    """

    status = serializers.ChoiceField(choices=CaseStatus.choices, required=False)


# ═══════════════════════════════════════════════════════════════════
#  2. Case Read Serializers
# ═══════════════════════════════════════════════════════════════════


class SensitiveContentMixin:
    """
    Masks case fields according to the viewer's role.

    ============== ===================================================
    FULL           everything
    FULL_ASSIGNED  everything (the access guard already restricts the
                   psychologist to assigned cases)
    LIMITED        names masked, description visible
    NONE           names and description masked, except for the creator
    ============== ===================================================

    The declarant's identity is hidden on anonymous cases for every
    viewer except declarants.
    """

    def _viewer(self):
        request = self.context.get("request")
        return getattr(request, "user", None)

    def mask(self, instance: Case, data: dict[str, Any]) -> dict[str, Any]:
        viewer = self._viewer()
        if viewer is None:
            return data

        level = get_capabilities(viewer.role).sensitive_content_access
        is_creator = instance.created_by_id == viewer.pk

        if level == SensitiveContentAccess.LIMITED:
            for name in _NAME_FIELDS:
                if name in data:
                    data[name] = None
        elif level == SensitiveContentAccess.NONE and not is_creator:
            for name in (*_NAME_FIELDS, "description"):
                if name in data:
                    data[name] = None

        if instance.is_anonymous and viewer.role != Role.DECLARANT:
            data["created_by"] = None
            data["created_by_name"] = None
        return data

    def to_representation(self, instance):
        return self.mask(instance, super().to_representation(instance))


class CaseAssignmentSerializer(serializers.ModelSerializer):
    psychologist_name = serializers.CharField(
        source="psychologist.get_full_name", read_only=True,
    )

    class Meta:
        model = CaseAssignment
        fields = ["id", "psychologist", "psychologist_name", "assignment_role", "assigned_at"]
        read_only_fields = fields


class CaseDocumentSerializer(serializers.ModelSerializer):
    uploaded_by_name = serializers.CharField(
        source="uploaded_by.get_full_name", read_only=True,
    )

    class Meta:
        model = CaseDocument
        fields = [
            "id",
            "case",
            "doc_type",
            "filename",
            "mime_type",
            "size_bytes",
            "uploaded_by",
            "uploaded_by_name",
            "uploaded_at",
        ]
        read_only_fields = fields


class CaseAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = CaseAttachment
        fields = ["id", "case", "filename", "mime_type", "size_bytes", "uploaded_at"]
        read_only_fields = fields


class CaseListSerializer(SensitiveContentMixin, serializers.ModelSerializer):
    """Compact representation for ``GET /api/cases/``."""

    village_name = serializers.CharField(source="village.name", read_only=True)
    created_by_name = serializers.CharField(source="created_by.get_full_name", read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "status",
            "score",
            "village",
            "village_name",
            "incident_type",
            "urgency",
            "is_anonymous",
            "child_name",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CaseDetailSerializer(SensitiveContentMixin, serializers.ModelSerializer):
    """
    Full case representation: content, assignments, documents and the
    validation blocks.  Signature storage paths are never exposed.
    """

    village_name = serializers.CharField(source="village.name", read_only=True)
    created_by_name = serializers.CharField(source="created_by.get_full_name", read_only=True)
    assignments = CaseAssignmentSerializer(many=True, read_only=True)
    documents = CaseDocumentSerializer(many=True, read_only=True)
    is_document_complete = serializers.SerializerMethodField()

    class Meta:
        model = Case
        fields = [
            "id",
            "status",
            "score",
            "village",
            "village_name",
            "incident_type",
            "urgency",
            "is_anonymous",
            "child_name",
            "abuser_name",
            "description",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
            "assignments",
            "documents",
            "is_document_complete",
            "dir_village_validated_at",
            "dir_village_validated_by",
            "dir_village_signature_filename",
            "sauvegarde_validated_at",
            "sauvegarde_validated_by",
            "sauvegarde_signature_filename",
        ]
        read_only_fields = fields

    def get_is_document_complete(self, obj: Case) -> bool:
        present = {d.doc_type for d in obj.documents.all()}
        return set(DocumentType.values) <= present


# ═══════════════════════════════════════════════════════════════════
#  3. Case Write Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCreateSerializer(serializers.Serializer):
    """
    Validates a new report.  Attachments travel as multipart files under
    the ``attachments`` key and are read by the view.

    ``village`` defaults to the declarant's own village.
    """

    village = serializers.PrimaryKeyRelatedField(
        queryset=Village.objects.all(), required=False, allow_null=True,
    )
    incident_type = serializers.ChoiceField(choices=IncidentType.choices)
    urgency = serializers.ChoiceField(choices=Urgency.choices)
    is_anonymous = serializers.BooleanField(default=False)
    child_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    abuser_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)


# ═══════════════════════════════════════════════════════════════════
#  4. Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CaseStatus.choices)


class SignatureUploadSerializer(serializers.Serializer):
    """
    Multipart body for both validation endpoints.

    ``signature`` is optional at this layer so that a missing file
    surfaces as the domain error ``SIGNATURE_REQUIRED``.
    """

    signature = serializers.FileField(required=False, allow_empty_file=False)


# ═══════════════════════════════════════════════════════════════════
#  5. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseDocumentUploadSerializer(serializers.Serializer):
    doc_type = serializers.ChoiceField(choices=DocumentType.choices)
    file = serializers.FileField(allow_empty_file=False)
