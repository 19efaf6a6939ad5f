"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

No database queries, workflow logic, or scoring math lives here.

ViewSets
--------
- ``CaseViewSet``           — list / create / retrieve plus the workflow
                              @actions (status, director and safeguarding
                              validation).
- ``CaseDocumentViewSet``   — nested ``/cases/{case_pk}/documents/``.
- ``CaseAttachmentViewSet`` — nested ``/cases/{case_pk}/attachments/``.
"""

from __future__ import annotations

from django.http import FileResponse
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from core.domain.storage import FileStorageService

from .serializers import (
    CaseAttachmentSerializer,
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseDocumentSerializer,
    CaseDocumentUploadSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    CaseStatusUpdateSerializer,
    SignatureUploadSerializer,
)
from .services import (
    CaseCreationService,
    CaseDocumentService,
    CaseQueryService,
    CaseValidationService,
    CaseWorkflowService,
)


_PARSERS = [JSONParser, MultiPartParser, FormParser]


def _file_response(stored) -> FileResponse:
    return FileResponse(
        FileStorageService.open(stored.file_path),
        as_attachment=True,
        filename=stored.filename,
        content_type=stored.mime_type,
    )


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined, preventing accidental exposure of unintended
    CRUD operations (there is no update or delete of a case).

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  Fine-grained checks
    (capability, assignment, village) are enforced exclusively inside
    the service layer, never in the view.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = _PARSERS

    # ── Standard endpoints ───────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description=(
            "List the cases visible to the authenticated user, highest "
            "score first. Declarants see their own reports, psychologists "
            "their assigned cases, village directors their village, "
            "safeguarding officers every village."
        ),
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by case status."),
        ],
        responses={
            200: OpenApiResponse(response=CaseListSerializer(many=True), description="Role-scoped list of cases."),
        },
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        """GET /api/cases/"""
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)

        qs = CaseQueryService.list_cases(
            request.user, status=filter_serializer.validated_data.get("status"),
        )
        serializer = CaseListSerializer(qs, many=True, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="File a new report",
        description=(
            "Create a case (declarants only). The score is computed and two "
            "psychologists of the village are assigned in the same "
            "transaction. Files may be sent as multipart under 'attachments'."
        ),
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case created."),
            400: OpenApiResponse(description="Validation error or file too large."),
            403: OpenApiResponse(description="Caller cannot create cases."),
            409: OpenApiResponse(description="No psychologist available in the village."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/cases/

        1. Validate with ``CaseCreateSerializer``.
        2. Delegate to ``CaseCreationService.create_case``.
        3. Return the created case (201).
        """
        serializer = CaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseCreationService.create_case(
            request.user,
            serializer.validated_data,
            attachments=request.FILES.getlist("attachments"),
        )
        case = CaseQueryService.get_case(request.user, case.pk)
        out = CaseDetailSerializer(case, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a case",
        description="Return the full case, masked according to the caller's role.",
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case detail."),
            403: OpenApiResponse(description="Caller may not read this case."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        """GET /api/cases/{id}/"""
        case = CaseQueryService.get_case(request.user, pk)
        serializer = CaseDetailSerializer(case, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Workflow @actions ─────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="status")
    @extend_schema(
        summary="Update case status (psychologist)",
        description=(
            "Assigned psychologist moves the case: PENDING → IN_PROGRESS, "
            "PENDING/IN_PROGRESS → FALSE_REPORT, SIGNED → CLOSED."
        ),
        request=CaseStatusUpdateSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Status updated."),
            403: OpenApiResponse(description="Not an assigned psychologist."),
            409: OpenApiResponse(description="Transition not allowed from the current status."),
        },
        tags=["Cases – Workflow"],
    )
    def update_status(self, request: Request, pk: int = None) -> Response:
        serializer = CaseStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        CaseWorkflowService.update_status(
            request.user, pk, serializer.validated_data["status"],
        )
        case = CaseQueryService.get_case(request.user, pk)
        return Response(
            CaseDetailSerializer(case, context={"request": request}).data,
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"], url_path="validate-director")
    @extend_schema(
        summary="Village director validation",
        description=(
            "Village director of the case's village signs off an in-progress, "
            "document-complete case. Multipart body with a 'signature' image or PDF."
        ),
        request=SignatureUploadSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Validation recorded."),
            400: OpenApiResponse(description="Signature missing or unsupported."),
            403: OpenApiResponse(description="Not the village director of this case."),
            409: OpenApiResponse(description="Wrong status, documents missing or already validated."),
        },
        tags=["Cases – Workflow"],
    )
    def validate_director(self, request: Request, pk: int = None) -> Response:
        serializer = SignatureUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        CaseValidationService.validate_as_director(
            request.user, pk, serializer.validated_data.get("signature"),
        )
        case = CaseQueryService.get_case(request.user, pk)
        return Response(
            CaseDetailSerializer(case, context={"request": request}).data,
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"], url_path="validate-safeguarding")
    @extend_schema(
        summary="Safeguarding validation",
        description=(
            "Safeguarding officer signs a director-validated case; the case "
            "becomes SIGNED. Multipart body with a 'signature' image or PDF."
        ),
        request=SignatureUploadSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case signed."),
            400: OpenApiResponse(description="Signature missing or unsupported."),
            403: OpenApiResponse(description="Not a safeguarding officer."),
            409: OpenApiResponse(description="Director validation, documents or signature missing."),
        },
        tags=["Cases – Workflow"],
    )
    def validate_safeguarding(self, request: Request, pk: int = None) -> Response:
        serializer = SignatureUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        CaseValidationService.validate_as_safeguarding(
            request.user, pk, serializer.validated_data.get("signature"),
        )
        case = CaseQueryService.get_case(request.user, pk)
        return Response(
            CaseDetailSerializer(case, context={"request": request}).data,
            status=status.HTTP_200_OK,
        )


class CaseDocumentViewSet(viewsets.ViewSet):
    """
    ``/api/cases/{case_pk}/documents/``

    Anyone who can read the case can list and download its documents;
    only assigned psychologists can upload.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        summary="List case documents",
        responses={200: CaseDocumentSerializer(many=True)},
        tags=["Cases – Documents"],
    )
    def list(self, request: Request, case_pk: int = None) -> Response:
        docs = CaseDocumentService.list_documents(request.user, case_pk)
        return Response(CaseDocumentSerializer(docs, many=True).data)

    @extend_schema(
        summary="Upload a case document (psychologist)",
        description="Multipart body: 'doc_type' (INITIAL_FORM | DPE_REPORT) and 'file'.",
        request=CaseDocumentUploadSerializer,
        responses={
            201: OpenApiResponse(response=CaseDocumentSerializer, description="Document stored."),
            400: OpenApiResponse(description="Validation error or file too large."),
            403: OpenApiResponse(description="Not an assigned psychologist."),
            409: OpenApiResponse(description="Case is not in progress."),
        },
        tags=["Cases – Documents"],
    )
    def create(self, request: Request, case_pk: int = None) -> Response:
        serializer = CaseDocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = CaseDocumentService.upload_document(
            request.user,
            case_pk,
            serializer.validated_data["doc_type"],
            serializer.validated_data["file"],
        )
        return Response(CaseDocumentSerializer(document).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve document metadata",
        responses={200: CaseDocumentSerializer},
        tags=["Cases – Documents"],
    )
    def retrieve(self, request: Request, case_pk: int = None, pk: int = None) -> Response:
        document = CaseDocumentService.get_document(request.user, case_pk, pk)
        return Response(CaseDocumentSerializer(document).data)

    @action(detail=True, methods=["get"], url_path="download")
    @extend_schema(
        summary="Download a case document",
        responses={200: OpenApiResponse(description="File content.")},
        tags=["Cases – Documents"],
    )
    def download(self, request: Request, case_pk: int = None, pk: int = None):
        document = CaseDocumentService.get_document(request.user, case_pk, pk)
        return _file_response(document)


class CaseAttachmentViewSet(viewsets.ViewSet):
    """``/api/cases/{case_pk}/attachments/`` — read-only."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List case attachments",
        responses={200: CaseAttachmentSerializer(many=True)},
        tags=["Cases – Documents"],
    )
    def list(self, request: Request, case_pk: int = None) -> Response:
        attachments = CaseDocumentService.list_attachments(request.user, case_pk)
        return Response(CaseAttachmentSerializer(attachments, many=True).data)

    @action(detail=True, methods=["get"], url_path="download")
    @extend_schema(
        summary="Download a case attachment",
        responses={200: OpenApiResponse(description="File content.")},
        tags=["Cases – Documents"],
    )
    def download(self, request: Request, case_pk: int = None, pk: int = None):
        attachment = CaseDocumentService.get_attachment(request.user, case_pk, pk)
        return _file_response(attachment)
