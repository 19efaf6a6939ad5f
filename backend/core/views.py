"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for:

1. Extracting and validating query parameters from the request.
2. Calling the service with the authenticated user and parameters.
3. Serialising the result and returning an HTTP ``Response``.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    NationalAnalyticsSerializer,
    NotificationSerializer,
    SystemConstantsSerializer,
)
from .services import (
    NationalAnalyticsService,
    NotificationQueryService,
    SystemConstantsService,
)


class NationalAnalyticsView(APIView):
    """
    **GET /api/core/analytics/**

    Aggregate case counts across all villages.  Only the national
    director holds ``can_view_national_analytics``; everyone else
    receives ``403``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="National analytics",
        description=(
            "Return counts by status, urgency, incident type and village. "
            "No individual case data is included."
        ),
        responses={
            200: OpenApiResponse(response=NationalAnalyticsSerializer, description="Aggregated counts."),
            403: OpenApiResponse(description="Caller cannot view national analytics."),
        },
        tags=["Analytics"],
    )
    def get(self, request: Request) -> Response:
        service = NationalAnalyticsService(user=request.user)
        serializer = NationalAnalyticsSerializer(service.get_stats())
        return Response(serializer.data, status=status.HTTP_200_OK)


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return all choice enumerations and the permission matrix so the
    frontend can build dropdowns and gate features without hardcoding
    values.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="System constants",
        description=(
            "Return all choice enumerations and the role → capability "
            "matrix."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class NotificationViewSet(viewsets.ViewSet):
    """
    **Notification API** — list and mark-as-read for the authenticated user.

    Endpoints
    ---------
    GET  /api/core/notifications/              → latest notifications
    GET  /api/core/notifications/unread-count/ → number of unread notifications
    POST /api/core/notifications/{id}/read/    → mark a notification as read
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List notifications",
        description="Return the latest notifications of the authenticated user, newest first.",
        parameters=[
            OpenApiParameter(name="unread", type=bool, required=False, description="Only unread notifications."),
        ],
        responses={200: OpenApiResponse(response=NotificationSerializer(many=True), description="Notification list.")},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        unread_only = request.query_params.get("unread", "").lower() in ("1", "true", "yes")
        service = NotificationQueryService(user=request.user)
        notifications = service.list_notifications(unread_only=unread_only)
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="read")
    @extend_schema(
        summary="Mark notification as read",
        request=None,
        responses={
            200: OpenApiResponse(response=NotificationSerializer, description="Updated notification."),
            403: OpenApiResponse(description="Notification belongs to another user."),
            404: OpenApiResponse(description="Notification not found."),
        },
        tags=["Notifications"],
    )
    def mark_as_read(self, request: Request, pk: str = None) -> Response:
        service = NotificationQueryService(user=request.user)
        notification = service.mark_as_read(notification_id=int(pk))
        serializer = NotificationSerializer(notification)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="unread-count")
    @extend_schema(
        summary="Unread notification count",
        responses={200: OpenApiResponse(description='``{"unread": <int>}``')},
        tags=["Notifications"],
    )
    def unread_count(self, request: Request) -> Response:
        service = NotificationQueryService(user=request.user)
        return Response({"unread": service.unread_count()}, status=status.HTTP_200_OK)
