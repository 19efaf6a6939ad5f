"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``LoginView``          — POST /auth/login/
- ``MeView``             — GET / PATCH /me/
- ``UserViewSet``        — /users/  (list, create, retrieve, set-active)
- ``VillageViewSet``     — /villages/  (list, create)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    CustomTokenObtainPairSerializer,
    LoginRequestSerializer,
    MeUpdateSerializer,
    TokenResponseSerializer,
    UserActiveSerializer,
    UserCreateSerializer,
    UserDetailSerializer,
    UserListSerializer,
    VillageSerializer,
)
from .services import (
    CurrentUserService,
    UserManagementService,
    VillageService,
)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates by username or email plus password
    and returns a JWT pair together with the user's profile.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Log in",
        description=(
            "Exchange an identifier (username or email) and a password for "
            "an access/refresh token pair. The access token carries the "
            "role, village_id and capability claims."
        ),
        request=LoginRequestSerializer,
        responses={
            200: OpenApiResponse(response=TokenResponseSerializer, description="Authenticated."),
            400: OpenApiResponse(description="Invalid credentials or inactive account."),
        },
        tags=["Auth"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)
        payload["user"] = UserDetailSerializer(serializer.user).data
        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET  /api/accounts/me/  → Retrieve current user profile.
    PATCH /api/accounts/me/ → Update own contact fields.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user profile",
        responses={200: OpenApiResponse(response=UserDetailSerializer)},
        tags=["Auth"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update own profile",
        description="Role, village and username cannot be changed here.",
        request=MeUpdateSerializer,
        responses={
            200: OpenApiResponse(response=UserDetailSerializer),
            400: OpenApiResponse(description="Validation error."),
        },
        tags=["Auth"],
    )
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(request.user, serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  User Management ViewSet
# ═══════════════════════════════════════════════════════════════════


class UserViewSet(viewsets.ViewSet):
    """
    /api/accounts/users/

    Administrative user management.  Access requires the
    ``can_manage_users`` capability; the check lives in
    ``UserManagementService``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List users",
        parameters=[
            OpenApiParameter(name="role", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="village", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="is_active", type=bool, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY),
        ],
        responses={
            200: OpenApiResponse(response=UserListSerializer(many=True)),
            403: OpenApiResponse(description="Caller cannot manage users."),
        },
        tags=["Users"],
    )
    def list(self, request: Request) -> Response:
        params = request.query_params
        is_active = params.get("is_active")
        village = params.get("village")
        qs = UserManagementService.list_users(
            request.user,
            role=params.get("role") or None,
            village_id=int(village) if village and village.isdigit() else None,
            is_active=None if is_active is None else is_active.lower() in ("1", "true", "yes"),
            search=params.get("search") or None,
        )
        return Response(UserListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Create a user",
        description=(
            "Declarants, psychologists and village directors must be given "
            "a village; the other roles must not."
        ),
        request=UserCreateSerializer,
        responses={
            201: OpenApiResponse(response=UserDetailSerializer),
            400: OpenApiResponse(description="Validation error or invalid village affiliation."),
            403: OpenApiResponse(description="Caller cannot manage users."),
        },
        tags=["Users"],
    )
    def create(self, request: Request) -> Response:
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserManagementService.create_user(request.user, serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a user",
        responses={
            200: OpenApiResponse(response=UserDetailSerializer),
            403: OpenApiResponse(description="Caller cannot manage users."),
            404: OpenApiResponse(description="User not found."),
        },
        tags=["Users"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.get_user(request.user, int(pk))
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["patch"], url_path="set-active")
    @extend_schema(
        summary="Activate or deactivate a user",
        request=UserActiveSerializer,
        responses={
            200: OpenApiResponse(response=UserDetailSerializer),
            400: OpenApiResponse(description="Cannot deactivate own account."),
            403: OpenApiResponse(description="Caller cannot manage users."),
            404: OpenApiResponse(description="User not found."),
        },
        tags=["Users"],
    )
    def set_active(self, request: Request, pk: str = None) -> Response:
        serializer = UserActiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserManagementService.set_active(
            request.user, int(pk), serializer.validated_data["is_active"],
        )
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Village ViewSet
# ═══════════════════════════════════════════════════════════════════


class VillageViewSet(viewsets.ViewSet):
    """/api/accounts/villages/  Villages can be listed and created, never edited."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List villages",
        responses={200: OpenApiResponse(response=VillageSerializer(many=True))},
        tags=["Villages"],
    )
    def list(self, request: Request) -> Response:
        qs = VillageService.list_villages()
        return Response(VillageSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Create a village",
        request=VillageSerializer,
        responses={
            201: OpenApiResponse(response=VillageSerializer),
            400: OpenApiResponse(description="Name missing or already used."),
            403: OpenApiResponse(description="Caller cannot manage users."),
        },
        tags=["Villages"],
    )
    def create(self, request: Request) -> Response:
        serializer = VillageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        village = VillageService.create_village(request.user, serializer.validated_data["name"])
        return Response(VillageSerializer(village).data, status=status.HTTP_201_CREATED)
