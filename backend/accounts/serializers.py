"""
Accounts app serializers.

Contains all Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here; all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from core.constants import Role

from .models import Village
from .services import AuthenticationService

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom SimpleJWT serializer that:

    1. Accepts ``identifier`` + ``password`` instead of
       ``username`` + ``password``.
    2. Resolves the user via the ``MultiFieldAuthBackend``.
    3. Injects ``role``, ``village_id`` and ``capabilities`` claims into
       the token payload.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Username or Email.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        return AuthenticationService.add_claims(token, user)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Authenticate and return ``access`` / ``refresh``.  The
        authenticated user is kept on ``self.user`` for the view.
        """
        user = AuthenticationService.authenticate(
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
            request=self.context.get("request"),
        )
        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )

        refresh = self.get_token(user)
        self.user = user
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


class LoginRequestSerializer(serializers.Serializer):
    """Schema-only description of the login body."""

    identifier = serializers.CharField(help_text="Username or Email.")
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
    )


class TokenResponseSerializer(serializers.Serializer):
    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)
    user = serializers.DictField(read_only=True)


# ═══════════════════════════════════════════════════════════════════
#  Village Serializers
# ═══════════════════════════════════════════════════════════════════


class VillageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Village
        fields = ["id", "name", "created_at"]
        read_only_fields = ["id", "created_at"]


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserListSerializer(serializers.ModelSerializer):
    """
    Compact representation for admin listings.
    """

    village_name = serializers.CharField(
        source="village.name",
        read_only=True,
        default=None,
    )

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "is_active",
            "role",
            "village",
            "village_name",
        ]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (used in retrieve, me, and login
    response).  ``capabilities`` is the role's row of the permission
    matrix, consumed by the frontend to render conditional UI.
    """

    village_name = serializers.CharField(
        source="village.name",
        read_only=True,
        default=None,
    )
    capabilities = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "is_active",
            "date_joined",
            "role",
            "village",
            "village_name",
            "capabilities",
        ]
        read_only_fields = fields

    def get_capabilities(self, obj) -> dict[str, Any]:
        return obj.capabilities.as_dict()


class UserCreateSerializer(serializers.Serializer):
    """
    Validates the admin "create user" payload.  The village affiliation
    rule itself is enforced by ``User.clean`` in the service layer.
    """

    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    role = serializers.ChoiceField(choices=Role.choices)
    village = serializers.PrimaryKeyRelatedField(
        queryset=Village.objects.all(),
        required=False,
        allow_null=True,
    )
    first_name = serializers.CharField(max_length=150, required=False, default="")
    last_name = serializers.CharField(max_length=150, required=False, default="")
    phone_number = serializers.CharField(max_length=20, required=False, default="")


class UserActiveSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class MeUpdateSerializer(serializers.Serializer):
    """
    Fields a user may change on their own profile.  Role, village and
    username are not part of it.
    """

    email = serializers.EmailField(required=False)
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
