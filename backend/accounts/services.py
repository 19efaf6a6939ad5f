"""
Accounts app Service Layer.

This module contains all business logic for user management,
authentication, and the village registry.  Views remain thin: they
validate input via serializers, delegate to these service functions,
and return the result.

Access Policies
---------------
User and village administration requires the ``can_manage_users``
capability (IT admins).  Every user-facing account write runs
``User.full_clean`` so that the village-affiliation rule is enforced.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import authenticate, get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q, QuerySet

from core.domain.access import require_capability
from core.domain.audit import AuditAction, record
from core.domain.exceptions import DomainError, NotFound
from core.permissions_constants import Capability

from .models import Village

User = get_user_model()

logger = logging.getLogger(__name__)


def _validation_message(exc: DjangoValidationError) -> str:
    if hasattr(exc, "message_dict"):
        return "; ".join(
            f"{field}: {' '.join(messages)}" for field, messages in exc.message_dict.items()
        )
    return " ".join(exc.messages)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Service
# ═══════════════════════════════════════════════════════════════════


class AuthenticationService:
    """
    Handles credential verification and JWT token generation.
    """

    @staticmethod
    def resolve_user(identifier: str) -> User | None:
        """
        Look up a user by username or email (case-insensitive e-mail).
        """
        return (
            User.objects
            .filter(Q(username=identifier) | Q(email__iexact=identifier))
            .select_related("village")
            .first()
        )

    @staticmethod
    def authenticate(identifier: str, password: str, request=None) -> User | None:
        """
        Verify credentials through ``MultiFieldAuthBackend``.

        Returns ``None`` when the identifier is unknown, the password is
        wrong, or the account is inactive.
        """
        user = authenticate(request=request, identifier=identifier, password=password)
        if user is None:
            logger.info("Failed login attempt for identifier=%r", identifier)
        return user

    @staticmethod
    def add_claims(token, user: User):
        """
        Inject ``role``, ``village_id`` and the capability map into a
        SimpleJWT token so clients need no extra round trip.
        """
        token["role"] = user.role
        token["village_id"] = user.village_id
        token["capabilities"] = user.capabilities.as_dict()
        return token


# ═══════════════════════════════════════════════════════════════════
#  User Management Service
# ═══════════════════════════════════════════════════════════════════


class UserManagementService:
    """
    Administrative operations on users: listing, creation, activation
    and deactivation.
    """

    @staticmethod
    def list_users(
        performed_by: User,
        *,
        role: str | None = None,
        village_id: int | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> QuerySet:
        """
        Return a filtered queryset of users.

        Raises
        ------
        PermissionDenied
            Caller lacks ``can_manage_users``.
        """
        require_capability(performed_by, Capability.CAN_MANAGE_USERS)

        qs = User.objects.select_related("village").order_by("username")
        if role:
            qs = qs.filter(role=role)
        if village_id is not None:
            qs = qs.filter(village_id=village_id)
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        if search:
            qs = qs.filter(
                Q(username__icontains=search)
                | Q(email__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )
        return qs

    @staticmethod
    def get_user(performed_by: User, user_id: int) -> User:
        require_capability(performed_by, Capability.CAN_MANAGE_USERS)
        try:
            return User.objects.select_related("village").get(pk=user_id)
        except User.DoesNotExist:
            raise NotFound(f"User with id {user_id} not found.")

    @staticmethod
    @transaction.atomic
    def create_user(performed_by: User, validated_data: dict[str, Any]) -> User:
        """
        Create an account with a role and (where required) a village.

        Parameters
        ----------
        performed_by : User
            Must hold ``can_manage_users``.
        validated_data : dict
            ``username``, ``email``, ``password``, ``role`` and the
            optional ``village``, ``first_name``, ``last_name``,
            ``phone_number``.

        Raises
        ------
        PermissionDenied
        DomainError
            The role/village combination is invalid, or the username /
            e-mail is already taken.
        """
        require_capability(performed_by, Capability.CAN_MANAGE_USERS)

        data = dict(validated_data)
        password = data.pop("password")
        user = User(**data)
        user.set_password(password)
        try:
            user.full_clean()
        except DjangoValidationError as exc:
            raise DomainError(_validation_message(exc))
        user.save()

        record(
            actor=performed_by,
            action=AuditAction.CREATE_USER,
            entity="User",
            entity_id=user.pk,
            metadata={"role": user.role, "village_id": user.village_id},
        )
        logger.info(
            "User %s created with role=%s by admin=%s",
            user.pk,
            user.role,
            performed_by.pk,
        )
        return user

    @staticmethod
    @transaction.atomic
    def set_active(performed_by: User, user_id: int, is_active: bool) -> User:
        """
        Activate or deactivate an account.  An admin cannot deactivate
        their own account.
        """
        target_user = UserManagementService.get_user(performed_by, user_id)

        if not is_active and target_user.pk == performed_by.pk:
            raise DomainError("You cannot deactivate your own account.")

        target_user.is_active = is_active
        target_user.save(update_fields=["is_active"])
        record(
            actor=performed_by,
            action=AuditAction.SET_USER_ACTIVE,
            entity="User",
            entity_id=target_user.pk,
            metadata={"is_active": is_active},
        )
        logger.info(
            "User %s %s by admin=%s",
            target_user.pk,
            "activated" if is_active else "deactivated",
            performed_by.pk,
        )
        return target_user


# ═══════════════════════════════════════════════════════════════════
#  Village Service
# ═══════════════════════════════════════════════════════════════════


class VillageService:
    """Villages are listed by everyone and created by IT admins; never edited."""

    @staticmethod
    def list_villages() -> QuerySet:
        return Village.objects.order_by("name")

    @staticmethod
    @transaction.atomic
    def create_village(performed_by: User, name: str) -> Village:
        require_capability(performed_by, Capability.CAN_MANAGE_USERS)
        name = name.strip()
        if Village.objects.filter(name__iexact=name).exists():
            raise DomainError(f"A village named '{name}' already exists.")
        village = Village.objects.create(name=name)
        record(
            actor=performed_by,
            action=AuditAction.CREATE_VILLAGE,
            entity="Village",
            entity_id=village.pk,
            metadata={"name": name},
        )
        logger.info("Village %s (%s) created by admin=%s", village.pk, name, performed_by.pk)
        return village


# ═══════════════════════════════════════════════════════════════════
#  Current User Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """
    Profile operations for the authenticated user.  Role and village
    are never self-editable.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        return User.objects.select_related("village").get(pk=user.pk)

    @staticmethod
    @transaction.atomic
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Apply ``email``, ``phone_number``, ``first_name`` and
        ``last_name`` changes.

        Raises
        ------
        DomainError
            The new e-mail is already in use.
        """
        for field, value in validated_data.items():
            setattr(user, field, value)
        try:
            user.full_clean(exclude=["password"])
        except DjangoValidationError as exc:
            raise DomainError(_validation_message(exc))
        user.save(update_fields=list(validated_data.keys()))
        record(
            actor=user,
            action=AuditAction.UPDATE_PROFILE,
            entity="User",
            entity_id=user.pk,
            metadata={"fields": sorted(validated_data)},
        )
        return user
