"""
Accounts app models.

Defines ``Village`` and a custom ``User`` model that extends Django's
``AbstractUser`` with a single fixed role and an optional village
affiliation.

Village affiliation rule
------------------------
Declarants, psychologists and village directors belong to exactly one
village.  Safeguarding officers, the national director and IT admins
belong to none.  ``User.clean`` enforces this for every write path
that validates the model (admin, ``UserManagementService``).
"""

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

from core.constants import VILLAGE_BOUND_ROLES, Role


class Village(models.Model):
    """An SOS children's village.  Immutable once created."""

    name = models.CharField(
        max_length=150,
        unique=True,
        verbose_name="Village Name",
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Village"
        verbose_name_plural = "Villages"
        ordering = ["name"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model.

    Login is supported via *either* username or email together with the
    password.  ``phone_number`` is the WhatsApp address used by the
    pending-case reminder.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Phone Number (WhatsApp)",
    )
    role = models.CharField(
        max_length=32,
        choices=Role.choices,
        default=Role.DECLARANT,
        db_index=True,
        verbose_name="Role",
    )
    village = models.ForeignKey(
        Village,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
        verbose_name="Village",
    )

    # Fields required when creating a superuser via CLI
    REQUIRED_FIELDS = ["email", "role"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=["role", "village"], name="user_role_village_idx"),
        ]

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def clean(self):
        super().clean()
        if self.role in VILLAGE_BOUND_ROLES and self.village_id is None:
            raise ValidationError(
                {"village": f"A {self.get_role_display()} must belong to a village."}
            )
        if self.role not in VILLAGE_BOUND_ROLES and self.village_id is not None:
            raise ValidationError(
                {"village": f"A {self.get_role_display()} cannot belong to a village."}
            )

    # ── Capabilities ─────────────────────────────────────────────────

    @property
    def capabilities(self):
        from core.permissions_constants import get_capabilities

        return get_capabilities(self.role)
