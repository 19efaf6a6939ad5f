from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, Village


@admin.register(Village)
class VillageAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)

    def get_readonly_fields(self, request, obj=None):
        # Villages are immutable once created.
        return ("name", "created_at") if obj else ("created_at",)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "first_name", "last_name",
                    "role", "village", "is_active")
    search_fields = ("username", "email", "first_name", "last_name")
    list_filter = ("is_active", "role", "village")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Affiliation", {"fields": ("role", "village", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Affiliation", {"fields": ("email", "first_name", "last_name",
                                    "role", "village", "phone_number")}),
    )
