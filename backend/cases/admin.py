from django.contrib import admin

from .models import Case, CaseAssignment


class CaseAssignmentInline(admin.TabularInline):
    model = CaseAssignment
    extra = 0
    can_delete = False
    readonly_fields = ("psychologist", "assignment_role", "assigned_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    """
    Operational view only: status, score, village and workflow
    timestamps.  Names, description and files are not exposed here;
    case content is read through the API where role masking applies.
    """

    list_display = ("id", "village", "status", "score", "urgency",
                    "incident_type", "created_at")
    list_filter = ("status", "urgency", "incident_type", "village")
    fields = ("village", "status", "score", "urgency", "incident_type",
              "is_anonymous", "created_at", "dir_village_validated_at",
              "sauvegarde_validated_at")
    readonly_fields = fields
    inlines = [CaseAssignmentInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
