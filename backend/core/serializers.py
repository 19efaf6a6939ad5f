"""
Core app serializers.

**Response-only** serializers for the aggregated endpoints served by the
core app.  They define the *output schema* for national analytics,
system constants and the notification inbox.

Architectural note
------------------
The analytics and constants serializers work exclusively with plain
Python dicts produced by the service layer, keeping the core app
decoupled from the ``cases`` models.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  National Analytics
# ════════════════════════════════════════════════════════════════════

class CountByChoiceSerializer(serializers.Serializer):
    """
    One bucket of a grouped count.

    Example::

        {"value": "IN_PROGRESS", "label": "In progress", "count": 12}
    """

    value = serializers.CharField()
    label = serializers.CharField()
    count = serializers.IntegerField()


class CountByVillageSerializer(serializers.Serializer):
    village_id = serializers.IntegerField()
    village_name = serializers.CharField()
    count = serializers.IntegerField()
    open_count = serializers.IntegerField(
        help_text="Cases of the village still PENDING or IN_PROGRESS.",
    )


class NationalAnalyticsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/analytics/``.

    Counts only; never carries case identifiers or case content.
    """

    total_cases = serializers.IntegerField()
    open_cases = serializers.IntegerField()
    signed_cases = serializers.IntegerField()
    closed_cases = serializers.IntegerField()
    false_reports = serializers.IntegerField()
    cases_by_status = CountByChoiceSerializer(many=True)
    cases_by_urgency = CountByChoiceSerializer(many=True)
    cases_by_incident_type = CountByChoiceSerializer(many=True)
    cases_by_village = CountByVillageSerializer(many=True)


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "HIGH", "label": "High"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    ``permission_matrix`` maps each role to its capability record, so
    the frontend can hide what a role cannot do.
    """

    roles = ChoiceItemSerializer(many=True)
    case_statuses = ChoiceItemSerializer(many=True)
    incident_types = ChoiceItemSerializer(many=True)
    urgencies = ChoiceItemSerializer(many=True)
    document_types = ChoiceItemSerializer(many=True)
    assignment_roles = ChoiceItemSerializer(many=True)
    notification_kinds = ChoiceItemSerializer(many=True)
    permission_matrix = serializers.DictField(
        child=serializers.DictField(),
        help_text="Role → capability record.",
    )


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.
    """

    id = serializers.IntegerField(read_only=True)
    kind = serializers.CharField(read_only=True)
    title = serializers.CharField(read_only=True)
    message = serializers.CharField(read_only=True)
    case_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="Related case (if any).",
    )
    is_read = serializers.BooleanField(read_only=True)
    read_at = serializers.DateTimeField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)
