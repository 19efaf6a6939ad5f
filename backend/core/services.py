"""
Core app service layer.

Cross-app read services that back the ``core`` endpoints:

* ``NationalAnalyticsService`` — aggregate counts for the national
  director.  Never returns an individual case.
* ``SystemConstantsService`` — choice enumerations and the permission
  matrix for frontend dropdowns and feature gating.
* ``NotificationQueryService`` — the in-app inbox of the requesting
  user.

Notification *creation* lives in ``core.domain.notifications``.
"""

from __future__ import annotations

from typing import Any

from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from core.constants import NOTIFICATION_LIST_LIMIT, Role
from core.domain.access import require_capability
from core.domain.exceptions import NotFound, PermissionDenied
from core.models import Notification, NotificationKind
from core.permissions_constants import PERMISSION_MATRIX, Capability


# ═══════════════════════════════════════════════════════════════════
#  National Analytics Service
# ═══════════════════════════════════════════════════════════════════


class NationalAnalyticsService:
    """
    Produces the aggregated statistics dict consumed by
    ``NationalAnalyticsSerializer``.

    Only roles holding ``can_view_national_analytics`` may call it.  The
    payload contains counts only: no identifiers, names, descriptions
    or files ever leave this service.
    """

    def __init__(self, user) -> None:
        require_capability(
            user,
            Capability.CAN_VIEW_NATIONAL_ANALYTICS,
            message="National analytics are restricted to the national director.",
        )
        self.user = user

    # ── Public API ──────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        """Return the full analytics dictionary."""
        from cases.models import Case, CaseStatus, OPEN_STATUSES

        case_qs = Case.objects.all()
        aggregates = case_qs.aggregate(
            total_cases=Count("id"),
            open_cases=Count("id", filter=Q(status__in=OPEN_STATUSES)),
            signed_cases=Count("id", filter=Q(status=CaseStatus.SIGNED)),
            closed_cases=Count("id", filter=Q(status=CaseStatus.CLOSED)),
            false_reports=Count("id", filter=Q(status=CaseStatus.FALSE_REPORT)),
        )
        return {
            **aggregates,
            "cases_by_status": self._group(case_qs, "status", CaseStatus.choices),
            "cases_by_urgency": self._cases_by_urgency(case_qs),
            "cases_by_incident_type": self._cases_by_incident_type(case_qs),
            "cases_by_village": self._cases_by_village(case_qs),
        }

    # ── Private helpers ─────────────────────────────────────────────

    @staticmethod
    def _group(case_qs: QuerySet, field: str, choices) -> list[dict[str, Any]]:
        """Group ``case_qs`` by ``field`` and label the rows from ``choices``."""
        label_map = dict(choices)
        rows = (
            case_qs
            .values(field)
            .annotate(count=Count("id"))
            .order_by(field)
        )
        return [
            {
                "value": row[field],
                "label": str(label_map.get(row[field], row[field])),
                "count": row["count"],
            }
            for row in rows
        ]

    def _cases_by_urgency(self, case_qs: QuerySet) -> list[dict[str, Any]]:
        from cases.models import Urgency

        return self._group(case_qs, "urgency", Urgency.choices)

    def _cases_by_incident_type(self, case_qs: QuerySet) -> list[dict[str, Any]]:
        from cases.models import IncidentType

        return self._group(case_qs, "incident_type", IncidentType.choices)

    @staticmethod
    def _cases_by_village(case_qs: QuerySet) -> list[dict[str, Any]]:
        from cases.models import OPEN_STATUSES

        rows = (
            case_qs
            .values("village_id", "village__name")
            .annotate(
                count=Count("id"),
                open_count=Count("id", filter=Q(status__in=OPEN_STATUSES)),
            )
            .order_by("village__name")
        )
        return [
            {
                "village_id": row["village_id"],
                "village_name": row["village__name"],
                "count": row["count"],
                "open_count": row["open_count"],
            }
            for row in rows
        ]


# ═══════════════════════════════════════════════════════════════════
#  System Constants Service
# ═══════════════════════════════════════════════════════════════════


class SystemConstantsService:
    """
    Gathers all choice enumerations and the permission matrix into a
    single dict for the frontend.

    This service is **stateless**: it does not depend on the requesting
    user.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from cases.models import (
            AssignmentRole,
            CaseStatus,
            DocumentType,
            IncidentType,
            Urgency,
        )

        to_list = SystemConstantsService._choices_to_list

        return {
            "roles": to_list(Role),
            "case_statuses": to_list(CaseStatus),
            "incident_types": to_list(IncidentType),
            "urgencies": to_list(Urgency),
            "document_types": to_list(DocumentType),
            "assignment_roles": to_list(AssignmentRole),
            "notification_kinds": to_list(NotificationKind),
            "permission_matrix": {
                str(role): caps.as_dict() for role, caps in PERMISSION_MATRIX.items()
            },
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Query Service
# ═══════════════════════════════════════════════════════════════════


class NotificationQueryService:
    """
    Handles listing and marking notifications as read for a given user.
    """

    def __init__(self, user) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        """Return the latest notifications for ``self.user``, most recent first."""
        qs = Notification.objects.filter(recipient=self.user)
        if unread_only:
            qs = qs.filter(read_at__isnull=True)
        return qs.order_by("-created_at", "-id")[:NOTIFICATION_LIST_LIMIT]

    def unread_count(self) -> int:
        return Notification.objects.filter(
            recipient=self.user, read_at__isnull=True,
        ).count()

    def mark_as_read(self, notification_id: int) -> Notification:
        """
        Mark a single notification as read.  Marking an already-read
        notification keeps its original ``read_at``.

        Raises
        ------
        NotFound
            No such notification.
        PermissionDenied
            The notification belongs to another user.
        """
        try:
            notification = Notification.objects.get(pk=notification_id)
        except Notification.DoesNotExist:
            raise NotFound(f"Notification with id {notification_id} not found.")

        if notification.recipient_id != self.user.pk:
            raise PermissionDenied("You can only mark your own notifications as read.")

        if notification.read_at is None:
            notification.read_at = timezone.now()
            notification.save(update_fields=["read_at"])
        return notification
