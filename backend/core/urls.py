"""
Core app URL configuration.

Provides cross-app endpoints: national analytics, system-wide
constants, and the notification inbox.

URL prefix (registered in ``backend/urls.py``)::

    path('api/core/', include('core.urls'))

Endpoint summary
----------------
GET  /api/core/analytics/                  — Aggregated national counts.
GET  /api/core/constants/                  — Choice enumerations + permission matrix.
GET  /api/core/notifications/              — Latest notifications of the user.
GET  /api/core/notifications/unread-count/ — Number of unread notifications.
POST /api/core/notifications/{id}/read/    — Mark a single notification as read.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = "core"

# ── Router for ViewSet-based endpoints ───────────────────────────────
router = DefaultRouter()
router.register(
    prefix=r"notifications",
    viewset=views.NotificationViewSet,
    basename="notification",
)

urlpatterns = [
    # ── National analytics ───────────────────────────────────────────
    path(
        "analytics/",
        views.NationalAnalyticsView.as_view(),
        name="national-analytics",
    ),

    # ── System Constants / Enums ─────────────────────────────────────
    path(
        "constants/",
        views.SystemConstantsView.as_view(),
        name="system-constants",
    ),

    # ── Notifications (router-generated URLs) ────────────────────────
    path("", include(router.urls)),
]
