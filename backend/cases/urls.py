"""
Cases app URL configuration.

All routes are registered under the ``/api/`` prefix.

Route Hierarchy
---------------
  /api/cases/                             → list / create
  /api/cases/{id}/                        → retrieve

  ── Workflow @actions (resource-level RPC) ──────────────────────
  POST /api/cases/{id}/status/                  → psychologist status update
  POST /api/cases/{id}/validate-director/       → village director signature
  POST /api/cases/{id}/validate-safeguarding/   → safeguarding signature

  ── Nested sub-resources ────────────────────────────────────────
  GET  /api/cases/{case_pk}/documents/                 → list
  POST /api/cases/{case_pk}/documents/                 → upload
  GET  /api/cases/{case_pk}/documents/{id}/            → metadata
  GET  /api/cases/{case_pk}/documents/{id}/download/   → file
  GET  /api/cases/{case_pk}/attachments/               → list
  GET  /api/cases/{case_pk}/attachments/{id}/download/ → file

Router Strategy
---------------
``drf-nested-routers`` (``rest_framework_nested``) generates the
``{case_pk}`` prefix.
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers as nested_routers

from .views import CaseAttachmentViewSet, CaseDocumentViewSet, CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

cases_router = nested_routers.NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"cases",
    lookup="case",
)
cases_router.register(
    prefix=r"documents",
    viewset=CaseDocumentViewSet,
    basename="case-document",
)
cases_router.register(
    prefix=r"attachments",
    viewset=CaseAttachmentViewSet,
    basename="case-attachment",
)

urlpatterns = router.urls + cases_router.urls
