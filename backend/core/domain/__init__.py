"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF handler translating those exceptions to status codes.
access             Case access guard, role-scoped selectors, capability checks.
audit              Append-only audit trail writer.
notifications      Notification creation and after-commit delivery.
storage            Uploaded-file storage adapter.
transactions       ``select_for_update`` and compare-and-set helpers.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidCaseStatus
    from core.domain.notifications import NotificationService
    from core.domain.transactions import lock_for_update
    from core.domain.access import apply_case_scope, require_capability
"""
