"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``village`` / ``other_village`` fixtures.
  - ``create_user`` factory fixture for creating test users with a role.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``media_root`` fixture redirecting uploads to a temporary directory.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient

from core.constants import VILLAGE_BOUND_ROLES, Role


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def village(db):
    from accounts.models import Village

    return Village.objects.create(name="Tunis")


@pytest.fixture()
def other_village(db):
    from accounts.models import Village

    return Village.objects.create(name="Sousse")


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Village-bound roles fall back to a shared default village when none
    is given, so the affiliation rule always holds.

    Usage::

        def test_something(create_user, village):
            psy = create_user(role=Role.PSYCHOLOGIST, village=village)
            officer = create_user(role=Role.SAFEGUARDING_OFFICER)
    """
    from accounts.models import User, Village

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        role: str = Role.DECLARANT,
        village=None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"
        if village is None and role in VILLAGE_BOUND_ROLES:
            village, _ = Village.objects.get_or_create(name="Default Village")

        return User.objects.create_user(
            username=username,
            password=password,
            email=email,
            role=role,
            village=village,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(*, role: str = Role.DECLARANT, **user_kwargs) -> dict[str, str]:
        user = create_user(role=role, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def media_root(tmp_path, settings):
    """Store uploaded files under a per-test temporary directory."""
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path
