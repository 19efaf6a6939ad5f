"""
Tests for the IT administrator's user and village management endpoints.
"""

from __future__ import annotations

import pytest
from django.urls import reverse
from rest_framework import status

from accounts.models import User, Village
from accounts.services import UserManagementService, VillageService
from core.constants import Role
from core.domain.audit import AuditAction
from core.models import AuditLog


@pytest.fixture()
def admin_headers(auth_header):
    return auth_header(role=Role.IT_ADMIN, username="it_admin")


@pytest.mark.django_db
class TestCreateUser:

    def _payload(self, **overrides):
        payload = {
            "username": "new_psy",
            "email": "new_psy@example.org",
            "password": "Welcome!2025",
            "role": Role.PSYCHOLOGIST,
            "first_name": "Nour",
            "last_name": "Haddad",
        }
        payload.update(overrides)
        return payload

    def test_admin_creates_village_bound_user(self, api_client, admin_headers, village):
        resp = api_client.post(
            reverse("accounts:user-list"),
            self._payload(village=village.pk),
            format="json",
            headers=admin_headers,
        )

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        created = User.objects.get(username="new_psy")
        assert created.role == Role.PSYCHOLOGIST
        assert created.village == village
        assert created.check_password("Welcome!2025")
        assert "password" not in resp.data
        assert AuditLog.objects.filter(action=AuditAction.CREATE_USER, entity_id=str(created.pk)).exists()

    def test_village_bound_role_needs_village(self, api_client, admin_headers):
        resp = api_client.post(
            reverse("accounts:user-list"), self._payload(), format="json", headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.data["code"] == "INVALID_INPUT"
        assert not User.objects.filter(username="new_psy").exists()

    def test_national_role_cannot_have_village(self, api_client, admin_headers, village):
        resp = api_client.post(
            reverse("accounts:user-list"),
            self._payload(role=Role.SAFEGUARDING_OFFICER, village=village.pk),
            format="json",
            headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "village" in resp.data["detail"]

    def test_duplicate_username_rejected(self, api_client, admin_headers, create_user, village):
        create_user(username="new_psy", role=Role.PSYCHOLOGIST, village=village)
        resp = api_client.post(
            reverse("accounts:user-list"),
            self._payload(village=village.pk, email="other@example.org"),
            format="json",
            headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_role_rejected(self, api_client, admin_headers):
        resp = api_client.post(
            reverse("accounts:user-list"),
            self._payload(role="SUPERHERO"),
            format="json",
            headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "role" in resp.data

    @pytest.mark.parametrize("role", [
        Role.DECLARANT,
        Role.PSYCHOLOGIST,
        Role.VILLAGE_DIRECTOR,
        Role.SAFEGUARDING_OFFICER,
        Role.NATIONAL_DIRECTOR,
    ])
    def test_only_it_admin(self, api_client, auth_header, village, role):
        resp = api_client.post(
            reverse("accounts:user-list"),
            self._payload(village=village.pk),
            format="json",
            headers=auth_header(role=role),
        )
        assert resp.status_code == status.HTTP_403_FORBIDDEN
        assert not User.objects.filter(username="new_psy").exists()


@pytest.mark.django_db
class TestListAndActivate:

    def test_list_filters(self, api_client, admin_headers, create_user, village, other_village):
        create_user(username="psy_tunis", role=Role.PSYCHOLOGIST, village=village)
        create_user(username="psy_sousse", role=Role.PSYCHOLOGIST, village=other_village)
        create_user(username="dir_tunis", role=Role.VILLAGE_DIRECTOR, village=village)

        resp = api_client.get(
            reverse("accounts:user-list"),
            {"role": Role.PSYCHOLOGIST, "village": village.pk},
            headers=admin_headers,
        )

        assert resp.status_code == status.HTTP_200_OK
        assert [u["username"] for u in resp.data] == ["psy_tunis"]

    def test_deactivate_and_reactivate(self, api_client, admin_headers, create_user, village):
        target = create_user(username="psy_leaving", role=Role.PSYCHOLOGIST, village=village)
        url = reverse("accounts:user-set-active", kwargs={"pk": target.pk})

        resp = api_client.patch(url, {"is_active": False}, format="json", headers=admin_headers)
        assert resp.status_code == status.HTTP_200_OK
        target.refresh_from_db()
        assert target.is_active is False

        resp = api_client.patch(url, {"is_active": True}, format="json", headers=admin_headers)
        target.refresh_from_db()
        assert target.is_active is True

        entries = AuditLog.objects.filter(
            action=AuditAction.SET_USER_ACTIVE, entity_id=str(target.pk),
        ).order_by("id")
        assert [e.metadata["is_active"] for e in entries] == [False, True]

    def test_set_active_service_writes_one_audit_row(self, create_user, village):
        admin = create_user(username="root_admin", role=Role.IT_ADMIN)
        psy = create_user(username="psy_paused", role=Role.PSYCHOLOGIST, village=village)
        before = AuditLog.objects.count()

        UserManagementService.set_active(admin, psy.pk, False)

        assert AuditLog.objects.count() == before + 1
        entry = AuditLog.objects.latest("id")
        assert entry.actor == admin
        assert entry.entity == "User"
        assert entry.entity_id == str(psy.pk)

    def test_admin_cannot_deactivate_self(self, api_client, admin_headers):
        me = User.objects.get(username="it_admin")
        resp = api_client.patch(
            reverse("accounts:user-set-active", kwargs={"pk": me.pk}),
            {"is_active": False},
            format="json",
            headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        me.refresh_from_db()
        assert me.is_active is True
        assert not AuditLog.objects.filter(action=AuditAction.SET_USER_ACTIVE).exists()

    def test_retrieve_missing_user(self, api_client, admin_headers):
        resp = api_client.get(reverse("accounts:user-detail", kwargs={"pk": 987654}), headers=admin_headers)
        assert resp.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestVillages:

    def test_anyone_authenticated_lists_villages(self, api_client, auth_header, village, other_village):
        resp = api_client.get(reverse("accounts:village-list"), headers=auth_header(role=Role.SAFEGUARDING_OFFICER))
        assert resp.status_code == status.HTTP_200_OK
        assert [v["name"] for v in resp.data] == ["Sousse", "Tunis"]

    def test_admin_creates_village(self, api_client, admin_headers):
        resp = api_client.post(
            reverse("accounts:village-list"), {"name": "Mahdia"}, format="json", headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_201_CREATED
        mahdia = Village.objects.get(name="Mahdia")
        entry = AuditLog.objects.get(action=AuditAction.CREATE_VILLAGE)
        assert entry.entity == "Village"
        assert entry.entity_id == str(mahdia.pk)
        assert entry.actor.username == "it_admin"

    def test_create_village_service_is_audited(self, create_user):
        admin = create_user(username="root_admin", role=Role.IT_ADMIN)

        gafsa = VillageService.create_village(admin, "  Gafsa ")

        assert gafsa.name == "Gafsa"
        entry = AuditLog.objects.get(action=AuditAction.CREATE_VILLAGE)
        assert entry.entity_id == str(gafsa.pk)
        assert entry.metadata == {"name": "Gafsa"}

    def test_duplicate_name_rejected(self, api_client, admin_headers, village):
        resp = api_client.post(
            reverse("accounts:village-list"), {"name": "tunis"}, format="json", headers=admin_headers,
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert Village.objects.count() == 1
        assert not AuditLog.objects.filter(action=AuditAction.CREATE_VILLAGE).exists()

    def test_non_admin_cannot_create(self, api_client, auth_header):
        resp = api_client.post(
            reverse("accounts:village-list"),
            {"name": "Mahdia"},
            format="json",
            headers=auth_header(role=Role.NATIONAL_DIRECTOR),
        )
        assert resp.status_code == status.HTTP_403_FORBIDDEN
