from __future__ import annotations

from io import StringIO

import pytest
from django.core.management import call_command

from accounts.management.commands.seed_demo import DEMO_USERS
from accounts.models import User, Village
from core.constants import Role


@pytest.mark.django_db
class TestSeedDemo:

    def test_seeds_one_account_per_role(self):
        call_command("seed_demo", stdout=StringIO())

        assert Village.objects.count() == 2
        assert User.objects.count() == len(DEMO_USERS)
        assert set(User.objects.values_list("role", flat=True)) == set(Role.values)
        assert User.objects.get(username="psy1").village.name == "Village Tunis"
        assert User.objects.get(username="sauvegarde").village is None

    def test_idempotent_and_resets_password(self):
        call_command("seed_demo", stdout=StringIO())
        out = StringIO()
        call_command("seed_demo", "--password", "N3w!secret", stdout=out)

        assert User.objects.count() == len(DEMO_USERS)
        assert User.objects.get(username="decl1").check_password("N3w!secret")
        assert f"0 user(s) created, {len(DEMO_USERS)} user(s) updated" in out.getvalue()
