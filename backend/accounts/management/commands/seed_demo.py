"""
Management command: seed_demo
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Seeds two villages and one demo account per role so that the whole
approval chain can be exercised locally.

Roles carry no database rows: capabilities come from
``core.permissions_constants.PERMISSION_MATRIX``.  This command only
creates users and their village affiliation.

The command is **idempotent** and safe to run multiple times.  Existing
users are updated to match the table below and get their password
reset.

Usage::

    python manage.py seed_demo
    python manage.py seed_demo --password S3cret!
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import User, Village
from core.constants import Role

VILLAGES = ["Village Tunis", "Village Sousse"]

# ────────────────────────────────────────────────────────────────────
# Demo accounts
# ────────────────────────────────────────────────────────────────────
# Key:   username
# Value: (email, first_name, last_name, role, village name or None)

DEMO_USERS: dict[str, tuple[str, str, str, str, str | None]] = {
    "decl1":      ("decl1@sos.tn",      "Declarant", "One",    Role.DECLARANT,            "Village Tunis"),
    "psy1":       ("psy1@sos.tn",       "Psy",       "One",    Role.PSYCHOLOGIST,         "Village Tunis"),
    "psy2":       ("psy2@sos.tn",       "Psy",       "Two",    Role.PSYCHOLOGIST,         "Village Tunis"),
    "psy3":       ("psy3@sos.tn",       "Psy",       "Three",  Role.PSYCHOLOGIST,         "Village Sousse"),
    "dir.tunis":  ("dir.tunis@sos.tn",  "Directeur", "Tunis",  Role.VILLAGE_DIRECTOR,     "Village Tunis"),
    "dir.sousse": ("dir.sousse@sos.tn", "Directeur", "Sousse", Role.VILLAGE_DIRECTOR,     "Village Sousse"),
    "sauvegarde": ("sauvegarde@sos.tn", "Responsable", "Sauvegarde", Role.SAFEGUARDING_OFFICER, None),
    "national":   ("national@sos.tn",   "Directeur", "National", Role.NATIONAL_DIRECTOR, None),
    "admin.it":   ("admin.it@sos.tn",   "Admin",     "IT",     Role.IT_ADMIN,             None),
}


class Command(BaseCommand):
    help = (
        "Seeds demo villages and one user per role.  Safe to run "
        "multiple times (idempotent)."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--password",
            default="password123",
            help="Password set on every demo account (default: password123).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  Demo Setup — Seeding Villages & Users"
            "\n══════════════════════════════════════════\n"
        ))

        villages: dict[str, Village] = {}
        for name in VILLAGES:
            village, created = Village.objects.get_or_create(name=name)
            villages[name] = village
            self.stdout.write(self.style.SUCCESS(
                f"  ✔  {'Created' if created else 'Found'} village: {name}"
            ))

        users_created = 0
        users_updated = 0

        for username, (email, first, last, role, village_name) in DEMO_USERS.items():
            user, created = User.objects.get_or_create(
                username=username,
                defaults={"email": email},
            )
            user.email = email
            user.first_name = first
            user.last_name = last
            user.role = role
            user.village = villages[village_name] if village_name else None
            user.is_staff = role == Role.IT_ADMIN
            user.set_password(options["password"])
            user.full_clean()
            user.save()

            if created:
                users_created += 1
            else:
                users_updated += 1
            self.stdout.write(self.style.SUCCESS(
                f"  ✔  {'Created' if created else 'Updated'} user: {username:<12s} "
                f"(role={role}, village={village_name or '-'})"
            ))

        # ── Summary ─────────────────────────────────────────────────
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n──────────────────────────────────────────"
        ))
        self.stdout.write(self.style.SUCCESS(
            f"  Done!  {users_created} user(s) created, "
            f"{users_updated} user(s) updated.\n"
        ))
