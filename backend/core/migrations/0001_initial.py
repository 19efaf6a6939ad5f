import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("cases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(db_index=True, max_length=64, verbose_name="Action")),
                ("entity", models.CharField(max_length=64, verbose_name="Entity")),
                ("entity_id", models.CharField(max_length=64, verbose_name="Entity ID")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="Metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("actor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="audit_entries", to=settings.AUTH_USER_MODEL, verbose_name="Actor")),
            ],
            options={
                "verbose_name": "Audit Log Entry",
                "verbose_name_plural": "Audit Log",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["entity", "entity_id"], name="audit_entity_idx")],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("CASE_ASSIGNED", "Case assigned"), ("DOCUMENTS_COMPLETE", "Documents complete"), ("DIRECTOR_VALIDATED", "Validated by village director"), ("CASE_SIGNED", "Case signed"), ("CASE_CLOSED", "Case closed"), ("CASE_FALSE_REPORT", "Case marked as false report"), ("PENDING_REMINDER", "Case pending for too long")], max_length=32, verbose_name="Kind")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("message", models.TextField(verbose_name="Message")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("read_at", models.DateTimeField(blank=True, null=True, verbose_name="Read At")),
                ("case", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to="cases.case", verbose_name="Case")),
                ("recipient", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to=settings.AUTH_USER_MODEL, verbose_name="Recipient")),
            ],
            options={
                "verbose_name": "Notification",
                "verbose_name_plural": "Notifications",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["recipient", "read_at"], name="notif_recipient_read_idx")],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("case__isnull", False)), fields=("recipient", "case", "kind"), name="uniq_notification_per_recipient_case_kind"),
                ],
            },
        ),
    ]
