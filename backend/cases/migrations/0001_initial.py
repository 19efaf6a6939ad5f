import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("IN_PROGRESS", "In Progress"), ("SIGNED", "Signed"), ("FALSE_REPORT", "False Report"), ("CLOSED", "Closed")], db_index=True, default="PENDING", max_length=20, verbose_name="Status")),
                ("score", models.PositiveSmallIntegerField(default=0, help_text="0-100, snapshot taken at creation.", verbose_name="Priority Score")),
                ("is_anonymous", models.BooleanField(default=False, verbose_name="Anonymous")),
                ("incident_type", models.CharField(choices=[("HEALTH", "Health"), ("BEHAVIOR", "Behavior"), ("VIOLENCE", "Violence"), ("SEXUAL_ABUSE", "Sexual Abuse"), ("NEGLECT", "Neglect"), ("CONFLICT", "Conflict"), ("OTHER", "Other")], max_length=20, verbose_name="Incident Type")),
                ("urgency", models.CharField(choices=[("LOW", "Low"), ("MEDIUM", "Medium"), ("HIGH", "High"), ("CRITICAL", "Critical")], max_length=10, verbose_name="Urgency")),
                ("abuser_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Abuser Name")),
                ("child_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Child Name")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("dir_village_validated_at", models.DateTimeField(blank=True, null=True)),
                ("dir_village_signature_path", models.CharField(blank=True, default="", max_length=500)),
                ("dir_village_signature_filename", models.CharField(blank=True, default="", max_length=255)),
                ("dir_village_signature_mime_type", models.CharField(blank=True, default="", max_length=100)),
                ("sauvegarde_validated_at", models.DateTimeField(blank=True, null=True)),
                ("sauvegarde_signature_path", models.CharField(blank=True, default="", max_length=500)),
                ("sauvegarde_signature_filename", models.CharField(blank=True, default="", max_length=255)),
                ("sauvegarde_signature_mime_type", models.CharField(blank=True, default="", max_length=100)),
                ("created_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="created_cases", to=settings.AUTH_USER_MODEL, verbose_name="Created By")),
                ("dir_village_validated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="director_validated_cases", to=settings.AUTH_USER_MODEL)),
                ("sauvegarde_validated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="safeguarding_validated_cases", to=settings.AUTH_USER_MODEL)),
                ("village", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="cases", to="accounts.village", verbose_name="Village")),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-score", "created_at"],
                "indexes": [
                    models.Index(fields=["village", "status"], name="case_village_status_idx"),
                    models.Index(fields=["village", "created_at"], name="case_village_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("sauvegarde_validated_at__isnull", True), ("dir_village_validated_at__isnull", False), _connector="OR"), name="case_safeguarding_requires_director_validation"),
                    models.CheckConstraint(condition=models.Q(("score__lte", 100)), name="case_score_at_most_100"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CaseAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("assignment_role", models.CharField(choices=[("PRIMARY", "Primary"), ("SECONDARY", "Secondary")], max_length=10)),
                ("assigned_at", models.DateTimeField(auto_now_add=True)),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="cases.case")),
                ("psychologist", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="case_assignments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Case Assignment",
                "verbose_name_plural": "Case Assignments",
                "ordering": ["assignment_role"],
                "constraints": [
                    models.UniqueConstraint(fields=("case", "assignment_role"), name="uniq_assignment_role_per_case"),
                    models.UniqueConstraint(fields=("case", "psychologist"), name="uniq_psychologist_per_case"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CaseAttachment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_path", models.CharField(max_length=500)),
                ("filename", models.CharField(max_length=255)),
                ("mime_type", models.CharField(max_length=100)),
                ("size_bytes", models.PositiveBigIntegerField()),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="attachments", to="cases.case")),
                ("uploaded_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Case Attachment",
                "verbose_name_plural": "Case Attachments",
                "ordering": ["uploaded_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="CaseDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_path", models.CharField(max_length=500)),
                ("filename", models.CharField(max_length=255)),
                ("mime_type", models.CharField(max_length=100)),
                ("size_bytes", models.PositiveBigIntegerField()),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                ("doc_type", models.CharField(choices=[("INITIAL_FORM", "Initial Form"), ("DPE_REPORT", "DPE Report")], db_index=True, max_length=20)),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="documents", to="cases.case")),
                ("uploaded_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Case Document",
                "verbose_name_plural": "Case Documents",
                "ordering": ["uploaded_at", "id"],
            },
        ),
    ]
