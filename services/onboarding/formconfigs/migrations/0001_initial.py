# Generated manually for initial schema.
from __future__ import annotations

from django.db import migrations, models

import formconfigs.models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="FormConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("config_id", models.CharField(default=formconfigs.models.generate_config_id, max_length=64, unique=True)),
                ("name", models.CharField(max_length=255)),
                (
                    "form_type",
                    models.CharField(
                        choices=[
                            ("personal-details", "Personal Details"),
                            ("family-details", "Family Details"),
                            ("employment", "Employment"),
                            ("income", "Income"),
                            ("expenses", "Expenses"),
                            ("assets", "Assets"),
                            ("liabilities", "Liabilities"),
                            ("financial-profile", "Financial Profile"),
                            ("risk-assessment", "Risk Assessment"),
                            ("goal-setting", "Goal Setting"),
                            ("single-applicant", "Single Applicant"),
                            ("dual-applicant", "Dual Applicant"),
                        ],
                        max_length=32,
                    ),
                ),
                ("version", models.CharField(max_length=32)),
                ("description", models.TextField(blank=True)),
                ("applicantconfig", models.CharField(choices=[("single", "Single"), ("joint", "Joint")], default="single", max_length=16)),
                ("sections", models.JSONField(blank=True, default=list)),
                ("consent_forms", models.JSONField(blank=True, default=list)),
                ("documents", models.JSONField(blank=True, default=list)),
                ("is_active", models.BooleanField(default=True)),
                ("created_by_id", models.CharField(blank=True, max_length=64)),
                ("usage_count", models.PositiveIntegerField(default=0)),
                ("last_used_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name", "id"],
                "indexes": [
                    models.Index(fields=["form_type"], name="formconfigs_form_ty_3c1d2e_idx"),
                    models.Index(fields=["is_active"], name="formconfigs_is_acti_8b7f4a_idx"),
                ],
            },
        ),
    ]
