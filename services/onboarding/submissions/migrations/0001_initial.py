# Generated manually for initial schema.
from __future__ import annotations

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="FormSubmission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("form_config_id", models.CharField(db_index=True, max_length=64)),
                ("user_id", models.CharField(db_index=True, max_length=64)),
                ("form_data", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("submitted", "Submitted"),
                            ("reviewed", "Reviewed"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("reviewed_by", models.CharField(blank=True, max_length=64)),
                ("review_notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at", "id"],
                "indexes": [
                    models.Index(fields=["status"], name="submissions_status_5e2a1c_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubmissionDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_id", models.CharField(max_length=64)),
                (
                    "applicant_type",
                    models.CharField(
                        choices=[
                            ("single", "Single"),
                            ("applicant1", "Applicant 1"),
                            ("applicant2", "Applicant 2"),
                        ],
                        default="single",
                        max_length=16,
                    ),
                ),
                ("original_filename", models.CharField(max_length=255)),
                ("file_size_bytes", models.PositiveBigIntegerField(default=0)),
                ("content_type", models.CharField(blank=True, max_length=128)),
                ("firebase_path", models.CharField(blank=True, max_length=512)),
                ("firebase_download_url", models.TextField(blank=True)),
                ("firebase_metadata", models.JSONField(blank=True, default=dict)),
                (
                    "upload_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("uploading", "Uploading"),
                            ("uploaded", "Uploaded"),
                            ("failed", "Failed"),
                            ("replaced", "Replaced"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("uploaded_at", models.DateTimeField(blank=True, null=True)),
                ("uploaded_by", models.CharField(blank=True, max_length=64)),
                (
                    "verification_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("requires_replacement", "Requires Replacement"),
                        ],
                        default="pending",
                        max_length=32,
                    ),
                ),
                ("verified_by", models.CharField(blank=True, max_length=64)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("verification_notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "form_submission",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="documents",
                        to="submissions.formsubmission",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["form_submission", "document_id", "applicant_type"],
                        name="submissions_doc_key_7d41b9_idx",
                    ),
                    models.Index(fields=["upload_status"], name="submissions_upload_2f6c80_idx"),
                ],
            },
        ),
    ]
