"""Database models for form submissions and their tracked documents."""
from __future__ import annotations

from typing import Any, Dict, Optional

from django.db import models
from django.utils import timezone

from formconfigs.schema import APPLICANT_ONE, APPLICANT_SINGLE, APPLICANT_TWO

from . import documents, lifecycle


class FormSubmission(models.Model):
    """One client's answer set against a form configuration."""

    DRAFT = lifecycle.DRAFT
    SUBMITTED = lifecycle.SUBMITTED
    REVIEWED = lifecycle.REVIEWED
    APPROVED = lifecycle.APPROVED
    REJECTED = lifecycle.REJECTED

    STATUS_CHOICES = [
        (DRAFT, "Draft"),
        (SUBMITTED, "Submitted"),
        (REVIEWED, "Reviewed"),
        (APPROVED, "Approved"),
        (REJECTED, "Rejected"),
    ]

    form_config_id = models.CharField(max_length=64, db_index=True)
    user_id = models.CharField(max_length=64, db_index=True)
    form_data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=DRAFT)
    submitted_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.CharField(max_length=64, blank=True)
    review_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]
        indexes = [
            models.Index(fields=["status"], name="submissions_status_5e2a1c_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.form_config_id} for {self.user_id} ({self.status})"

    @property
    def is_editable(self) -> bool:
        return lifecycle.is_client_editable(self.status)

    def mark_submitted(self) -> None:
        lifecycle.ensure_transition(self.status, self.SUBMITTED)
        self.status = self.SUBMITTED
        self.submitted_at = timezone.now()
        self.save(update_fields=["status", "submitted_at", "updated_at"])

    def mark_reviewed(self, target: str, reviewed_by: str = "", review_notes: str = "") -> None:
        """Apply a coach/admin decision: reviewed, approved or rejected."""

        lifecycle.ensure_transition(self.status, target)
        self.status = target
        self.reviewed_at = timezone.now()
        self.reviewed_by = reviewed_by or self.reviewed_by
        if review_notes:
            self.review_notes = review_notes
        self.save(
            update_fields=["status", "reviewed_at", "reviewed_by", "review_notes", "updated_at"]
        )


class SubmissionDocument(models.Model):
    """Tracking record for one upload attempt of one required document."""

    APPLICANT_TYPE_CHOICES = [
        (APPLICANT_SINGLE, "Single"),
        (APPLICANT_ONE, "Applicant 1"),
        (APPLICANT_TWO, "Applicant 2"),
    ]

    PENDING = documents.PENDING
    UPLOADING = documents.UPLOADING
    UPLOADED = documents.UPLOADED
    FAILED = documents.FAILED
    REPLACED = documents.REPLACED

    UPLOAD_STATUS_CHOICES = [
        (PENDING, "Pending"),
        (UPLOADING, "Uploading"),
        (UPLOADED, "Uploaded"),
        (FAILED, "Failed"),
        (REPLACED, "Replaced"),
    ]

    VERIFICATION_STATUS_CHOICES = [
        (documents.VERIFICATION_PENDING, "Pending"),
        (documents.VERIFICATION_APPROVED, "Approved"),
        (documents.VERIFICATION_REJECTED, "Rejected"),
        (documents.VERIFICATION_REQUIRES_REPLACEMENT, "Requires Replacement"),
    ]

    form_submission = models.ForeignKey(
        FormSubmission,
        on_delete=models.CASCADE,
        related_name="documents",
    )
    document_id = models.CharField(max_length=64)
    applicant_type = models.CharField(
        max_length=16, choices=APPLICANT_TYPE_CHOICES, default=APPLICANT_SINGLE
    )
    original_filename = models.CharField(max_length=255)
    file_size_bytes = models.PositiveBigIntegerField(default=0)
    content_type = models.CharField(max_length=128, blank=True)
    firebase_path = models.CharField(max_length=512, blank=True)
    firebase_download_url = models.TextField(blank=True)
    firebase_metadata = models.JSONField(default=dict, blank=True)
    upload_status = models.CharField(
        max_length=16, choices=UPLOAD_STATUS_CHOICES, default=PENDING
    )
    uploaded_at = models.DateTimeField(null=True, blank=True)
    uploaded_by = models.CharField(max_length=64, blank=True)
    verification_status = models.CharField(
        max_length=32,
        choices=VERIFICATION_STATUS_CHOICES,
        default=documents.VERIFICATION_PENDING,
    )
    verified_by = models.CharField(max_length=64, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verification_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["form_submission", "document_id", "applicant_type"],
                name="submissions_doc_key_7d41b9_idx",
            ),
            models.Index(fields=["upload_status"], name="submissions_upload_2f6c80_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.document_id}/{self.applicant_type} ({self.upload_status})"

    def mark_uploaded(
        self,
        download_url: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.upload_status = self.UPLOADED
        self.uploaded_at = timezone.now()
        if download_url:
            self.firebase_download_url = download_url
        if metadata:
            self.firebase_metadata = metadata
        self.save(
            update_fields=[
                "upload_status",
                "uploaded_at",
                "firebase_download_url",
                "firebase_metadata",
                "updated_at",
            ]
        )

    def mark_failed(self, message: str) -> None:
        self.upload_status = self.FAILED
        self.verification_notes = message
        self.save(update_fields=["upload_status", "verification_notes", "updated_at"])

    def mark_replaced(self, reason: str = "") -> None:
        self.upload_status = self.REPLACED
        if reason:
            self.verification_notes = reason
        self.save(update_fields=["upload_status", "verification_notes", "updated_at"])

    def verify(self, verification_status: str, verified_by: str = "", notes: str = "") -> None:
        self.verification_status = verification_status
        self.verified_by = verified_by
        self.verified_at = timezone.now()
        if notes:
            self.verification_notes = notes
        self.save(
            update_fields=[
                "verification_status",
                "verified_by",
                "verified_at",
                "verification_notes",
                "updated_at",
            ]
        )
