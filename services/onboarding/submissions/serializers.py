"""Serializers for submissions and document tracking records."""
from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from formconfigs.schema import APPLICANT_TYPES

from .models import FormSubmission, SubmissionDocument


class SubmissionDocumentSerializer(serializers.ModelSerializer):
    form_submission_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = SubmissionDocument
        fields = [
            "id",
            "form_submission_id",
            "document_id",
            "applicant_type",
            "original_filename",
            "file_size_bytes",
            "content_type",
            "firebase_path",
            "firebase_download_url",
            "firebase_metadata",
            "upload_status",
            "uploaded_at",
            "uploaded_by",
            "verification_status",
            "verified_by",
            "verified_at",
            "verification_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class FormSubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = FormSubmission
        fields = [
            "id",
            "form_config_id",
            "user_id",
            "form_data",
            "status",
            "submitted_at",
            "reviewed_at",
            "reviewed_by",
            "review_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "submitted_at",
            "reviewed_at",
            "reviewed_by",
            "review_notes",
            "created_at",
            "updated_at",
        ]

    def validate_form_data(self, value: Any) -> Dict[str, Any]:
        if not isinstance(value, dict):
            raise serializers.ValidationError("Must be a JSON object.")
        return value

    def validate_status(self, value: str) -> str:
        # Clients only ever write drafts or submit; review states go through review actions.
        if value not in {FormSubmission.DRAFT, FormSubmission.SUBMITTED}:
            raise serializers.ValidationError(
                "Only draft or submitted may be set directly."
            )
        return value


class ReviewSerializer(serializers.Serializer):
    reviewed_by = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    review_notes = serializers.CharField(required=False, allow_blank=True, default="")


class DocumentActionSerializer(serializers.Serializer):
    """Body of ``POST /form-submissions/:id/documents``."""

    CREATE = "create"
    MARK_UPLOADED = "mark-uploaded"
    MARK_FAILED = "mark-failed"

    ACTION_CHOICES = [CREATE, MARK_UPLOADED, MARK_FAILED]

    action = serializers.ChoiceField(choices=ACTION_CHOICES, default=CREATE)
    submission_document_id = serializers.IntegerField(required=False)
    document_id = serializers.CharField(max_length=64, required=False)
    applicant_type = serializers.ChoiceField(choices=APPLICANT_TYPES, required=False)
    original_filename = serializers.CharField(max_length=255, required=False, allow_blank=True)
    file_size_bytes = serializers.IntegerField(min_value=0, required=False)
    content_type = serializers.CharField(max_length=128, required=False, allow_blank=True)
    firebase_path = serializers.CharField(max_length=512, required=False, allow_blank=True)
    firebase_download_url = serializers.CharField(required=False, allow_blank=True)
    firebase_metadata = serializers.JSONField(required=False)
    upload_status = serializers.ChoiceField(
        choices=[SubmissionDocument.UPLOADING, SubmissionDocument.UPLOADED],
        required=False,
    )
    uploaded_by = serializers.CharField(max_length=64, required=False, allow_blank=True)
    error_message = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        action = attrs["action"]
        has_key = bool(attrs.get("document_id")) and bool(attrs.get("applicant_type"))
        if action == self.CREATE:
            missing = [
                name
                for name in ("document_id", "applicant_type", "original_filename")
                if not attrs.get(name)
            ]
            if missing:
                raise serializers.ValidationError(
                    {name: "This field is required." for name in missing}
                )
        elif attrs.get("submission_document_id") is None and not has_key:
            raise serializers.ValidationError(
                "Provide submission_document_id or document_id with applicant_type."
            )
        metadata = attrs.get("firebase_metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise serializers.ValidationError({"firebase_metadata": "Must be a JSON object."})
        return attrs


class DocumentUpdateSerializer(serializers.Serializer):
    verification_status = serializers.ChoiceField(
        choices=SubmissionDocument.VERIFICATION_STATUS_CHOICES, required=False
    )
    verified_by = serializers.CharField(max_length=64, required=False, allow_blank=True)
    verification_notes = serializers.CharField(required=False, allow_blank=True)


class DocumentDeleteSerializer(serializers.Serializer):
    replacement_reason = serializers.CharField(required=False, allow_blank=True, default="")
