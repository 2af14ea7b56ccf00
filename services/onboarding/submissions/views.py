"""API views for form submissions and their document tracking records."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from django.shortcuts import get_object_or_404
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.filters import OrderingFilter
from rest_framework.request import Request
from rest_framework.response import Response

from formconfigs.models import FormConfiguration
from formconfigs.schema import FormSchema
from onboarding_service.envelope import TransitionConflict, success

from . import lifecycle, tracking
from .completion import evaluate_submission
from .documents import document_statuses, required_documents_complete, summarize
from .models import FormSubmission, SubmissionDocument
from .serializers import (
    DocumentActionSerializer,
    DocumentDeleteSerializer,
    DocumentUpdateSerializer,
    FormSubmissionSerializer,
    ReviewSerializer,
    SubmissionDocumentSerializer,
)
from .tasks import record_configuration_usage

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes"}


def _schema_for(config_id: str) -> FormSchema:
    configuration = FormConfiguration.objects.filter(config_id=config_id).first()
    if configuration is None:
        raise NotFound(f"Form configuration {config_id} not found.")
    return configuration.to_schema()


def _run_gate(config_id: str, form_data: Dict[str, Any]) -> None:
    result = evaluate_submission(_schema_for(config_id), form_data)
    if not result.is_valid:
        raise serializers.ValidationError(result.errors)


class FormSubmissionViewSet(viewsets.ModelViewSet):
    queryset = FormSubmission.objects.all()
    serializer_class = FormSubmissionSerializer
    filter_backends = [OrderingFilter]
    ordering_fields = ["created_at", "updated_at", "submitted_at", "status"]
    ordering = ["-created_at"]

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        params = self.request.query_params
        user_id = params.get("userId")
        if user_id:
            queryset = queryset.filter(user_id=user_id)
        config_id = params.get("formConfigId")
        if config_id:
            queryset = queryset.filter(form_config_id=config_id)
        status_value = params.get("status")
        if status_value:
            queryset = queryset.filter(status=status_value)
        return queryset

    def list(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        queryset = self.filter_queryset(self.get_queryset())
        return success(self.get_serializer(queryset, many=True).data, "Form submissions retrieved")

    def retrieve(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        return success(self.get_serializer(self.get_object()).data, "Form submission retrieved")

    def create(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        config_id = data["form_config_id"]
        submit_now = data.get("status") == FormSubmission.SUBMITTED
        if submit_now:
            _run_gate(config_id, data.get("form_data") or {})
        else:
            _schema_for(config_id)

        submission = serializer.save(status=FormSubmission.DRAFT)
        if submit_now:
            submission.mark_submitted()
        record_configuration_usage.delay(config_id)
        logger.info(
            "Created submission %s for user %s on %s",
            submission.pk,
            submission.user_id,
            config_id,
        )
        return success(
            self.get_serializer(submission).data,
            "Form submission created",
            status.HTTP_201_CREATED,
        )

    def update(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        partial = kwargs.pop("partial", False)
        submission = self.get_object()
        if not submission.is_editable:
            raise TransitionConflict(
                f"A {submission.status} submission can no longer be edited."
            )
        serializer = self.get_serializer(submission, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        submit_now = data.get("status") == FormSubmission.SUBMITTED
        if submit_now:
            _run_gate(
                data.get("form_config_id", submission.form_config_id),
                data.get("form_data", submission.form_data),
            )
        submission = serializer.save(status=FormSubmission.DRAFT)
        if submit_now:
            submission.mark_submitted()
        return success(self.get_serializer(submission).data, "Form submission updated")

    def destroy(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        submission = self.get_object()
        if not submission.is_editable:
            raise TransitionConflict("Only draft submissions can be deleted.")
        submission.delete()
        return success(message="Form submission deleted")

    @action(detail=False, methods=["get"], url_path=r"user/(?P<user_id>[^/]+)")
    def by_user(self, request: Request, user_id: str = "") -> Response:
        queryset = FormSubmission.objects.filter(user_id=user_id)
        return success(self.get_serializer(queryset, many=True).data, "Form submissions retrieved")

    @action(detail=True, methods=["patch"], url_path="submit")
    def submit(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        """Move a draft to ``submitted`` once the completion gate passes."""

        submission = self.get_object()
        if not lifecycle.can_transition(submission.status, FormSubmission.SUBMITTED):
            raise TransitionConflict(
                f"A {submission.status} submission cannot be submitted."
            )
        _run_gate(submission.form_config_id, submission.form_data)
        submission.mark_submitted()
        logger.info("Submission %s submitted", submission.pk)
        return success(self.get_serializer(submission).data, "Form submission submitted")

    def _review(self, request: Request, target: str, message: str) -> Response:
        submission = self.get_object()
        payload = ReviewSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            submission.mark_reviewed(target, **payload.validated_data)
        except lifecycle.InvalidTransition as exc:
            raise TransitionConflict(str(exc)) from exc
        logger.info("Submission %s moved to %s", submission.pk, target)
        return success(self.get_serializer(submission).data, message)

    @action(detail=True, methods=["patch"], url_path="review")
    def review(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        return self._review(request, FormSubmission.REVIEWED, "Form submission reviewed")

    @action(detail=True, methods=["patch"], url_path="approve")
    def approve(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        return self._review(request, FormSubmission.APPROVED, "Form submission approved")

    @action(detail=True, methods=["patch"], url_path="reject")
    def reject(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        return self._review(request, FormSubmission.REJECTED, "Form submission rejected")

    def _records(self, submission: FormSubmission) -> List[Dict[str, Any]]:
        return list(SubmissionDocumentSerializer(submission.documents.all(), many=True).data)

    @action(detail=True, methods=["get", "post"], url_path="documents")
    def documents(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        submission = self.get_object()
        if request.method == "GET":
            records = submission.documents.all()
            if request.query_params.get("includeReplaced", "").lower() not in _TRUTHY:
                records = records.exclude(upload_status=SubmissionDocument.REPLACED)
            return success(
                SubmissionDocumentSerializer(records, many=True).data,
                "Submission documents retrieved",
            )

        payload = DocumentActionSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        try:
            if data["action"] == DocumentActionSerializer.CREATE:
                record = tracking.create_document(submission, data)
                status_code = status.HTTP_201_CREATED
                message = "Submission document created"
            elif data["action"] == DocumentActionSerializer.MARK_UPLOADED:
                record = tracking.mark_uploaded(
                    submission,
                    record_id=data.get("submission_document_id"),
                    document_id=data.get("document_id"),
                    applicant_type=data.get("applicant_type"),
                    download_url=data.get("firebase_download_url", ""),
                    metadata=data.get("firebase_metadata"),
                )
                status_code = status.HTTP_200_OK
                message = "Submission document marked uploaded"
            else:
                record = tracking.mark_failed(
                    submission,
                    data.get("error_message") or "Upload failed",
                    record_id=data.get("submission_document_id"),
                    document_id=data.get("document_id"),
                    applicant_type=data.get("applicant_type"),
                    original_filename=data.get("original_filename", ""),
                )
                status_code = status.HTTP_200_OK
                message = "Submission document marked failed"
        except SubmissionDocument.DoesNotExist as exc:
            raise NotFound("Submission document not found.") from exc
        except tracking.DocumentConflict as exc:
            raise TransitionConflict(str(exc)) from exc
        return success(SubmissionDocumentSerializer(record).data, message, status_code)

    @action(
        detail=True,
        methods=["put", "delete"],
        url_path=r"documents/(?P<document_pk>[0-9]+)",
    )
    def document_detail(self, request: Request, document_pk: str = "", *args, **kwargs) -> Response:  # type: ignore[override]
        submission = self.get_object()
        record = get_object_or_404(SubmissionDocument, pk=document_pk, form_submission=submission)
        try:
            if request.method == "PUT":
                payload = DocumentUpdateSerializer(data=request.data)
                payload.is_valid(raise_exception=True)
                record = tracking.update_document(record, payload.validated_data)
                return success(
                    SubmissionDocumentSerializer(record).data,
                    "Submission document updated",
                )
            payload = DocumentDeleteSerializer(data=request.data)
            payload.is_valid(raise_exception=True)
            record = tracking.soft_delete(record, payload.validated_data["replacement_reason"])
        except tracking.DocumentConflict as exc:
            raise TransitionConflict(str(exc)) from exc
        return success(SubmissionDocumentSerializer(record).data, "Submission document deleted")

    @action(detail=True, methods=["get"], url_path="document-status")
    def document_status(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        submission = self.get_object()
        schema = _schema_for(submission.form_config_id)
        records = self._records(submission)
        return success(
            {
                "documents": document_statuses(schema, records),
                "all_required_uploaded": required_documents_complete(schema, records),
            },
            "Document status retrieved",
        )

    @action(detail=True, methods=["get"], url_path="summary")
    def summary(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        submission = self.get_object()
        schema = _schema_for(submission.form_config_id)
        return success(
            summarize(
                schema,
                self._records(submission),
                self.get_serializer(submission).data,
            ),
            "Submission summary retrieved",
        )
