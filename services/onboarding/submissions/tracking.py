"""Write operations on document tracking records.

Each (submission, document, applicant) key has at most one live record,
except that an attempt still in flight may sit next to the uploaded
record it would replace. Only a successful upload retires that record;
a failed replacement is kept as history and the earlier upload stays
live. Records are marked ``replaced`` instead of being rewritten, so
every attempt stays in the history.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db import transaction

from . import lifecycle
from .models import FormSubmission, SubmissionDocument

logger = logging.getLogger(__name__)

SUPERSEDED_NOTE = "Superseded by a newer upload"

IN_FLIGHT = (SubmissionDocument.PENDING, SubmissionDocument.UPLOADING)


class DocumentConflict(Exception):
    """The tracking record cannot change in the requested way."""


def _live_records(submission: FormSubmission, document_id: str, applicant_type: str):
    return (
        SubmissionDocument.objects.select_for_update()
        .filter(
            form_submission=submission,
            document_id=document_id,
            applicant_type=applicant_type,
        )
        .exclude(upload_status=SubmissionDocument.REPLACED)
        .order_by("-created_at", "-id")
    )


def _retire(
    submission: FormSubmission,
    document_id: str,
    applicant_type: str,
    keep_uploaded: bool = False,
    exclude_pk: Optional[int] = None,
) -> None:
    records = _live_records(submission, document_id, applicant_type)
    if keep_uploaded:
        records = records.exclude(upload_status=SubmissionDocument.UPLOADED)
    if exclude_pk is not None:
        records = records.exclude(pk=exclude_pk)
    for record in records:
        record.mark_replaced(SUPERSEDED_NOTE)


def _has_live_upload(record: SubmissionDocument) -> bool:
    return (
        _live_records(record.form_submission, record.document_id, record.applicant_type)
        .filter(upload_status=SubmissionDocument.UPLOADED)
        .exclude(pk=record.pk)
        .exists()
    )


def _fail(record: SubmissionDocument, message: str) -> None:
    record.mark_failed(message)
    if _has_live_upload(record):
        # The earlier upload stays live; the failure message is kept on the history entry.
        record.mark_replaced()


def _ensure_accepting_uploads(submission: FormSubmission) -> None:
    if submission.status in lifecycle.TERMINAL:
        raise DocumentConflict(
            f"Documents of a {submission.status} submission can no longer change."
        )


def create_document(submission: FormSubmission, data: Dict[str, Any]) -> SubmissionDocument:
    """Open the tracking record for a new upload attempt."""

    _ensure_accepting_uploads(submission)
    upload_status = data.get("upload_status") or SubmissionDocument.UPLOADING
    completed = upload_status == SubmissionDocument.UPLOADED
    with transaction.atomic():
        _retire(
            submission,
            data["document_id"],
            data["applicant_type"],
            keep_uploaded=not completed,
        )
        record = SubmissionDocument.objects.create(
            form_submission=submission,
            document_id=data["document_id"],
            applicant_type=data["applicant_type"],
            original_filename=data["original_filename"],
            file_size_bytes=data.get("file_size_bytes") or 0,
            content_type=data.get("content_type", ""),
            firebase_path=data.get("firebase_path", ""),
            firebase_download_url=data.get("firebase_download_url", ""),
            firebase_metadata=data.get("firebase_metadata") or {},
            upload_status=SubmissionDocument.UPLOADING,
            uploaded_by=data.get("uploaded_by", ""),
        )
        if completed:
            record.mark_uploaded()
    logger.info(
        "Tracking %s/%s for submission %s as record %s (%s)",
        record.document_id,
        record.applicant_type,
        submission.pk,
        record.pk,
        record.upload_status,
    )
    return record


def _locate(
    submission: FormSubmission,
    record_id: Optional[int],
    document_id: Optional[str],
    applicant_type: Optional[str],
) -> SubmissionDocument:
    if record_id is not None:
        return SubmissionDocument.objects.select_for_update().get(
            pk=record_id, form_submission=submission
        )
    record = _live_records(submission, document_id or "", applicant_type or "").first()
    if record is None:
        raise SubmissionDocument.DoesNotExist(
            f"No tracking record for {document_id}/{applicant_type}."
        )
    return record


def mark_uploaded(
    submission: FormSubmission,
    record_id: Optional[int] = None,
    document_id: Optional[str] = None,
    applicant_type: Optional[str] = None,
    download_url: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> SubmissionDocument:
    _ensure_accepting_uploads(submission)
    with transaction.atomic():
        record = _locate(submission, record_id, document_id, applicant_type)
        if record.upload_status not in IN_FLIGHT + (SubmissionDocument.UPLOADED,):
            raise DocumentConflict(
                f"A {record.upload_status} document cannot be marked uploaded."
            )
        record.mark_uploaded(download_url, metadata)
        _retire(submission, record.document_id, record.applicant_type, exclude_pk=record.pk)
    logger.info("Record %s uploaded for submission %s", record.pk, submission.pk)
    return record


def mark_failed(
    submission: FormSubmission,
    message: str,
    record_id: Optional[int] = None,
    document_id: Optional[str] = None,
    applicant_type: Optional[str] = None,
    original_filename: str = "",
) -> SubmissionDocument:
    """Record a failed attempt, opening a record if the attempt never got one.

    When the key already has an uploaded record, the failed attempt is
    stored as history and the upload remains the live record.
    """

    with transaction.atomic():
        if record_id is not None:
            record = _locate(submission, record_id, None, None)
            if record.upload_status not in IN_FLIGHT + (SubmissionDocument.FAILED,):
                raise DocumentConflict(
                    f"A {record.upload_status} document cannot be marked failed."
                )
            _fail(record, message)
        else:
            document_id = document_id or ""
            applicant_type = applicant_type or ""
            record = _live_records(submission, document_id, applicant_type).first()
            if record is None or record.upload_status not in IN_FLIGHT:
                _retire(submission, document_id, applicant_type, keep_uploaded=True)
                record = SubmissionDocument.objects.create(
                    form_submission=submission,
                    document_id=document_id,
                    applicant_type=applicant_type,
                    original_filename=original_filename,
                    upload_status=SubmissionDocument.PENDING,
                )
            _fail(record, message)
    logger.warning("Upload tracked by record %s failed: %s", record.pk, message)
    return record


def update_document(record: SubmissionDocument, changes: Dict[str, Any]) -> SubmissionDocument:
    """Apply reviewer verification changes."""

    if record.upload_status == SubmissionDocument.REPLACED:
        raise DocumentConflict("A replaced document can no longer change.")
    verification_status = changes.get("verification_status")
    if verification_status:
        record.verify(
            verification_status,
            verified_by=changes.get("verified_by", ""),
            notes=changes.get("verification_notes", ""),
        )
    elif changes.get("verification_notes"):
        record.verification_notes = changes["verification_notes"]
        record.save(update_fields=["verification_notes", "updated_at"])
    return record


def soft_delete(record: SubmissionDocument, reason: str = "") -> SubmissionDocument:
    if record.upload_status == SubmissionDocument.REPLACED:
        return record
    record.mark_replaced(reason or "Removed")
    logger.info("Record %s marked replaced: %s", record.pk, reason or "removed")
    return record
