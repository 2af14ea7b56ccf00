"""Derived document status for a submission.

Everything here is a pure read over serialized tracking records, so callers
may aggregate while uploads for other documents are still in flight.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from formconfigs.schema import FormSchema

PENDING = "pending"
UPLOADING = "uploading"
UPLOADED = "uploaded"
FAILED = "failed"
REPLACED = "replaced"

UPLOAD_STATUSES = (PENDING, UPLOADING, UPLOADED, FAILED, REPLACED)

VERIFICATION_PENDING = "pending"
VERIFICATION_APPROVED = "approved"
VERIFICATION_REJECTED = "rejected"
VERIFICATION_REQUIRES_REPLACEMENT = "requires_replacement"

VERIFICATION_STATUSES = (
    VERIFICATION_PENDING,
    VERIFICATION_APPROVED,
    VERIFICATION_REJECTED,
    VERIFICATION_REQUIRES_REPLACEMENT,
)

Record = Mapping[str, Any]


def _recency(record: Record) -> Tuple[str, int]:
    return (str(record.get("created_at") or ""), int(record.get("id") or 0))


def latest_record(
    records: Iterable[Record], document_id: str, applicant_type: str
) -> Optional[Record]:
    """Most recent non-replaced record for one (document, applicant) pair."""

    candidates = [
        record
        for record in records
        if str(record.get("document_id")) == str(document_id)
        and record.get("applicant_type") == applicant_type
        and record.get("upload_status") != REPLACED
    ]
    if not candidates:
        return None
    return max(candidates, key=_recency)


def has_uploaded(records: Iterable[Record], document_id: str, applicant_type: str) -> bool:
    return any(
        str(record.get("document_id")) == str(document_id)
        and record.get("applicant_type") == applicant_type
        and record.get("upload_status") == UPLOADED
        for record in records
    )


def document_statuses(schema: FormSchema, records: Iterable[Record]) -> List[Dict[str, Any]]:
    records = list(records)
    statuses: List[Dict[str, Any]] = []
    for document in schema.documents:
        for applicant_type in schema.applicant_types:
            record = latest_record(records, document.id, applicant_type)
            statuses.append(
                {
                    "document_id": document.id,
                    "document_name": document.name,
                    "required": document.required,
                    "applicant_type": applicant_type,
                    "upload_status": record.get("upload_status") if record else PENDING,
                    "submission_document": dict(record) if record else None,
                }
            )
    return statuses


def missing_required_documents(
    schema: FormSchema, records: Iterable[Record]
) -> List[Tuple[str, str]]:
    records = list(records)
    return [
        (document.id, applicant_type)
        for document in schema.required_documents()
        for applicant_type in schema.applicant_types
        if not has_uploaded(records, document.id, applicant_type)
    ]


def required_documents_complete(schema: FormSchema, records: Iterable[Record]) -> bool:
    """Advisory check behind "Complete Upload"; unrelated to the submit gate."""

    return not missing_required_documents(schema, records)


def summarize(
    schema: FormSchema,
    records: Iterable[Record],
    submission: Mapping[str, Any],
) -> Dict[str, Any]:
    records = list(records)
    active = [record for record in records if record.get("upload_status") != REPLACED]
    uploaded = [record for record in active if record.get("upload_status") == UPLOADED]
    failed = [record for record in active if record.get("upload_status") == FAILED]

    required_pairs = len(schema.required_documents()) * len(schema.applicant_types)
    required_uploaded = required_pairs - len(missing_required_documents(schema, records))

    if required_pairs == 0:
        document_status = "not_required"
    elif required_uploaded == 0:
        document_status = PENDING
    elif required_uploaded < required_pairs:
        document_status = "partial"
    elif any(
        record.get("verification_status") == VERIFICATION_PENDING for record in uploaded
    ) and submission.get("status") not in {None, "draft"}:
        document_status = "under_review"
    else:
        document_status = "complete"

    upload_times = sorted(str(record["uploaded_at"]) for record in uploaded if record.get("uploaded_at"))
    return {
        "submission_id": submission.get("id"),
        "user_id": submission.get("user_id"),
        "form_config_id": submission.get("form_config_id"),
        "form_status": submission.get("status"),
        "document_status": document_status,
        "total_required_documents": required_pairs,
        "total_uploaded_documents": len(active),
        "successfully_uploaded": len(uploaded),
        "failed_uploads": len(failed),
        "required_documents": required_pairs,
        "required_uploaded": required_uploaded,
        "first_upload_at": upload_times[0] if upload_times else None,
        "last_upload_at": upload_times[-1] if upload_times else None,
    }
