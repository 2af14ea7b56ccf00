"""Per-document, per-applicant upload orchestration.

Every (document, applicant) pair is an independent slot moving through
``no_file -> file_selected -> uploading -> uploaded``. Slots never block
each other; a failure is reported on its own slot and as a notice.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import IO, Any, Dict, List, Mapping, Optional, Tuple

from django.utils.translation import gettext as _
from django.utils.translation import gettext_lazy

from formconfigs.schema import DocumentRequirement, FormSchema
from submissions.documents import required_documents_complete

from .client import BackendClient
from .errors import AuthExpired, IntakeError, InvalidTransition
from .notices import NoticeBoard
from .paths import storage_ids_for
from .session import Session
from .storage import DocumentLocation, FirebaseStorage, ProgressCallback, UploadProgress

logger = logging.getLogger(__name__)

NO_FILE = "no_file"
FILE_SELECTED = "file_selected"
UPLOADING = "uploading"
UPLOADED = "uploaded"

GENERIC_UPLOAD_ERROR = gettext_lazy("Upload failed. Please try again.")


@dataclass
class SelectedFile:
    name: str
    size: int
    stream: IO[bytes]
    content_type: str = ""

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lstrip(".").lower()


def _megabytes(value: float) -> str:
    return f"{value:g}"


def validate_file(requirement: DocumentRequirement, selected: SelectedFile) -> Optional[str]:
    """Check size and extension against a document requirement."""

    if selected.size > requirement.max_size_bytes:
        return _("File size exceeds %(max)sMB") % {"max": _megabytes(requirement.max_size)}
    if not selected.extension or selected.extension not in requirement.accepted_types:
        return _("File type not accepted. Accepted types: %(types)s") % {
            "types": ", ".join(requirement.accepted_types)
        }
    return None


@dataclass
class DocumentSlot:
    requirement: DocumentRequirement
    applicant_type: str
    state: str = NO_FILE
    file: Optional[SelectedFile] = None
    error: Optional[str] = None
    download_url: str = ""
    record: Optional[Dict[str, Any]] = None
    progress: Optional[UploadProgress] = field(default=None, repr=False)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.requirement.id, self.applicant_type)

    @property
    def can_upload(self) -> bool:
        return self.state == FILE_SELECTED and self.error is None

    def select(self, selected: SelectedFile) -> None:
        if self.state == UPLOADING:
            raise InvalidTransition(_("An upload is already in progress."))
        self.file = selected
        self.error = validate_file(self.requirement, selected)
        self.state = FILE_SELECTED

    def remove(self) -> None:
        if self.state != FILE_SELECTED:
            raise InvalidTransition(_("There is no selected file to remove."))
        self.file = None
        self.error = None
        self.state = NO_FILE


class UploadOrchestrator:
    def __init__(
        self,
        client: BackendClient,
        storage: FirebaseStorage,
        session: Session,
        schema: FormSchema,
        submission: Mapping[str, Any],
        notices: Optional[NoticeBoard] = None,
    ) -> None:
        self.client = client
        self.storage = storage
        self.session = session
        self.schema = schema
        self.submission = submission
        self.notices = notices if notices is not None else NoticeBoard()
        self.slots: Dict[Tuple[str, str], DocumentSlot] = {}
        for requirement in schema.documents:
            for applicant_type in schema.applicant_types:
                slot = DocumentSlot(requirement, applicant_type)
                self.slots[slot.key] = slot

    def slot(self, document_id: str, applicant_type: str) -> DocumentSlot:
        try:
            return self.slots[(document_id, applicant_type)]
        except KeyError:
            raise KeyError(f"No document slot {document_id}/{applicant_type}") from None

    def select_file(self, document_id: str, applicant_type: str, selected: SelectedFile) -> Optional[str]:
        slot = self.slot(document_id, applicant_type)
        slot.select(selected)
        return slot.error

    def remove_file(self, document_id: str, applicant_type: str) -> None:
        self.slot(document_id, applicant_type).remove()

    def replace(self, document_id: str, applicant_type: str) -> DocumentSlot:
        """Start a new orchestration for a key whose document was already uploaded."""

        current = self.slot(document_id, applicant_type)
        if current.state == UPLOADING:
            raise InvalidTransition(_("An upload is already in progress."))
        fresh = DocumentSlot(current.requirement, applicant_type)
        self.slots[fresh.key] = fresh
        return fresh

    def _location(self, slot: DocumentSlot, selected: SelectedFile) -> DocumentLocation:
        user = self.session.user
        if user is None:
            raise AuthExpired(_("Please sign in to upload documents."))
        context_client_id = None if user.is_client else self.submission.get("user_id")
        ids = storage_ids_for(user, context_client_id)
        document_name = slot.requirement.name
        if selected.extension:
            document_name = f"{document_name}.{selected.extension}"
        return DocumentLocation(
            coach_id=ids.coach_id,
            client_id=ids.client_id,
            applicant_name=slot.applicant_type,
            document_id=slot.requirement.id,
            document_name=document_name,
        )

    def upload(
        self,
        document_id: str,
        applicant_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Upload the selected file and write its tracking record.

        Returns ``False`` on failure; the slot goes back to ``file_selected``
        with a generic error and a best-effort failed record is written.
        """

        slot = self.slot(document_id, applicant_type)
        if not slot.can_upload or slot.file is None:
            raise InvalidTransition(_("Select a valid file before uploading."))

        selected = slot.file
        location = self._location(slot, selected)
        slot.state = UPLOADING
        slot.progress = UploadProgress(0, selected.size)

        def _track(progress: UploadProgress) -> None:
            slot.progress = progress
            if on_progress is not None:
                on_progress(progress)

        submission_id = self.submission["id"]
        try:
            result = self.storage.upload_document(
                location,
                selected.stream,
                selected.size,
                selected.content_type,
                selected.name,
                submission_id=submission_id,
                on_progress=_track,
            )
            record = self.client.create_document(
                submission_id,
                {
                    "document_id": slot.requirement.id,
                    "applicant_type": applicant_type,
                    "original_filename": selected.name,
                    "file_size_bytes": selected.size,
                    "content_type": selected.content_type,
                    "firebase_path": location.path,
                    "firebase_download_url": result.download_url,
                    "firebase_metadata": result.metadata,
                    "upload_status": UPLOADED,
                    "uploaded_by": self.session.user.id if self.session.user else "",
                },
            )
        except AuthExpired:
            slot.state = FILE_SELECTED
            raise
        except Exception as exc:
            logger.exception("Uploading %s for %s failed", document_id, applicant_type)
            slot.state = FILE_SELECTED
            slot.error = str(GENERIC_UPLOAD_ERROR)
            self._mark_failed(slot, selected, str(exc) or exc.__class__.__name__)
            self.notices.error(
                _("%(name)s could not be uploaded.") % {"name": slot.requirement.name},
                _("Upload failed"),
            )
            return False

        slot.state = UPLOADED
        slot.record = record
        slot.download_url = result.download_url
        self.notices.success(
            _("%(name)s uploaded.") % {"name": slot.requirement.name},
            _("Document uploaded"),
        )
        return True

    def _mark_failed(self, slot: DocumentSlot, selected: SelectedFile, message: str) -> None:
        try:
            self.client.mark_document_failed(
                self.submission["id"],
                {
                    "document_id": slot.requirement.id,
                    "applicant_type": slot.applicant_type,
                    "original_filename": selected.name,
                    "error_message": message,
                },
            )
        except IntakeError as exc:
            logger.warning(
                "Could not record failed upload of %s/%s: %s",
                slot.requirement.id,
                slot.applicant_type,
                exc,
            )

    def delete_uploaded(self, document_id: str, applicant_type: str, reason: str = "") -> DocumentSlot:
        """Retire the uploaded record for a key and reopen the slot."""

        slot = self.slot(document_id, applicant_type)
        if slot.state != UPLOADED or not slot.record:
            raise InvalidTransition(_("Only uploaded documents can be removed."))
        self.client.delete_document(self.submission["id"], slot.record["id"], reason)
        return self.replace(document_id, applicant_type)

    def refresh(self) -> List[Dict[str, Any]]:
        """Mark slots uploaded from the server's tracking records."""

        statuses = self.client.document_status(self.submission["id"]).get("documents", [])
        for item in statuses:
            slot = self.slots.get((item["document_id"], item["applicant_type"]))
            if slot is None or slot.state == UPLOADING:
                continue
            record = item.get("submission_document")
            if item["upload_status"] == UPLOADED and record:
                slot.state = UPLOADED
                slot.record = record
                slot.download_url = record.get("firebase_download_url", "")
        return statuses

    def all_required_uploaded(self) -> bool:
        """Advisory completeness check behind "Complete Upload"."""

        records = self.client.submission_documents(self.submission["id"])
        return required_documents_complete(self.schema, records)
