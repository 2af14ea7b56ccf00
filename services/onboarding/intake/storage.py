"""Firebase Storage adapter for client documents."""
from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import IO, Any, Callable, Dict, List, Optional
from urllib.parse import quote

import firebase_admin
from django.conf import settings
from firebase_admin import credentials, storage
from google.api_core import exceptions as gcloud_exceptions

from . import paths
from .errors import UploadFailure

logger = logging.getLogger(__name__)

# Resumable uploads send chunks that must be a multiple of 256 KiB.
RESUMABLE_CHUNK_SIZE = 4 * 256 * 1024

DOWNLOAD_TOKEN_KEY = "firebaseStorageDownloadTokens"


@dataclass(frozen=True)
class DocumentLocation:
    coach_id: str
    client_id: str
    applicant_name: str
    document_id: str
    document_name: str

    @property
    def path(self) -> str:
        return paths.generate_file_path(
            self.coach_id,
            self.client_id,
            self.applicant_name,
            self.document_id,
            self.document_name,
        )


@dataclass(frozen=True)
class UploadProgress:
    bytes_transferred: int
    total_bytes: int

    @property
    def progress(self) -> int:
        if not self.total_bytes:
            return 100
        return round(self.bytes_transferred * 100 / self.total_bytes)


@dataclass
class UploadResult:
    download_url: str
    metadata: Dict[str, Any]


ProgressCallback = Callable[[UploadProgress], None]


class _ProgressReader:
    """File wrapper that reports how much of the stream has been consumed."""

    def __init__(self, stream: IO[bytes], total: int, callback: ProgressCallback) -> None:
        self._stream = stream
        self._total = total
        self._callback = callback
        self._read = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self._read += len(chunk)
        self._callback(UploadProgress(min(self._read, self._total), self._total))
        return chunk

    def tell(self) -> int:
        return self._stream.tell()

    def seek(self, offset: int, whence: int = 0) -> int:
        position = self._stream.seek(offset, whence)
        self._read = position
        return position


def _load_credential(raw: str) -> Optional[credentials.Certificate]:
    if not raw:
        return None
    if raw.strip().startswith("{"):
        return credentials.Certificate(json.loads(raw))
    return credentials.Certificate(os.path.expanduser(raw))


def ensure_firebase_app(bucket_name: str) -> None:
    """Initialise the default Firebase app once; failures are logged, not raised.

    Storage security rules are the enforcement boundary, so a missing or
    broken credential only means later calls may be rejected.
    """

    try:
        firebase_admin.get_app()
        return
    except ValueError:
        pass

    credential = None
    if settings.INTAKE_ENVIRONMENT != "development":
        try:
            credential = _load_credential(settings.FIREBASE_SERVICE_ACCOUNT_JSON)
        except (ValueError, OSError) as exc:
            logger.warning("Ignoring unusable Firebase credentials: %s", exc)
    try:
        firebase_admin.initialize_app(credential, {"storageBucket": bucket_name})
    except (ValueError, OSError) as exc:
        logger.warning("Firebase initialisation failed: %s", exc)


class FirebaseStorage:
    def __init__(self, bucket: Any = None, bucket_name: Optional[str] = None) -> None:
        self.bucket_name = bucket_name or settings.FIREBASE_STORAGE_BUCKET
        self._bucket = bucket

    @property
    def bucket(self) -> Any:
        if self._bucket is None:
            ensure_firebase_app(self.bucket_name)
            self._bucket = storage.bucket(self.bucket_name or None)
        return self._bucket

    def _download_url(self, blob: Any) -> str:
        metadata = blob.metadata or {}
        token = (metadata.get(DOWNLOAD_TOKEN_KEY) or "").split(",")[0]
        if not token:
            token = str(uuid.uuid4())
            blob.metadata = {**metadata, DOWNLOAD_TOKEN_KEY: token}
            blob.patch()
        return (
            f"https://firebasestorage.googleapis.com/v0/b/{self.bucket.name}/o/"
            f"{quote(blob.name, safe='')}?alt=media&token={token}"
        )

    def _describe(self, blob: Any) -> Dict[str, Any]:
        return {
            "name": blob.name.rsplit("/", 1)[-1],
            "size": blob.size,
            "contentType": blob.content_type or "application/octet-stream",
            "timeCreated": blob.time_created.isoformat() if blob.time_created else None,
            "updated": blob.updated.isoformat() if blob.updated else None,
            "downloadURL": self._download_url(blob),
            "fullPath": blob.name,
            "md5Hash": blob.md5_hash,
            "customMetadata": {
                key: value
                for key, value in (blob.metadata or {}).items()
                if key != DOWNLOAD_TOKEN_KEY
            },
        }

    def upload_document(
        self,
        location: DocumentLocation,
        stream: IO[bytes],
        size: int,
        content_type: str,
        original_filename: str,
        submission_id: Any = "",
        on_progress: Optional[ProgressCallback] = None,
        resumable: bool = True,
    ) -> UploadResult:
        """Upload ``stream`` to the document's path and return its download URL."""

        path = location.path
        blob = self.bucket.blob(path, chunk_size=RESUMABLE_CHUNK_SIZE if resumable else None)
        blob.metadata = {
            "documentId": location.document_id,
            "coachId": location.coach_id,
            "clientId": location.client_id,
            "applicantName": location.applicant_name,
            "submissionId": str(submission_id or ""),
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
            "originalFileName": original_filename,
            DOWNLOAD_TOKEN_KEY: str(uuid.uuid4()),
        }
        source: Any = stream
        if on_progress is not None:
            source = _ProgressReader(stream, size, on_progress)

        logger.info("Uploading %s (%s bytes) to %s", original_filename, size, path)
        try:
            blob.upload_from_file(
                source,
                size=size,
                content_type=content_type or "application/octet-stream",
            )
            blob.reload()
            return UploadResult(download_url=self._download_url(blob), metadata=self._describe(blob))
        except gcloud_exceptions.GoogleAPIError as exc:
            logger.exception("Upload to %s failed", path)
            raise UploadFailure(str(exc), exc) from exc

    def upload_document_simple(
        self,
        location: DocumentLocation,
        stream: IO[bytes],
        size: int,
        content_type: str,
        original_filename: str,
        submission_id: Any = "",
    ) -> UploadResult:
        return self.upload_document(
            location,
            stream,
            size,
            content_type,
            original_filename,
            submission_id=submission_id,
            resumable=False,
        )

    def _existing_blob(self, location: DocumentLocation) -> Any:
        blob = self.bucket.get_blob(location.path)
        if blob is None:
            raise UploadFailure(f"Document {location.path} does not exist.")
        return blob

    def get_document_url(self, location: DocumentLocation) -> str:
        return self._download_url(self._existing_blob(location))

    def get_document_metadata(self, location: DocumentLocation) -> Dict[str, Any]:
        return self._describe(self._existing_blob(location))

    def document_exists(self, location: DocumentLocation) -> bool:
        return self.bucket.blob(location.path).exists()

    def get_document_size(self, location: DocumentLocation) -> int:
        return int(self._existing_blob(location).size or 0)

    def delete_document(self, location: DocumentLocation) -> None:
        """Delete the object; an already missing object counts as deleted."""

        try:
            self.bucket.blob(location.path).delete()
        except gcloud_exceptions.NotFound:
            logger.info("Document %s already absent", location.path)

    def list_applicant_documents(self, coach_id: str, client_id: str, applicant_name: str) -> List[Dict[str, Any]]:
        prefix = paths.applicant_prefix(coach_id, client_id, applicant_name)
        return [self._describe(blob) for blob in self.bucket.list_blobs(prefix=prefix)]

    def list_client_documents(self, coach_id: str, client_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Every document of a client, grouped by applicant folder."""

        prefix = paths.client_prefix(coach_id, client_id)
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for blob in self.bucket.list_blobs(prefix=prefix):
            applicant = blob.name[len(prefix):].split("/", 1)[0]
            grouped.setdefault(applicant, []).append(self._describe(blob))
        return grouped
