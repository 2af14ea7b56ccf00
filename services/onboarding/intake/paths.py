"""Object storage addressing for uploaded documents.

Paths have the form::

    coaches/{coachId}/clients/{clientId}/applicants/{applicantName}/documents/{documentId}-{name}

Stored objects are looked up by recomputing this path, so the layout and
the sanitisation rules must not change without versioning the scheme.
"""
from __future__ import annotations

import re
from typing import Mapping, NamedTuple, Optional

from .session import ADMIN, CLIENT, COACH, SessionUser

_UNSAFE = re.compile(r"[^a-zA-Z0-9.-]")
_REPEATED_UNDERSCORE = re.compile(r"_+")

DEFAULT_COACH = "default-coach"
CURRENT_CLIENT = "current-client"
ADMIN_AS_COACH = "admin-as-coach"
ADMIN_COACH = "admin"
ADMIN_CLIENT = "admin-client"
GUEST_COACH = "guest"
GUEST_CLIENT = "guest-client"


class StorageIds(NamedTuple):
    coach_id: str
    client_id: str


def sanitize_document_name(name: str) -> str:
    cleaned = _UNSAFE.sub("_", (name or "").lower())
    return _REPEATED_UNDERSCORE.sub("_", cleaned)


def generate_file_path(
    coach_id: str,
    client_id: str,
    applicant_name: str,
    document_id: str,
    document_name: str,
) -> str:
    return (
        f"coaches/{coach_id}/clients/{client_id}/applicants/{applicant_name}"
        f"/documents/{document_id}-{sanitize_document_name(document_name)}"
    )


def path_from_mapping(data: Mapping[str, str]) -> str:
    """Build a path from camelCase keys as carried in blob metadata."""

    return generate_file_path(
        data["coachId"],
        data["clientId"],
        data["applicantName"],
        data["documentId"],
        data["documentName"],
    )


def applicant_prefix(coach_id: str, client_id: str, applicant_name: str) -> str:
    return f"coaches/{coach_id}/clients/{client_id}/applicants/{applicant_name}/documents/"


def client_prefix(coach_id: str, client_id: str) -> str:
    return f"coaches/{coach_id}/clients/{client_id}/applicants/"


def resolve_storage_ids(
    role: Optional[str],
    acting_user_id: str,
    context_client_id: Optional[str] = None,
    assigned_coach_id: Optional[str] = None,
) -> StorageIds:
    """Decide whose folder a document lands in, from the acting user's role."""

    if role == CLIENT:
        return StorageIds(assigned_coach_id or DEFAULT_COACH, acting_user_id)
    if role == COACH:
        return StorageIds(acting_user_id, context_client_id or CURRENT_CLIENT)
    if role == ADMIN:
        coach_id = ADMIN_AS_COACH if context_client_id else ADMIN_COACH
        return StorageIds(coach_id, context_client_id or ADMIN_CLIENT)
    return StorageIds(GUEST_COACH, GUEST_CLIENT)


def storage_ids_for(user: SessionUser, context_client_id: Optional[str] = None) -> StorageIds:
    return resolve_storage_ids(user.role, user.id, context_client_id, user.coach_id)
