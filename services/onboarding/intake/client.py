"""HTTP client for the onboarding REST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests
from django.conf import settings

from .errors import ApiError, AuthExpired, ConfigurationNotFound, NetworkFailure, SubmissionNotFound
from .session import Session

logger = logging.getLogger(__name__)


class BackendClient:
    """Thin wrapper around ``requests`` that unwraps the response envelope.

    Errors are normalised: no response becomes ``NetworkFailure``, a 401
    clears the session and becomes ``AuthExpired``, and every other failure
    status or ``success: false`` body becomes ``ApiError``.
    """

    def __init__(
        self,
        session: Session,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.session = session
        self.base_url = (base_url or settings.INTAKE_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.INTAKE_API_TIMEOUT
        self.http = http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.http.request(
                method,
                url,
                params={key: value for key, value in (params or {}).items() if value is not None},
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed without a response: %s", method, url, exc)
            raise NetworkFailure(
                "Network connection failed. Please check your internet connection and try again."
            ) from exc

        if response.status_code == 401:
            self.session.clear()
            raise AuthExpired("Your session has expired. Please sign in again.")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        body = payload if isinstance(payload, dict) else {}
        if not 200 <= response.status_code < 300:
            message = body.get("message") or f"HTTP {response.status_code}: {response.reason}"
            raise ApiError(message, response.status_code, body.get("errors") or [message])
        if body.get("success") is False:
            message = body.get("message") or body.get("error") or "Request failed"
            raise ApiError(message, response.status_code, body.get("errors") or [message])
        if "success" in body:
            return body.get("data")
        return payload

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str, json: Any = None) -> Any:
        return self.request("DELETE", path, json=json)

    # Form configurations

    def list_configurations(
        self,
        form_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {
            "formType": form_type,
            "isActive": None if is_active is None else str(is_active).lower(),
            "search": search,
            "createdById": created_by_id,
        }
        return self.get("form-configurations", params) or []

    def get_configuration(self, config_id: str) -> Dict[str, Any]:
        try:
            return self.get(f"form-configurations/config/{config_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                raise ConfigurationNotFound(config_id) from exc
            raise

    def get_configuration_by_id(self, pk: Any) -> Dict[str, Any]:
        return self.get(f"form-configurations/{pk}")

    def create_configuration(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.post("form-configurations", dict(payload))

    def update_configuration(self, pk: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.put(f"form-configurations/{pk}", dict(payload))

    def delete_configuration(self, pk: Any) -> None:
        self.delete(f"form-configurations/{pk}")

    def clone_configuration(self, pk: Any, name: str) -> Dict[str, Any]:
        return self.post(f"form-configurations/{pk}/clone", {"name": name})

    def toggle_configuration_status(self, pk: Any) -> Dict[str, Any]:
        return self.patch(f"form-configurations/{pk}/status")

    def configuration_statistics(self) -> Dict[str, Any]:
        return self.get("form-configurations/statistics")

    def configuration_documents(self, pk: Any) -> List[Dict[str, Any]]:
        return self.get(f"form-configurations/{pk}/documents") or []

    # Form submissions

    def list_submissions(self, **filters: Any) -> List[Dict[str, Any]]:
        return self.get("form-submissions", filters) or []

    def user_submissions(self, user_id: str) -> List[Dict[str, Any]]:
        return self.get(f"form-submissions/user/{user_id}") or []

    def get_submission(self, submission_id: Any) -> Dict[str, Any]:
        try:
            return self.get(f"form-submissions/{submission_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                raise SubmissionNotFound(submission_id) from exc
            raise

    def create_submission(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.post("form-submissions", dict(payload))

    def update_submission(self, submission_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.put(f"form-submissions/{submission_id}", dict(payload))

    def delete_submission(self, submission_id: Any) -> None:
        self.delete(f"form-submissions/{submission_id}")

    def submit_submission(self, submission_id: Any) -> Dict[str, Any]:
        return self.patch(f"form-submissions/{submission_id}/submit")

    def review_submission(self, submission_id: Any, decision: str, reviewed_by: str = "", review_notes: str = "") -> Dict[str, Any]:
        """``decision`` is one of ``review``, ``approve`` or ``reject``."""

        return self.patch(
            f"form-submissions/{submission_id}/{decision}",
            {"reviewed_by": reviewed_by, "review_notes": review_notes},
        )

    # Document tracking

    def submission_documents(self, submission_id: Any, include_replaced: bool = False) -> List[Dict[str, Any]]:
        params = {"includeReplaced": "true"} if include_replaced else None
        return self.get(f"form-submissions/{submission_id}/documents", params) or []

    def document_status(self, submission_id: Any) -> Dict[str, Any]:
        return self.get(f"form-submissions/{submission_id}/document-status")

    def submission_summary(self, submission_id: Any) -> Dict[str, Any]:
        return self.get(f"form-submissions/{submission_id}/summary")

    def create_document(self, submission_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.post(
            f"form-submissions/{submission_id}/documents", {**payload, "action": "create"}
        )

    def mark_document_uploaded(self, submission_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.post(
            f"form-submissions/{submission_id}/documents", {**payload, "action": "mark-uploaded"}
        )

    def mark_document_failed(self, submission_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.post(
            f"form-submissions/{submission_id}/documents", {**payload, "action": "mark-failed"}
        )

    def update_document(self, submission_id: Any, record_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.put(f"form-submissions/{submission_id}/documents/{record_id}", dict(payload))

    def delete_document(self, submission_id: Any, record_id: Any, replacement_reason: str = "") -> Dict[str, Any]:
        return self.delete(
            f"form-submissions/{submission_id}/documents/{record_id}",
            {"replacement_reason": replacement_reason},
        )
