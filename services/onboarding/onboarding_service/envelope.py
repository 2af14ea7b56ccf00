"""Uniform ``{success, message, data}`` response envelope."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.exceptions import APIException
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class TransitionConflict(APIException):
    """Raised when a record's lifecycle state forbids the requested change."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "The requested change is not allowed in the current state."
    default_code = "transition_conflict"


def success(
    data: Any = None,
    message: str = "OK",
    status_code: int = status.HTTP_200_OK,
) -> Response:
    payload: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    return Response(payload, status=status_code)


def failure(
    message: str,
    status_code: int,
    error: Optional[str] = None,
    errors: Optional[List[str]] = None,
) -> Response:
    payload: Dict[str, Any] = {"success": False, "message": message, "error": error or message}
    if errors:
        payload["errors"] = errors
    return Response(payload, status=status_code)


def _flatten(detail: Any, prefix: str = "") -> List[str]:
    if isinstance(detail, dict):
        messages: List[str] = []
        for key, value in detail.items():
            label = "" if key in {"non_field_errors", "detail"} else key
            messages.extend(_flatten(value, f"{prefix}{label}: " if label else prefix))
        return messages
    if isinstance(detail, list):
        messages = []
        for item in detail:
            messages.extend(_flatten(item, prefix))
        return messages
    return [f"{prefix}{detail}"]


def envelope_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """Wrap DRF error responses in the failure envelope."""

    response = exception_handler(exc, context)
    if response is None:
        return None

    errors = _flatten(response.data)
    message = "; ".join(errors) if errors else str(exc)
    if response.status_code >= 500:
        logger.error("Request failed with %s: %s", response.status_code, message)
    return failure(message, response.status_code, errors=errors if len(errors) > 1 else None)


@api_view(["GET"])
def health(_: Request) -> Response:
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})
