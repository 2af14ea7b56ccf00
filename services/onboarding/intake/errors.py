"""Error taxonomy for the intake core."""
from __future__ import annotations

from typing import Iterable, List, Optional


class IntakeError(Exception):
    """Base class for every failure the intake core reports."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ConfigurationNotFound(IntakeError):
    """A referenced ``config_id`` does not resolve."""

    def __init__(self, config_id: str) -> None:
        super().__init__(f"Form configuration {config_id} not found.")
        self.config_id = config_id


class SubmissionNotFound(IntakeError):
    def __init__(self, submission_id: object) -> None:
        super().__init__(f"Form submission {submission_id} not found.")
        self.submission_id = submission_id


class ValidationFailure(IntakeError):
    """Carries every violation so callers can show the full list."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class UploadFailure(IntakeError):
    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class NetworkFailure(IntakeError):
    """The request never received a response."""


class AuthExpired(IntakeError):
    """The backend answered 401; the session has been cleared."""


class ApiError(IntakeError):
    """The backend answered with an error status or ``success: false``."""

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = list(errors or [])


class InvalidTransition(IntakeError):
    """The interpreter was asked to do something its current state forbids."""
