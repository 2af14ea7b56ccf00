"""Dynamic form interpreter.

Turns a form configuration into an editable submission and drives it
through ``Loading -> Editing/Viewing``. Saves go through the backend
client; the draft to submitted transition is gated locally first so the
client sees every violation without a round trip.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from django.utils.translation import gettext as _

from formconfigs.layouts import effective_fields, layout_for
from formconfigs.schema import (
    APPLICANT_ONE,
    APPLICANT_TWO,
    CONSENTS_KEY,
    NUMBER,
    FormField,
    FormSchema,
    Section,
)
from formconfigs.validation import ValidationResult, coerce_number
from submissions.completion import evaluate_submission
from submissions.lifecycle import DRAFT, SUBMITTED, is_client_editable

from .client import BackendClient
from .errors import AuthExpired, IntakeError, InvalidTransition
from .notices import NoticeBoard
from .prefill import prefill_form_data
from .session import Session

logger = logging.getLogger(__name__)

LOADING = "loading"
VIEWING = "viewing"
EDITING = "editing"


@dataclass
class RenderedSection:
    section: Section
    fields: List[FormField]
    values: Dict[str, Any]
    known_layout: bool
    disabled: bool


class FormInterpreter:
    def __init__(
        self,
        client: BackendClient,
        session: Session,
        notices: Optional[NoticeBoard] = None,
    ) -> None:
        self.client = client
        self.session = session
        self.notices = notices if notices is not None else NoticeBoard()
        self.state = LOADING
        self.schema: Optional[FormSchema] = None
        self.submission: Optional[Dict[str, Any]] = None
        self.form_data: Dict[str, Any] = {}
        self.errors: List[str] = []
        self.owner_id: Optional[str] = None

    @property
    def status(self) -> str:
        if self.submission is None:
            return DRAFT
        return self.submission.get("status", DRAFT)

    def _load_schema(self, config_id: str) -> FormSchema:
        return FormSchema.from_dict(self.client.get_configuration(config_id))

    def open_new(self, config_id: str, client_id: Optional[str] = None) -> None:
        """Start a fresh submission; raises ``ConfigurationNotFound`` for unknown ids."""

        self.state = LOADING
        self.schema = self._load_schema(config_id)
        self.submission = None
        user = self.session.user
        self.owner_id = client_id or (user.id if user else None)

        prefilled = prefill_form_data(self.client, self.schema, user)
        if self.schema.is_joint:
            # The signed-in client is always the first applicant.
            self.form_data = {APPLICANT_ONE: prefilled, APPLICANT_TWO: {}}
        else:
            self.form_data = prefilled
        self.errors = []
        self.state = EDITING

    def open_existing(self, submission_id: Any) -> None:
        self.state = LOADING
        submission = self.client.get_submission(submission_id)
        self.schema = self._load_schema(submission["form_config_id"])
        self.submission = submission
        self.owner_id = submission.get("user_id")
        self.form_data = dict(submission.get("form_data") or {})
        self.errors = []
        self.state = EDITING if is_client_editable(self.status) else VIEWING

    def edit(self) -> None:
        if self.state == EDITING:
            return
        if self.state != VIEWING or not is_client_editable(self.status):
            raise InvalidTransition(f"A {self.status} submission cannot be edited.")
        self.state = EDITING

    def _require_editing(self) -> FormSchema:
        if self.state != EDITING or self.schema is None:
            raise InvalidTransition("The form is not open for editing.")
        return self.schema

    def _answers(self, applicant: Optional[str]) -> Dict[str, Any]:
        if self.schema is not None and self.schema.is_joint:
            if applicant not in (APPLICANT_ONE, APPLICANT_TWO):
                raise ValueError("Joint forms need applicant1 or applicant2.")
            return self.form_data.setdefault(applicant, {})
        return self.form_data

    def set_field(self, section_id: str, name: str, value: Any, applicant: Optional[str] = None) -> Any:
        """Store one answer; numeric fields are coerced and never fail."""

        schema = self._require_editing()
        section = schema.section(section_id)
        if section is None:
            raise KeyError(section_id)
        form_field = next((item for item in effective_fields(section) if item.name == name), None)
        if form_field is not None and form_field.type == NUMBER:
            value = coerce_number(value)
        self._answers(applicant).setdefault(section_id, {})[name] = value
        return value

    def set_consent(self, consent_id: str, agreed: bool) -> None:
        self._require_editing()
        self.form_data.setdefault(CONSENTS_KEY, {})[consent_id] = bool(agreed)

    def render(self, applicant: Optional[str] = None) -> List[RenderedSection]:
        """Sections in display order; known kinds use their fixed layout.

        Joint forms render ``applicant`` or, when omitted, the first applicant.
        """

        if self.schema is None:
            return []
        answers = self._answers(applicant or APPLICANT_ONE) if self.schema.is_joint else self.form_data
        disabled = self.state != EDITING
        return [
            RenderedSection(
                section=section,
                fields=effective_fields(section),
                values=dict(answers.get(section.id) or {}),
                known_layout=layout_for(section) is not None,
                disabled=disabled,
            )
            for section in self.schema.ordered_sections()
        ]

    def validate(self) -> ValidationResult:
        if self.schema is None:
            raise InvalidTransition("No form is loaded.")
        return evaluate_submission(self.schema, self.form_data)

    def _persist(self, schema: FormSchema, status: str) -> Dict[str, Any]:
        payload = {
            "form_config_id": schema.config_id,
            "user_id": self.owner_id,
            "form_data": self.form_data,
            "status": status,
        }
        if self.submission is None:
            return self.client.create_submission(payload)
        return self.client.update_submission(self.submission["id"], payload)

    def save_draft(self) -> bool:
        schema = self._require_editing()
        try:
            self.submission = self._persist(schema, DRAFT)
        except AuthExpired:
            raise
        except IntakeError as exc:
            logger.warning("Saving draft failed: %s", exc)
            self.notices.error(exc.message or _("Failed to save the form."), _("Error"))
            return False
        self.form_data = dict(self.submission.get("form_data") or self.form_data)
        self.notices.success(_("Form saved as draft."), _("Saved"))
        return True

    def submit(self) -> bool:
        """Validate every section and consent, then persist as ``submitted``."""

        schema = self._require_editing()
        result = self.validate()
        if not result.is_valid:
            self.errors = result.errors
            self.notices.error(result.message(), _("Please complete the form"))
            return False

        try:
            self.submission = self._persist(schema, SUBMITTED)
        except AuthExpired:
            raise
        except IntakeError as exc:
            logger.warning("Submitting form failed: %s", exc)
            self.errors = list(getattr(exc, "errors", []) or [exc.message])
            self.notices.error(exc.message or _("Failed to submit the form."), _("Error"))
            return False
        self.errors = []
        self.state = VIEWING
        self.notices.success(_("Form submitted successfully."), _("Submitted"))
        return True
