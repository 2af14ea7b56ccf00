"""The gate a draft must pass before it can become ``submitted``."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from django.utils.translation import gettext as _

from formconfigs.layouts import effective_fields
from formconfigs.schema import (
    APPLICANT_ONE,
    CONSENTS_KEY,
    LEGACY_CONSENT_KEY,
    ConsentForm,
    FormSchema,
)
from formconfigs.validation import ValidationResult, is_missing, validate_field_value


def applicant_label(applicant: str) -> str:
    if applicant == APPLICANT_ONE:
        return _("Applicant 1")
    return _("Applicant 2")


def _section_errors(schema: FormSchema, answers: Mapping[str, Any]) -> List[str]:
    errors: List[str] = []
    for section in schema.ordered_sections():
        section_data = answers.get(section.id) or {}
        if not isinstance(section_data, Mapping):
            section_data = {}
        for form_field in effective_fields(section):
            value = section_data.get(form_field.name)
            if not section.required and is_missing(form_field, value):
                # Optional sections only report constraint problems on supplied values.
                continue
            error = validate_field_value(form_field, value)
            if error is not None:
                errors.append(f"{section.title}: {error}")
    return errors


def consent_given(consent: ConsentForm, form_data: Mapping[str, Any], schema: FormSchema) -> bool:
    agreements = form_data.get(CONSENTS_KEY) or {}
    if isinstance(agreements, Mapping) and agreements.get(consent.id) is True:
        return True
    # A bare legacy flag is only unambiguous when a single consent is required.
    return len(schema.required_consents()) == 1 and form_data.get(LEGACY_CONSENT_KEY) is True


def evaluate_submission(schema: FormSchema, form_data: Optional[Mapping[str, Any]]) -> ValidationResult:
    """Return every violation blocking ``draft -> submitted``."""

    form_data = form_data or {}
    errors: List[str] = []

    if schema.is_joint:
        for applicant in schema.applicant_types:
            answers = form_data.get(applicant) or {}
            if not isinstance(answers, Mapping):
                answers = {}
            label = applicant_label(applicant)
            errors.extend(f"{label} - {error}" for error in _section_errors(schema, answers))
    else:
        errors.extend(_section_errors(schema, form_data))

    for consent in schema.required_consents():
        if not consent_given(consent, form_data, schema):
            errors.append(_("You must agree to \"%(title)s\"") % {"title": consent.title})

    return ValidationResult(is_valid=not errors, errors=errors)
