"""Validation for authored configurations and for submitted field values."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from django.utils.translation import gettext as _

from .schema import CHECKBOX, FIELD_TYPES, NUMBER, SELECT, FormField

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def message(self) -> str:
        return "; ".join(self.errors)


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _entries(value: Any, label: str, errors: List[str]) -> List[Tuple[int, Mapping[str, Any]]]:
    """Numbered mapping entries of a list; anything else is reported and skipped."""

    if not value:
        return []
    if not isinstance(value, (list, tuple)):
        errors.append(_("%(label)s must be a list") % {"label": label})
        return []
    entries = []
    for index, item in enumerate(value, start=1):
        if isinstance(item, Mapping):
            entries.append((index, item))
        else:
            errors.append(_("%(label)s %(index)s: must be an object") % {"label": label, "index": index})
    return entries


def validate_form_configuration(config: Mapping[str, Any]) -> ValidationResult:
    """Collect every authoring problem in ``config`` without raising."""

    errors: List[str] = []

    if _blank(config.get("name")):
        errors.append(_("Form name is required"))
    if _blank(config.get("form_type")):
        errors.append(_("Form type is required"))
    if _blank(config.get("version")):
        errors.append(_("Version is required"))

    sections = config.get("sections") or []
    if not sections:
        errors.append(_("At least one section is required"))

    for index, section in _entries(sections, _("Section"), errors):
        if _blank(section.get("title")):
            errors.append(_("Section %(index)s: Title is required") % {"index": index})
        if _blank(section.get("description")):
            errors.append(_("Section %(index)s: Description is required") % {"index": index})
        errors.extend(_field_errors(index, section.get("fields") or []))

    consent_forms = config.get("consent_forms") or config.get("consent_form") or []
    for index, consent in _entries(consent_forms, _("Consent form"), errors):
        if _blank(consent.get("title")):
            errors.append(_("Consent form %(index)s: Title is required") % {"index": index})
        if _blank(consent.get("content")):
            errors.append(_("Consent form %(index)s: Content is required") % {"index": index})

    for index, document in _entries(config.get("documents") or [], _("Document"), errors):
        if _blank(document.get("name")):
            errors.append(_("Document %(index)s: Name is required") % {"index": index})
        if not document.get("acceptedTypes"):
            errors.append(
                _("Document %(index)s: At least one accepted type is required") % {"index": index}
            )

    return ValidationResult(is_valid=not errors, errors=errors)


def _field_errors(section_index: int, fields: Any) -> List[str]:
    errors: List[str] = []
    seen = set()
    label = _("Section %(section)s, field") % {"section": section_index}
    for index, item in _entries(fields, label, errors):
        context = {"section": section_index, "index": index}
        name = str(item.get("name") or "").strip()
        if not name:
            errors.append(_("Section %(section)s, field %(index)s: Name is required") % context)
        elif name in seen:
            errors.append(
                _("Section %(section)s: Duplicate field name \"%(name)s\"")
                % {"section": section_index, "name": name}
            )
        seen.add(name)

        field_type = str(item.get("type") or "text").lower()
        if field_type not in FIELD_TYPES:
            errors.append(
                _("Section %(section)s, field %(index)s: Unsupported field type \"%(type)s\"")
                % {**context, "type": field_type}
            )

        validation = item.get("validation") or {}
        if not isinstance(validation, Mapping):
            errors.append(
                _("Section %(section)s, field %(index)s: Validation must be an object") % context
            )
            continue
        pattern = validation.get("pattern")
        if pattern:
            try:
                re.compile(str(pattern))
            except re.error:
                errors.append(
                    _("Section %(section)s, field %(index)s: Invalid pattern") % context
                )
    return errors


def coerce_number(value: Any) -> float:
    """Permissive numeric coercion: anything unparsable becomes ``0``."""

    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except (TypeError, ValueError):
        return 0.0


def zero_allowed(form_field: FormField) -> bool:
    validation = form_field.validation
    return validation is not None and validation.min is not None and float(validation.min) <= 0


def is_missing(form_field: FormField, value: Any) -> bool:
    """Whether ``value`` counts as absent for a required ``form_field``."""

    if value is None:
        return True
    if form_field.type == CHECKBOX:
        return value is not True and str(value).lower() not in {"true", "on", "1"}
    if form_field.type == NUMBER:
        if isinstance(value, str) and not value.strip():
            return True
        return coerce_number(value) == 0 and not zero_allowed(form_field)
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return value is False


def validate_field_value(form_field: FormField, value: Any) -> Optional[str]:
    """Return a human-readable error for ``value`` or ``None`` when acceptable."""

    label = form_field.label or form_field.name
    if is_missing(form_field, value):
        if form_field.required:
            return _("%(label)s is required") % {"label": label}
        return None

    validation = form_field.validation
    if form_field.type == NUMBER:
        number = coerce_number(value)
        if validation is not None and validation.min is not None and number < float(validation.min):
            return _("%(label)s must be at least %(min)s") % {"label": label, "min": validation.min}
        if validation is not None and validation.max is not None and number > float(validation.max):
            return _("%(label)s must be at most %(max)s") % {"label": label, "max": validation.max}
        return None

    if form_field.type == SELECT and form_field.options and str(value) not in form_field.options:
        return _("%(label)s must be one of: %(options)s") % {
            "label": label,
            "options": ", ".join(form_field.options),
        }

    if validation is not None and validation.pattern and isinstance(value, str):
        try:
            matched = re.fullmatch(validation.pattern, value) is not None
        except re.error:
            logger.warning("Ignoring invalid pattern on field %s", form_field.name)
            return None
        if not matched:
            return validation.message or _("%(label)s has an invalid format") % {"label": label}
    return None
