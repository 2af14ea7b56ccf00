"""In-memory representation of a form configuration document.

Configurations are stored as JSON (sections, consent forms and document
requirements live in JSON columns); this module turns that JSON into typed
objects the interpreter, the completion gate and the upload orchestrator
share. Parsing is tolerant: missing keys fall back to defaults and unknown
keys are ignored, so historical documents keep loading.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

TEXT = "text"
EMAIL = "email"
TEL = "tel"
NUMBER = "number"
DATE = "date"
SELECT = "select"
CHECKBOX = "checkbox"
TEXTAREA = "textarea"

FIELD_TYPES = (TEXT, EMAIL, TEL, NUMBER, DATE, SELECT, CHECKBOX, TEXTAREA)

FORM_TYPES = (
    "personal-details",
    "family-details",
    "employment",
    "income",
    "expenses",
    "assets",
    "liabilities",
    "financial-profile",
    "risk-assessment",
    "goal-setting",
    "single-applicant",
    "dual-applicant",
)

SINGLE = "single"
JOINT = "joint"
APPLICANT_CONFIGS = (SINGLE, JOINT)

APPLICANT_SINGLE = "single"
APPLICANT_ONE = "applicant1"
APPLICANT_TWO = "applicant2"
APPLICANT_TYPES = (APPLICANT_SINGLE, APPLICANT_ONE, APPLICANT_TWO)

PERSONAL = "personal"
FAMILY = "family"
EMPLOYMENT = "employment"
INCOME = "income"
EXPENSES = "expenses"
ASSETS = "assets"
LIABILITIES = "liabilities"

# Dispatch order matters for legacy titles such as "Income & Expenses".
SECTION_KINDS = (PERSONAL, FAMILY, EMPLOYMENT, INCOME, EXPENSES, ASSETS, LIABILITIES)

CONSENTS_KEY = "consents"
LEGACY_CONSENT_KEY = "consent_agreed"
RESERVED_KEYS = frozenset({CONSENTS_KEY, LEGACY_CONSENT_KEY, APPLICANT_ONE, APPLICANT_TWO})


def normalize_applicant_config(value: Optional[str]) -> str:
    """Map stored cardinality values (including legacy ``dual``) onto single/joint."""

    if value and value.strip().lower() in {JOINT, "dual", "both"}:
        return JOINT
    return SINGLE


def applicant_types_for(applicantconfig: Optional[str]) -> List[str]:
    if normalize_applicant_config(applicantconfig) == JOINT:
        return [APPLICANT_ONE, APPLICANT_TWO]
    return [APPLICANT_SINGLE]


def infer_section_kind(title: str) -> Optional[str]:
    """Derive a section kind from a legacy title that predates ``prefill_source``."""

    lowered = (title or "").lower()
    for kind in SECTION_KINDS:
        if kind in lowered:
            return kind
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass
class FieldValidation:
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["FieldValidation"]:
        if not data:
            return None
        return cls(
            min=data.get("min"),
            max=data.get("max"),
            pattern=data.get("pattern") or None,
            message=data.get("message") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("min", self.min),
                ("max", self.max),
                ("pattern", self.pattern),
                ("message", self.message),
            )
            if value is not None
        }


@dataclass
class FormField:
    id: str
    name: str
    type: str = TEXT
    label: str = ""
    required: bool = False
    placeholder: str = ""
    options: List[str] = field(default_factory=list)
    validation: Optional[FieldValidation] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormField":
        name = _text(data.get("name"))
        return cls(
            id=_text(data.get("id") or name),
            name=name,
            type=_text(data.get("type") or TEXT).lower(),
            label=_text(data.get("label") or name),
            required=bool(data.get("required", False)),
            placeholder=_text(data.get("placeholder")),
            options=[_text(option) for option in data.get("options") or []],
            validation=FieldValidation.from_dict(data.get("validation")),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "label": self.label,
            "required": self.required,
            "placeholder": self.placeholder,
        }
        if self.options:
            payload["options"] = list(self.options)
        if self.validation is not None:
            payload["validation"] = self.validation.to_dict()
        return payload


@dataclass
class Section:
    id: str
    title: str = ""
    description: str = ""
    order: int = 0
    fields: List[FormField] = field(default_factory=list)
    required: bool = False
    collapsible: bool = False
    prefill_source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Section":
        title = _text(data.get("title"))
        if "prefill_source" in data:
            kind = data.get("prefill_source") or None
            if kind not in SECTION_KINDS:
                kind = None
        else:
            kind = infer_section_kind(title)
        try:
            order = int(data.get("order") or 0)
        except (TypeError, ValueError):
            order = 0
        return cls(
            id=_text(data.get("id")),
            title=title,
            description=_text(data.get("description")),
            order=order,
            fields=[FormField.from_dict(item) for item in data.get("fields") or []],
            required=bool(data.get("required", False)),
            collapsible=bool(data.get("collapsible", False)),
            prefill_source=kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "order": self.order,
            "fields": [item.to_dict() for item in self.fields],
            "required": self.required,
            "collapsible": self.collapsible,
            "prefill_source": self.prefill_source,
        }


@dataclass
class ConsentForm:
    id: str
    title: str = ""
    content: str = ""
    enabled: bool = True
    required: bool = False
    checkbox_text: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> "ConsentForm":
        return cls(
            id=_text(data.get("id") or f"consent-{index + 1}"),
            title=_text(data.get("title")),
            content=_text(data.get("content")),
            enabled=bool(data.get("enabled", True)),
            required=bool(data.get("required", False)),
            checkbox_text=_text(data.get("checkboxText") or data.get("checkbox_text")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "enabled": self.enabled,
            "required": self.required,
            "checkboxText": self.checkbox_text,
        }


@dataclass
class DocumentRequirement:
    id: str
    name: str = ""
    description: str = ""
    max_size: float = 10
    required: bool = False
    accepted_types: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentRequirement":
        try:
            max_size = float(data.get("maxSize", data.get("max_size", 10)))
        except (TypeError, ValueError):
            max_size = 10
        accepted = data.get("acceptedTypes", data.get("accepted_types")) or []
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            description=_text(data.get("description")),
            max_size=max_size,
            required=bool(data.get("required", False)),
            accepted_types=[_text(item).lower().lstrip(".") for item in accepted],
        )

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size * 1024 * 1024)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "maxSize": self.max_size,
            "required": self.required,
            "acceptedTypes": list(self.accepted_types),
        }


@dataclass
class FormSchema:
    """A parsed form configuration."""

    config_id: str
    name: str = ""
    form_type: str = ""
    version: str = ""
    description: str = ""
    applicantconfig: str = SINGLE
    sections: List[Section] = field(default_factory=list)
    consent_forms: List[ConsentForm] = field(default_factory=list)
    documents: List[DocumentRequirement] = field(default_factory=list)
    is_active: bool = True
    id: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormSchema":
        consent_payload: Sequence[Mapping[str, Any]] = (
            data.get("consent_forms") or data.get("consent_form") or []
        )
        return cls(
            config_id=_text(data.get("config_id")),
            name=_text(data.get("name")),
            form_type=_text(data.get("form_type")),
            version=_text(data.get("version")),
            description=_text(data.get("description")),
            applicantconfig=normalize_applicant_config(data.get("applicantconfig")),
            sections=[Section.from_dict(item) for item in data.get("sections") or []],
            consent_forms=[
                ConsentForm.from_dict(item, index) for index, item in enumerate(consent_payload)
            ],
            documents=[DocumentRequirement.from_dict(item) for item in data.get("documents") or []],
            is_active=bool(data.get("is_active", True)),
            id=data.get("id"),
        )

    @property
    def is_joint(self) -> bool:
        return self.applicantconfig == JOINT

    @property
    def applicant_types(self) -> List[str]:
        return applicant_types_for(self.applicantconfig)

    def ordered_sections(self) -> List[Section]:
        # sorted() is stable, so equal orders keep authoring sequence.
        return sorted(self.sections, key=lambda section: section.order)

    def section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def document(self, document_id: str) -> Optional[DocumentRequirement]:
        for document in self.documents:
            if document.id == document_id:
                return document
        return None

    def required_consents(self) -> List[ConsentForm]:
        return [consent for consent in self.consent_forms if consent.enabled and consent.required]

    def required_documents(self) -> List[DocumentRequirement]:
        return [document for document in self.documents if document.required]
