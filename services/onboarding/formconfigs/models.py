"""Database models for the form configuration store."""
from __future__ import annotations

import secrets
import string
import time

from django.db import models

from .schema import FORM_TYPES, JOINT, SINGLE, FormSchema

_BASE36 = string.digits + string.ascii_lowercase


def generate_config_id() -> str:
    """Stable external identifier: ``config_<epoch-ms>_<9 base36 chars>``."""

    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"config_{int(time.time() * 1000)}_{suffix}"


class FormConfiguration(models.Model):
    """An authored, reusable form schema."""

    FORM_TYPE_CHOICES = [(value, value.replace("-", " ").title()) for value in FORM_TYPES]

    APPLICANT_CONFIG_CHOICES = [
        (SINGLE, "Single"),
        (JOINT, "Joint"),
    ]

    config_id = models.CharField(max_length=64, unique=True, default=generate_config_id)
    name = models.CharField(max_length=255)
    form_type = models.CharField(max_length=32, choices=FORM_TYPE_CHOICES)
    version = models.CharField(max_length=32)
    description = models.TextField(blank=True)
    applicantconfig = models.CharField(
        max_length=16, choices=APPLICANT_CONFIG_CHOICES, default=SINGLE
    )
    sections = models.JSONField(default=list, blank=True)
    consent_forms = models.JSONField(default=list, blank=True)
    documents = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_by_id = models.CharField(max_length=64, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]
        indexes = [
            models.Index(fields=["form_type"], name="formconfigs_form_ty_3c1d2e_idx"),
            models.Index(fields=["is_active"], name="formconfigs_is_acti_8b7f4a_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    def to_schema(self) -> FormSchema:
        return FormSchema.from_dict(
            {
                "id": self.pk,
                "config_id": self.config_id,
                "name": self.name,
                "form_type": self.form_type,
                "version": self.version,
                "description": self.description,
                "applicantconfig": self.applicantconfig,
                "sections": self.sections,
                "consent_forms": self.consent_forms,
                "documents": self.documents,
                "is_active": self.is_active,
            }
        )
