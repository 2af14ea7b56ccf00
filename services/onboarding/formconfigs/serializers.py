"""Serializers for the form configuration store."""
from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from .models import FormConfiguration
from .schema import normalize_applicant_config
from .validation import validate_form_configuration


class FormConfigurationSerializer(serializers.ModelSerializer):
    config_id = serializers.CharField(max_length=64, required=False)
    applicantconfig = serializers.CharField(max_length=16, required=False)

    class Meta:
        model = FormConfiguration
        fields = [
            "id",
            "config_id",
            "name",
            "form_type",
            "version",
            "description",
            "applicantconfig",
            "sections",
            "consent_forms",
            "documents",
            "is_active",
            "created_by_id",
            "usage_count",
            "last_used_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["usage_count", "last_used_at", "created_at", "updated_at"]
        # Presence is checked by validate() so every problem is reported at once.
        extra_kwargs = {
            "name": {"required": False, "allow_blank": True},
            "form_type": {"required": False, "allow_blank": True},
            "version": {"required": False, "allow_blank": True},
        }

    def to_internal_value(self, data: Dict[str, Any]) -> Dict[str, Any]:  # type: ignore[override]
        """Accept the legacy singular ``consent_form`` key."""

        if "consent_form" in data and "consent_forms" not in data:
            data = {**data, "consent_forms": data["consent_form"]}
        return super().to_internal_value(data)

    def validate_applicantconfig(self, value: str) -> str:
        return normalize_applicant_config(value)

    def validate_config_id(self, value: str) -> str:
        queryset = FormConfiguration.objects.filter(config_id=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A configuration with this config_id already exists.")
        return value

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        for key in ("sections", "consent_forms", "documents"):
            if key in attrs and not isinstance(attrs[key], list):
                raise serializers.ValidationError({key: "Must be a JSON array."})

        merged: Dict[str, Any] = {}
        if self.instance is not None:
            merged.update(
                {
                    "name": self.instance.name,
                    "form_type": self.instance.form_type,
                    "version": self.instance.version,
                    "sections": self.instance.sections,
                    "consent_forms": self.instance.consent_forms,
                    "documents": self.instance.documents,
                }
            )
        merged.update(attrs)
        result = validate_form_configuration(merged)
        if not result.is_valid:
            raise serializers.ValidationError(result.errors)
        return attrs


class FormConfigurationListSerializer(serializers.ModelSerializer):
    class Meta:
        model = FormConfiguration
        fields = [
            "id",
            "config_id",
            "name",
            "form_type",
            "version",
            "description",
            "applicantconfig",
            "sections",
            "is_active",
            "created_by_id",
            "usage_count",
            "last_used_at",
            "created_at",
            "updated_at",
        ]


class CloneRequestSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
