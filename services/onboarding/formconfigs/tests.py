"""Tests for the form configuration store."""
from __future__ import annotations

import copy
import re

from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from .layouts import KNOWN_LAYOUTS, effective_fields
from .models import FormConfiguration
from .schema import FormField, FormSchema, Section
from .validation import (
    coerce_number,
    validate_field_value,
    validate_form_configuration,
)


def configuration_payload(**overrides):
    payload = {
        "name": "Private Client Intake",
        "form_type": "financial-profile",
        "version": "1.0.0",
        "description": "Collects a client's financial profile.",
        "applicantconfig": "single",
        "sections": [
            {
                "id": "sec1",
                "title": "Contact",
                "description": "How we reach you",
                "order": 1,
                "required": True,
                "fields": [
                    {"id": "f1", "name": "email", "type": "email", "label": "Email", "required": True},
                ],
            }
        ],
        "consent_forms": [
            {
                "id": "privacy",
                "title": "Privacy Policy",
                "content": "We process your data to provide advice.",
                "enabled": True,
                "required": True,
                "checkboxText": "I agree",
            }
        ],
        "documents": [
            {
                "id": "id-card",
                "name": "ID Card",
                "description": "Front and back",
                "maxSize": 5,
                "required": True,
                "acceptedTypes": ["pdf", "jpg"],
            }
        ],
    }
    payload.update(overrides)
    return payload


class ConfigurationValidationTests(SimpleTestCase):
    def test_reports_every_problem_at_once(self) -> None:
        result = validate_form_configuration(
            {
                "name": "",
                "form_type": "",
                "version": " ",
                "sections": [],
                "consent_forms": [{"title": "", "content": ""}],
                "documents": [{"name": "", "acceptedTypes": []}],
            }
        )
        self.assertFalse(result.is_valid)
        self.assertEqual(
            result.errors,
            [
                "Form name is required",
                "Form type is required",
                "Version is required",
                "At least one section is required",
                "Consent form 1: Title is required",
                "Consent form 1: Content is required",
                "Document 1: Name is required",
                "Document 1: At least one accepted type is required",
            ],
        )

    def test_validation_is_repeatable(self) -> None:
        config = configuration_payload(sections=[{"title": "", "description": "", "fields": []}])
        snapshot = copy.deepcopy(config)
        first = validate_form_configuration(config)
        second = validate_form_configuration(config)
        self.assertEqual(first.errors, second.errors)
        self.assertEqual(config, snapshot)

    def test_malformed_entries_are_reported_not_raised(self) -> None:
        result = validate_form_configuration(
            configuration_payload(
                sections=["oops", {"title": "Contact", "description": "d", "fields": [None]}],
                consent_forms=[42],
                documents="id-card",
            )
        )
        self.assertFalse(result.is_valid)
        self.assertEqual(
            result.errors,
            [
                "Section 1: must be an object",
                "Section 2, field 1: must be an object",
                "Consent form 1: must be an object",
                "Document must be a list",
            ],
        )

    def test_duplicate_field_names_are_rejected(self) -> None:
        section = {
            "title": "Contact",
            "description": "Contact details",
            "fields": [
                {"name": "email", "type": "email"},
                {"name": "email", "type": "text"},
                {"name": "upload", "type": "file"},
            ],
        }
        result = validate_form_configuration(configuration_payload(sections=[section]))
        self.assertIn('Section 1: Duplicate field name "email"', result.errors)
        self.assertIn('Section 1, field 3: Unsupported field type "file"', result.errors)


class FieldValueTests(SimpleTestCase):
    def test_numeric_coercion_never_raises(self) -> None:
        self.assertEqual(coerce_number("abc"), 0.0)
        self.assertEqual(coerce_number("12,5"), 12.5)
        self.assertEqual(coerce_number(None), 0.0)
        self.assertEqual(coerce_number(7), 7.0)

    def test_required_number_with_zero_floor_accepts_zero(self) -> None:
        amount = FormField.from_dict(
            {"name": "rent", "type": "number", "required": True, "validation": {"min": 0}}
        )
        self.assertIsNone(validate_field_value(amount, "not a number"))
        self.assertIsNone(validate_field_value(amount, 0))

        income = FormField.from_dict({"name": "income", "type": "number", "required": True, "label": "Income"})
        self.assertEqual(validate_field_value(income, "abc"), "Income is required")

    def test_range_and_pattern_are_enforced(self) -> None:
        salaries = FormField.from_dict(
            {"name": "salaries", "label": "Salaries", "type": "number", "validation": {"min": 12, "max": 14}}
        )
        self.assertEqual(validate_field_value(salaries, 15), "Salaries must be at most 14")
        self.assertEqual(validate_field_value(salaries, "11"), "Salaries must be at least 12")
        postal = FormField.from_dict(
            {"name": "postal_code", "label": "Postal Code", "validation": {"pattern": r"\d{5}"}}
        )
        self.assertIsNone(validate_field_value(postal, "10115"))
        self.assertEqual(validate_field_value(postal, "1011a"), "Postal Code has an invalid format")

    def test_checkbox_requires_explicit_agreement(self) -> None:
        agree = FormField.from_dict({"name": "agree", "type": "checkbox", "required": True, "label": "Agree"})
        self.assertEqual(validate_field_value(agree, False), "Agree is required")
        self.assertIsNone(validate_field_value(agree, True))


class SchemaTests(SimpleTestCase):
    def test_sections_render_in_ascending_order(self) -> None:
        schema = FormSchema.from_dict(
            {
                "config_id": "c",
                "sections": [
                    {"id": "b", "title": "B", "order": 2},
                    {"id": "a", "title": "A", "order": 1},
                    {"id": "c", "title": "C", "order": 2},
                ],
            }
        )
        self.assertEqual([section.id for section in schema.ordered_sections()], ["a", "b", "c"])

    def test_known_kind_from_explicit_source_or_legacy_title(self) -> None:
        explicit = Section.from_dict({"id": "s", "title": "Money coming in", "prefill_source": "income"})
        legacy = Section.from_dict({"id": "s", "title": "Your Employment History"})
        opted_out = Section.from_dict({"id": "s", "title": "Income notes", "prefill_source": None})
        self.assertEqual(explicit.prefill_source, "income")
        self.assertEqual(legacy.prefill_source, "employment")
        self.assertIsNone(opted_out.prefill_source)

    def test_known_layout_wins_over_generic_fields(self) -> None:
        section = Section.from_dict(
            {
                "id": "s",
                "title": "Income",
                "prefill_source": "income",
                "fields": [{"name": "custom"}],
            }
        )
        self.assertIs(effective_fields(section), KNOWN_LAYOUTS["income"])
        custom = Section.from_dict({"id": "s", "title": "Hobbies", "fields": [{"name": "custom"}]})
        self.assertEqual([item.name for item in effective_fields(custom)], ["custom"])

    def test_joint_applicant_types(self) -> None:
        schema = FormSchema.from_dict({"config_id": "c", "applicantconfig": "dual"})
        self.assertTrue(schema.is_joint)
        self.assertEqual(schema.applicant_types, ["applicant1", "applicant2"])


class FormConfigurationApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def _create(self, **overrides) -> dict:
        response = self.client.post(
            reverse("form-configuration-list"), configuration_payload(**overrides), format="json"
        )
        self.assertEqual(response.status_code, 201, response.data)
        return response.data["data"]

    def test_create_assigns_config_id(self) -> None:
        created = self._create()
        self.assertRegex(created["config_id"], re.compile(r"^config_\d+_[0-9a-z]{9}$"))
        self.assertEqual(FormConfiguration.objects.count(), 1)

    def test_create_rejects_invalid_configuration_with_all_errors(self) -> None:
        response = self.client.post(
            reverse("form-configuration-list"),
            configuration_payload(name="", sections=[]),
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(
            response.data["errors"],
            ["Form name is required", "At least one section is required"],
        )

    def test_create_rejects_malformed_entries(self) -> None:
        response = self.client.post(
            reverse("form-configuration-list"),
            configuration_payload(sections=["oops"], consent_forms=["privacy"]),
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.data["errors"],
            ["Section 1: must be an object", "Consent form 1: must be an object"],
        )
        self.assertEqual(FormConfiguration.objects.count(), 0)

    def test_legacy_singular_consent_key(self) -> None:
        payload = configuration_payload()
        payload["consent_form"] = payload.pop("consent_forms")
        response = self.client.post(reverse("form-configuration-list"), payload, format="json")
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["data"]["consent_forms"][0]["id"], "privacy")

    def test_lookup_by_config_id(self) -> None:
        created = self._create()
        response = self.client.get(
            reverse("form-configuration-by-config-id", args=[created["config_id"]])
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["id"], created["id"])

        missing = self.client.get(reverse("form-configuration-by-config-id", args=["config_missing"]))
        self.assertEqual(missing.status_code, 404)
        self.assertFalse(missing.data["success"])

    def test_delete_unpublishes_and_filters(self) -> None:
        created = self._create()
        self._create(name="Second")
        response = self.client.delete(reverse("form-configuration-detail", args=[created["id"]]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(FormConfiguration.objects.get(pk=created["id"]).is_active)

        active = self.client.get(reverse("form-configuration-list"), {"isActive": "true"})
        self.assertEqual([item["name"] for item in active.data["data"]], ["Second"])

    def test_toggle_status(self) -> None:
        created = self._create()
        url = reverse("form-configuration-toggle-status", args=[created["id"]])
        self.assertFalse(self.client.patch(url, format="json").data["data"]["is_active"])
        self.assertTrue(self.client.patch(url, format="json").data["data"]["is_active"])

    def test_clone_gets_fresh_identity(self) -> None:
        created = self._create()
        FormConfiguration.objects.filter(pk=created["id"]).update(usage_count=4)
        response = self.client.post(
            reverse("form-configuration-clone", args=[created["id"]]),
            {"name": "Copy"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        clone = response.data["data"]
        self.assertNotEqual(clone["config_id"], created["config_id"])
        self.assertEqual(clone["name"], "Copy")
        self.assertFalse(clone["is_active"])
        self.assertEqual(clone["usage_count"], 0)
        self.assertEqual(clone["sections"], created["sections"])

    def test_statistics(self) -> None:
        first = self._create()
        self._create(name="Other", form_type="income")
        FormConfiguration.objects.filter(pk=first["id"]).update(usage_count=3, is_active=False)
        data = self.client.get(reverse("form-configuration-statistics")).data["data"]
        self.assertEqual(data["totalConfigurations"], 2)
        self.assertEqual(data["activeConfigurations"], 1)
        self.assertEqual(data["inactiveConfigurations"], 1)
        self.assertEqual(data["totalUsage"], 3)
        self.assertEqual(data["mostUsedConfiguration"]["id"], first["id"])
        self.assertEqual(data["usageByType"], {"financial-profile": 3, "income": 0})

    def test_document_requirements(self) -> None:
        created = self._create()
        response = self.client.get(reverse("form-configuration-documents", args=[created["id"]]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"][0]["acceptedTypes"], ["pdf", "jpg"])
