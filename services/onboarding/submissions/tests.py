"""Tests for submissions, the completion gate and document tracking."""
from __future__ import annotations

from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from formconfigs.models import FormConfiguration
from formconfigs.schema import FormSchema

from .completion import evaluate_submission
from .documents import document_statuses, required_documents_complete, summarize
from .models import FormSubmission, SubmissionDocument

SECTIONS = [
    {
        "id": "sec1",
        "title": "Contact",
        "description": "How we reach you",
        "order": 1,
        "required": True,
        "fields": [
            {"id": "f1", "name": "email", "type": "email", "label": "Email", "required": True},
        ],
    },
    {
        "id": "sec2",
        "title": "Extras",
        "description": "Optional details",
        "order": 2,
        "required": False,
        "fields": [
            {"id": "f2", "name": "nickname", "label": "Nickname", "required": True},
        ],
    },
]

CONSENTS = [
    {"id": "privacy", "title": "Privacy Policy", "content": "...", "enabled": True, "required": True},
    {"id": "marketing", "title": "Marketing", "content": "...", "enabled": True, "required": False},
]

DOCUMENTS = [
    {"id": "id-card", "name": "ID Card", "required": True, "maxSize": 5, "acceptedTypes": ["pdf"]},
    {"id": "payslip", "name": "Payslip", "required": False, "maxSize": 5, "acceptedTypes": ["pdf"]},
]


def make_schema(applicantconfig: str = "single") -> FormSchema:
    return FormSchema.from_dict(
        {
            "config_id": "config_test",
            "applicantconfig": applicantconfig,
            "sections": SECTIONS,
            "consent_forms": CONSENTS,
            "documents": DOCUMENTS,
        }
    )


def record(document_id: str, applicant_type: str, upload_status: str, record_id: int, **extra) -> dict:
    return {
        "id": record_id,
        "document_id": document_id,
        "applicant_type": applicant_type,
        "upload_status": upload_status,
        "verification_status": "pending",
        "created_at": f"2024-01-0{record_id}T10:00:00Z",
        **extra,
    }


class CompletionGateTests(SimpleTestCase):
    def test_missing_required_field_and_consent_are_all_reported(self) -> None:
        result = evaluate_submission(make_schema(), {"sec1": {}})
        self.assertFalse(result.is_valid)
        self.assertEqual(
            result.errors,
            ["Contact: Email is required", 'You must agree to "Privacy Policy"'],
        )

    def test_complete_single_submission_passes(self) -> None:
        result = evaluate_submission(
            make_schema(),
            {"sec1": {"email": "jane@example.com"}, "consents": {"privacy": True}},
        )
        self.assertTrue(result.is_valid, result.errors)

    def test_optional_section_only_checks_supplied_values(self) -> None:
        schema = FormSchema.from_dict(
            {
                "config_id": "c",
                "sections": [
                    {
                        "id": "sec",
                        "title": "Extras",
                        "required": False,
                        "fields": [
                            {"name": "age", "label": "Age", "type": "number", "validation": {"max": 120}},
                        ],
                    }
                ],
            }
        )
        self.assertTrue(evaluate_submission(schema, {}).is_valid)
        self.assertEqual(
            evaluate_submission(schema, {"sec": {"age": 130}}).errors,
            ["Extras: Age must be at most 120"],
        )

    def test_legacy_consent_flag_covers_single_required_consent(self) -> None:
        result = evaluate_submission(
            make_schema(), {"sec1": {"email": "jane@example.com"}, "consent_agreed": True}
        )
        self.assertTrue(result.is_valid)

    def test_joint_submission_checks_both_applicants(self) -> None:
        form_data = {
            "applicant1": {"sec1": {"email": "a@example.com"}},
            "applicant2": {"sec1": {}},
            "consents": {"privacy": True},
        }
        result = evaluate_submission(make_schema("joint"), form_data)
        self.assertEqual(result.errors, ["Applicant 2 - Contact: Email is required"])

        form_data["applicant2"]["sec1"]["email"] = "b@example.com"
        self.assertTrue(evaluate_submission(make_schema("joint"), form_data).is_valid)

    def test_non_numeric_input_does_not_block_zero_floor_fields(self) -> None:
        schema = FormSchema.from_dict(
            {
                "config_id": "c",
                "sections": [{"id": "exp", "title": "Expenses", "required": True}],
            }
        )
        result = evaluate_submission(schema, {"exp": {"cold_rent": "n/a"}})
        self.assertTrue(result.is_valid, result.errors)


class DocumentAggregationTests(SimpleTestCase):
    def test_joint_requirement_needs_both_applicants(self) -> None:
        schema = make_schema("joint")
        records = [record("id-card", "applicant1", "uploaded", 1)]
        self.assertFalse(required_documents_complete(schema, records))

        records.append(record("id-card", "applicant2", "failed", 2))
        self.assertFalse(required_documents_complete(schema, records))

        records.append(record("id-card", "applicant2", "uploaded", 3))
        self.assertTrue(required_documents_complete(schema, records))

    def test_status_uses_latest_live_record(self) -> None:
        records = [
            record("id-card", "single", "uploaded", 1),
            record("id-card", "single", "replaced", 2),
            record("id-card", "single", "uploading", 3),
        ]
        statuses = document_statuses(make_schema(), records)
        self.assertEqual(
            [(item["document_id"], item["upload_status"]) for item in statuses],
            [("id-card", "uploading"), ("payslip", "pending")],
        )
        self.assertEqual(statuses[0]["submission_document"]["id"], 3)

    def test_summary_states(self) -> None:
        schema = make_schema()
        draft = {"id": 1, "status": "draft"}
        self.assertEqual(summarize(schema, [], draft)["document_status"], "pending")

        uploaded = [record("id-card", "single", "uploaded", 1, uploaded_at="2024-01-01T10:00:00Z")]
        summary = summarize(schema, uploaded, draft)
        self.assertEqual(summary["document_status"], "complete")
        self.assertEqual(summary["first_upload_at"], "2024-01-01T10:00:00Z")
        self.assertEqual(summarize(schema, uploaded, {"status": "submitted"})["document_status"], "under_review")

        optional_only = FormSchema.from_dict({"config_id": "c", "documents": DOCUMENTS[1:]})
        self.assertEqual(summarize(optional_only, [], draft)["document_status"], "not_required")


class FormSubmissionApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.configuration = FormConfiguration.objects.create(
            name="Intake",
            form_type="financial-profile",
            version="1.0.0",
            sections=SECTIONS,
            consent_forms=CONSENTS,
            documents=DOCUMENTS,
        )

    def _create_draft(self, form_data=None) -> dict:
        response = self.client.post(
            reverse("form-submission-list"),
            {
                "form_config_id": self.configuration.config_id,
                "user_id": "u1",
                "form_data": form_data or {"sec1": {"first_name": "Jane"}},
                "status": "draft",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201, response.data)
        return response.data["data"]

    def test_draft_round_trip(self) -> None:
        created = self._create_draft()
        loaded = self.client.get(reverse("form-submission-detail", args=[created["id"]])).data["data"]
        self.assertEqual(loaded["status"], "draft")
        self.assertEqual(loaded["form_data"], {"sec1": {"first_name": "Jane"}})

    def test_creating_a_submission_records_usage(self) -> None:
        self._create_draft()
        self.configuration.refresh_from_db()
        self.assertEqual(self.configuration.usage_count, 1)
        self.assertIsNotNone(self.configuration.last_used_at)

    def test_unknown_configuration_is_rejected(self) -> None:
        response = self.client.post(
            reverse("form-submission-list"),
            {"form_config_id": "config_missing", "user_id": "u1", "form_data": {}},
            format="json",
        )
        self.assertEqual(response.status_code, 404)
        self.assertFalse(FormSubmission.objects.exists())

    def test_submit_with_missing_required_field_stays_draft(self) -> None:
        created = self._create_draft({"sec1": {}})
        response = self.client.patch(reverse("form-submission-submit", args=[created["id"]]))
        self.assertEqual(response.status_code, 400)
        self.assertIn("Contact: Email is required", response.data["errors"])
        self.assertEqual(FormSubmission.objects.get(pk=created["id"]).status, "draft")

    def test_submit_then_client_edits_are_refused(self) -> None:
        created = self._create_draft(
            {"sec1": {"email": "jane@example.com"}, "consents": {"privacy": True}}
        )
        response = self.client.patch(reverse("form-submission-submit", args=[created["id"]]))
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["data"]["status"], "submitted")
        self.assertIsNotNone(response.data["data"]["submitted_at"])

        detail = reverse("form-submission-detail", args=[created["id"]])
        update = self.client.put(
            detail,
            {"form_config_id": self.configuration.config_id, "user_id": "u1", "form_data": {}},
            format="json",
        )
        self.assertEqual(update.status_code, 409)
        self.assertEqual(self.client.delete(detail).status_code, 409)

    def test_review_flow_and_terminal_state(self) -> None:
        submission = FormSubmission.objects.create(
            form_config_id=self.configuration.config_id,
            user_id="u1",
            status=FormSubmission.SUBMITTED,
        )
        reviewed = self.client.patch(
            reverse("form-submission-review", args=[submission.pk]),
            {"reviewed_by": "coach-1", "review_notes": "Looks fine"},
            format="json",
        )
        self.assertEqual(reviewed.data["data"]["status"], "reviewed")
        self.assertEqual(reviewed.data["data"]["reviewed_by"], "coach-1")

        approved = self.client.patch(reverse("form-submission-approve", args=[submission.pk]), format="json")
        self.assertEqual(approved.data["data"]["status"], "approved")

        rejected = self.client.patch(reverse("form-submission-reject", args=[submission.pk]), format="json")
        self.assertEqual(rejected.status_code, 409)
        self.assertFalse(rejected.data["success"])

    def test_draft_can_be_deleted(self) -> None:
        created = self._create_draft()
        response = self.client.delete(reverse("form-submission-detail", args=[created["id"]]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(FormSubmission.objects.exists())

    def test_list_by_user(self) -> None:
        self._create_draft()
        FormSubmission.objects.create(form_config_id=self.configuration.config_id, user_id="u2")
        response = self.client.get(reverse("form-submission-by-user", args=["u1"]))
        self.assertEqual([item["user_id"] for item in response.data["data"]], ["u1"])


class DocumentTrackingApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.configuration = FormConfiguration.objects.create(
            name="Joint intake",
            form_type="dual-applicant",
            version="1.0.0",
            applicantconfig="joint",
            sections=SECTIONS,
            documents=DOCUMENTS,
        )
        self.submission = FormSubmission.objects.create(
            form_config_id=self.configuration.config_id, user_id="u1"
        )
        self.url = reverse("form-submission-documents", args=[self.submission.pk])

    def _post(self, payload: dict):
        return self.client.post(self.url, payload, format="json")

    def _upload(self, applicant_type: str, filename: str = "id.pdf") -> dict:
        created = self._post(
            {
                "action": "create",
                "document_id": "id-card",
                "applicant_type": applicant_type,
                "original_filename": filename,
                "file_size_bytes": 1024,
                "content_type": "application/pdf",
                "firebase_path": f"coaches/c1/clients/u1/applicants/{applicant_type}/documents/id-card-{filename}",
            }
        )
        self.assertEqual(created.status_code, 201, created.data)
        self.assertEqual(created.data["data"]["upload_status"], "uploading")
        uploaded = self._post(
            {
                "action": "mark-uploaded",
                "submission_document_id": created.data["data"]["id"],
                "firebase_download_url": "https://storage.example/id.pdf",
            }
        )
        self.assertEqual(uploaded.status_code, 200, uploaded.data)
        return uploaded.data["data"]

    def _status(self) -> dict:
        response = self.client.get(reverse("form-submission-document-status", args=[self.submission.pk]))
        self.assertEqual(response.status_code, 200)
        return response.data["data"]

    def test_joint_completion_requires_both_applicants(self) -> None:
        self._upload("applicant1")
        self.assertFalse(self._status()["all_required_uploaded"])
        self._upload("applicant2")
        self.assertTrue(self._status()["all_required_uploaded"])

    def test_replacement_keeps_history(self) -> None:
        first = self._upload("applicant1")
        second = self._upload("applicant1", "id-new.pdf")

        self.assertEqual(SubmissionDocument.objects.get(pk=first["id"]).upload_status, "replaced")
        live = SubmissionDocument.objects.exclude(upload_status="replaced")
        self.assertEqual([item.pk for item in live], [second["id"]])

        history = self.client.get(self.url, {"includeReplaced": "true"}).data["data"]
        self.assertEqual(len(history), 2)

    def _applicant_status(self, applicant_type: str) -> dict:
        return next(
            item
            for item in self._status()["documents"]
            if item["document_id"] == "id-card" and item["applicant_type"] == applicant_type
        )

    def test_failed_replacement_keeps_previous_upload(self) -> None:
        first = self._upload("applicant1")
        self._upload("applicant2")
        self.assertTrue(self._status()["all_required_uploaded"])

        failed = self._post(
            {
                "action": "mark-failed",
                "document_id": "id-card",
                "applicant_type": "applicant1",
                "original_filename": "broken.pdf",
                "error_message": "storage/unauthorized",
            }
        )
        self.assertEqual(failed.status_code, 200, failed.data)
        record = SubmissionDocument.objects.get(pk=failed.data["data"]["id"])
        self.assertEqual(record.upload_status, "replaced")
        self.assertEqual(record.verification_notes, "storage/unauthorized")
        self.assertEqual(SubmissionDocument.objects.get(pk=first["id"]).upload_status, "uploaded")

        self.assertTrue(self._status()["all_required_uploaded"])
        applicant1 = self._applicant_status("applicant1")
        self.assertEqual(applicant1["upload_status"], "uploaded")
        self.assertEqual(applicant1["submission_document"]["id"], first["id"])

    def test_in_flight_replacement_that_fails_keeps_previous_upload(self) -> None:
        first = self._upload("applicant1")
        attempt = self._post(
            {
                "action": "create",
                "document_id": "id-card",
                "applicant_type": "applicant1",
                "original_filename": "id-new.pdf",
            }
        )
        self.assertEqual(SubmissionDocument.objects.get(pk=first["id"]).upload_status, "uploaded")

        failed = self._post(
            {
                "action": "mark-failed",
                "submission_document_id": attempt.data["data"]["id"],
                "error_message": "network",
            }
        )
        self.assertEqual(failed.data["data"]["upload_status"], "replaced")
        self.assertEqual(self._applicant_status("applicant1")["submission_document"]["id"], first["id"])

    def test_failed_first_attempt_is_the_live_record(self) -> None:
        failed = self._post(
            {
                "action": "mark-failed",
                "document_id": "id-card",
                "applicant_type": "applicant1",
                "original_filename": "broken.pdf",
                "error_message": "storage/unauthorized",
            }
        )
        self.assertEqual(failed.data["data"]["upload_status"], "failed")
        self.assertEqual(self._applicant_status("applicant1")["upload_status"], "failed")
        self.assertFalse(self._status()["all_required_uploaded"])

    def test_in_flight_attempt_is_marked_failed(self) -> None:
        created = self._post(
            {
                "action": "create",
                "document_id": "payslip",
                "applicant_type": "applicant1",
                "original_filename": "march.pdf",
            }
        )
        failed = self._post(
            {
                "action": "mark-failed",
                "submission_document_id": created.data["data"]["id"],
                "error_message": "network",
            }
        )
        self.assertEqual(failed.data["data"]["id"], created.data["data"]["id"])
        self.assertEqual(failed.data["data"]["upload_status"], "failed")
        self.assertEqual(SubmissionDocument.objects.count(), 1)

    def test_verification_update_and_soft_delete(self) -> None:
        uploaded = self._upload("applicant2")
        detail = reverse("form-submission-document-detail", args=[self.submission.pk, uploaded["id"]])

        verified = self.client.put(
            detail,
            {"verification_status": "approved", "verified_by": "coach-1"},
            format="json",
        )
        self.assertEqual(verified.data["data"]["verification_status"], "approved")

        removed = self.client.delete(detail, {"replacement_reason": "Blurry scan"}, format="json")
        self.assertEqual(removed.status_code, 200)
        self.assertEqual(removed.data["data"]["upload_status"], "replaced")
        self.assertEqual(removed.data["data"]["verification_notes"], "Blurry scan")

    def test_create_requires_document_key(self) -> None:
        response = self._post({"action": "create", "original_filename": "id.pdf"})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])

    def test_summary(self) -> None:
        self._upload("applicant1")
        response = self.client.get(reverse("form-submission-summary", args=[self.submission.pk]))
        data = response.data["data"]
        self.assertEqual(data["document_status"], "partial")
        self.assertEqual(data["total_required_documents"], 2)
        self.assertEqual(data["successfully_uploaded"], 1)
