"""Tests for the intake client core."""
from __future__ import annotations

import io
from unittest import mock

import requests
from django.test import SimpleTestCase
from google.api_core import exceptions as gcloud_exceptions

from formconfigs.schema import FormSchema

from .client import BackendClient
from .errors import ApiError, AuthExpired, ConfigurationNotFound, InvalidTransition, NetworkFailure, UploadFailure
from .interpreter import EDITING, VIEWING, FormInterpreter
from .notices import ERROR, SUCCESS, NoticeBoard
from .paths import generate_file_path, resolve_storage_ids, sanitize_document_name
from .prefill import format_date, prefill_form_data
from .session import ADMIN, CLIENT, COACH, Session, SessionUser
from .storage import DocumentLocation, FirebaseStorage, UploadProgress, UploadResult
from .uploads import FILE_SELECTED, NO_FILE, UPLOADED, SelectedFile, UploadOrchestrator

CLIENT_USER = SessionUser(id="u1", role=CLIENT, coach_id="c1")
COACH_USER = SessionUser(id="c1", role=COACH)

CONFIG = {
    "id": 7,
    "config_id": "config_1700000000000_abc123def",
    "name": "Intake",
    "applicantconfig": "single",
    "sections": [
        {
            "id": "sec1",
            "title": "Contact",
            "order": 1,
            "required": True,
            "prefill_source": None,
            "fields": [
                {"id": "f1", "name": "email", "type": "email", "label": "Email", "required": True},
                {"id": "f2", "name": "children", "type": "number", "label": "Children"},
            ],
        }
    ],
    "consent_forms": [
        {"id": "privacy", "title": "Privacy Policy", "content": "...", "enabled": True, "required": True},
    ],
    "documents": [
        {"id": "d1", "name": "ID Card", "required": True, "maxSize": 5, "acceptedTypes": ["pdf", "jpg"]},
    ],
}


def response(status_code: int = 200, payload=None, reason: str = "OK") -> mock.Mock:
    resp = mock.Mock(status_code=status_code, reason=reason)
    if payload is None:
        resp.json.side_effect = ValueError("no body")
    else:
        resp.json.return_value = payload
    return resp


class PathTests(SimpleTestCase):
    def test_generated_path(self) -> None:
        self.assertEqual(
            generate_file_path("c1", "u1", "single", "d1", "ID Card.pdf"),
            "coaches/c1/clients/u1/applicants/single/documents/d1-id_card.pdf",
        )

    def test_sanitize_collapses_unsafe_runs(self) -> None:
        self.assertEqual(sanitize_document_name("Pay  Slip (März).PDF"), "pay_slip_m_rz_.pdf")

    def test_storage_ids_by_role(self) -> None:
        self.assertEqual(tuple(resolve_storage_ids(CLIENT, "u1", None, "c9")), ("c9", "u1"))
        self.assertEqual(tuple(resolve_storage_ids(CLIENT, "u1")), ("default-coach", "u1"))
        self.assertEqual(tuple(resolve_storage_ids(COACH, "c1", "u1")), ("c1", "u1"))
        self.assertEqual(tuple(resolve_storage_ids(COACH, "c1")), ("c1", "current-client"))
        self.assertEqual(tuple(resolve_storage_ids(ADMIN, "a1", "u1")), ("admin-as-coach", "u1"))
        self.assertEqual(tuple(resolve_storage_ids(ADMIN, "a1")), ("admin", "admin-client"))
        self.assertEqual(tuple(resolve_storage_ids(None, "x")), ("guest", "guest-client"))


class BackendClientTests(SimpleTestCase):
    def setUp(self) -> None:
        self.session = Session(CLIENT_USER, "token-1")
        self.http = mock.Mock()
        self.client = BackendClient(self.session, base_url="http://backend/api/", timeout=3, http=self.http)

    def test_unwraps_envelope_and_sends_token(self) -> None:
        self.http.request.return_value = response(payload={"success": True, "data": [{"id": 1}]})
        self.assertEqual(self.client.list_configurations(form_type="intake"), [{"id": 1}])
        args, kwargs = self.http.request.call_args
        self.assertEqual(args, ("GET", "http://backend/api/form-configurations"))
        self.assertEqual(kwargs["params"], {"formType": "intake"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer token-1")
        self.assertEqual(kwargs["timeout"], 3)

    def test_network_failure(self) -> None:
        self.http.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(NetworkFailure) as ctx:
            self.client.get("form-submissions")
        self.assertIn("Network connection failed", ctx.exception.message)

    def test_unauthorized_clears_session(self) -> None:
        self.http.request.return_value = response(401, {"success": False, "message": "expired"})
        with self.assertRaises(AuthExpired):
            self.client.get("form-submissions")
        self.assertIsNone(self.session.user)
        self.assertIsNone(self.session.token)

    def test_error_status_uses_body_message(self) -> None:
        self.http.request.return_value = response(
            400, {"success": False, "message": "Validation failed", "errors": ["a", "b"]}, "Bad Request"
        )
        with self.assertRaises(ApiError) as ctx:
            self.client.create_submission({})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.errors, ["a", "b"])

    def test_error_status_without_body(self) -> None:
        self.http.request.return_value = response(502, None, "Bad Gateway")
        with self.assertRaises(ApiError) as ctx:
            self.client.get("form-submissions")
        self.assertEqual(ctx.exception.message, "HTTP 502: Bad Gateway")

    def test_success_false_with_ok_status(self) -> None:
        self.http.request.return_value = response(200, {"success": False, "error": "nope"})
        with self.assertRaises(ApiError):
            self.client.get("form-submissions")

    def test_unknown_configuration(self) -> None:
        self.http.request.return_value = response(404, {"success": False, "message": "Not found."})
        with self.assertRaises(ConfigurationNotFound):
            self.client.get_configuration("config_missing")

    def test_document_actions_are_tagged(self) -> None:
        self.http.request.return_value = response(payload={"success": True, "data": {"id": 3}})
        self.client.mark_document_failed(5, {"document_id": "d1", "applicant_type": "single"})
        kwargs = self.http.request.call_args[1]
        self.assertEqual(kwargs["json"]["action"], "mark-failed")


class PrefillTests(SimpleTestCase):
    def setUp(self) -> None:
        self.schema = FormSchema.from_dict(
            {
                "config_id": "config_prefill",
                "sections": [
                    {"id": "p", "title": "About you", "order": 1, "prefill_source": "personal"},
                    {"id": "i", "title": "Money in", "order": 2, "prefill_source": "income"},
                    {"id": "e", "title": "Work", "order": 3, "prefill_source": "employment"},
                    {"id": "x", "title": "Notes", "order": 4, "prefill_source": None},
                ],
            }
        )

    def test_format_date(self) -> None:
        self.assertEqual(format_date("1990-05-17T23:30:00-02:00"), "1990-05-18")
        self.assertEqual(format_date("1990-05-17"), "1990-05-17")
        self.assertEqual(format_date("not a date"), "")
        self.assertEqual(format_date(None), "")

    def test_failing_section_does_not_affect_others(self) -> None:
        def fake_get(path, params=None):
            if path.startswith("income"):
                raise ApiError("boom", 500)
            if path == "personal-details/u1":
                return {"first_name": "Ada", "birth_date": "1990-05-17T00:00:00Z"}
            if path == "employment/u1":
                return {"occupation": "Engineer"}
            return None

        client = mock.Mock(spec=BackendClient)
        client.get.side_effect = fake_get
        data = prefill_form_data(client, self.schema, CLIENT_USER)
        self.assertEqual(set(data), {"p", "e"})
        self.assertEqual(data["p"]["first_name"], "Ada")
        self.assertEqual(data["p"]["birth_date"], "1990-05-17")
        self.assertEqual(data["e"]["occupation"], "Engineer")

    def test_unexpected_error_in_one_section_is_contained(self) -> None:
        def fake_get(path, params=None):
            if path.startswith("income"):
                raise RuntimeError("boom")
            if path == "personal-details/u1":
                return {"first_name": "Ada"}
            if path == "employment/u1":
                return {"occupation": "Engineer"}
            return None

        client = mock.Mock(spec=BackendClient)
        client.get.side_effect = fake_get
        with self.assertLogs("intake.prefill", level="ERROR"):
            data = prefill_form_data(client, self.schema, CLIENT_USER)
        self.assertEqual(set(data), {"p", "e"})
        self.assertEqual(data["p"]["first_name"], "Ada")

    def test_falls_back_to_list_lookup(self) -> None:
        def fake_get(path, params=None):
            if path == "income" and params == {"userId": "u1"}:
                return [{"gross_income": 5000}]
            raise ApiError("Not found", 404)

        client = mock.Mock(spec=BackendClient)
        client.get.side_effect = fake_get
        data = prefill_form_data(client, self.schema, CLIENT_USER)
        self.assertEqual(data, {"i": mock.ANY})
        self.assertEqual(data["i"]["gross_income"], 5000)
        self.assertEqual(data["i"]["number_of_salaries"], 12)

    def test_only_clients_are_prefilled(self) -> None:
        client = mock.Mock(spec=BackendClient)
        self.assertEqual(prefill_form_data(client, self.schema, COACH_USER), {})
        client.get.assert_not_called()


class FormInterpreterTests(SimpleTestCase):
    def setUp(self) -> None:
        self.client = mock.Mock(spec=BackendClient)
        self.client.get_configuration.return_value = CONFIG
        self.notices = NoticeBoard()
        self.interpreter = FormInterpreter(self.client, Session(COACH_USER, "t"), self.notices)

    def test_submit_reports_every_violation_locally(self) -> None:
        self.interpreter.open_new(CONFIG["config_id"], client_id="u1")
        self.assertFalse(self.interpreter.submit())
        self.assertEqual(
            self.interpreter.errors,
            ["Contact: Email is required", 'You must agree to "Privacy Policy"'],
        )
        self.client.create_submission.assert_not_called()
        self.assertEqual(self.notices.latest().level, ERROR)

    def test_numeric_fields_are_coerced(self) -> None:
        self.interpreter.open_new(CONFIG["config_id"], client_id="u1")
        self.assertEqual(self.interpreter.set_field("sec1", "children", "abc"), 0.0)
        self.assertEqual(self.interpreter.set_field("sec1", "children", "2"), 2.0)

    def test_draft_then_submit(self) -> None:
        self.interpreter.open_new(CONFIG["config_id"], client_id="u1")
        self.interpreter.set_field("sec1", "email", "ada@example.com")
        self.client.create_submission.return_value = {"id": 11, "status": "draft", "form_data": {}}
        self.assertTrue(self.interpreter.save_draft())
        payload = self.client.create_submission.call_args[0][0]
        self.assertEqual(payload["user_id"], "u1")
        self.assertEqual(payload["status"], "draft")

        self.interpreter.set_consent("privacy", True)
        self.client.update_submission.return_value = {"id": 11, "status": "submitted", "form_data": {}}
        self.assertTrue(self.interpreter.submit())
        self.assertEqual(self.client.update_submission.call_args[0][1]["status"], "submitted")
        self.assertEqual(self.interpreter.state, VIEWING)
        self.assertEqual(self.notices.latest().level, SUCCESS)
        with self.assertRaises(InvalidTransition):
            self.interpreter.edit()

    def test_backend_failure_keeps_editing(self) -> None:
        self.interpreter.open_new(CONFIG["config_id"], client_id="u1")
        self.client.create_submission.side_effect = ApiError("Server error", 500)
        self.assertFalse(self.interpreter.save_draft())
        self.assertEqual(self.interpreter.state, EDITING)
        self.assertEqual(self.notices.latest().message, "Server error")

    def test_expired_session_propagates(self) -> None:
        self.interpreter.open_new(CONFIG["config_id"], client_id="u1")
        self.client.create_submission.side_effect = AuthExpired("expired")
        with self.assertRaises(AuthExpired):
            self.interpreter.save_draft()

    def test_submitted_submission_opens_read_only(self) -> None:
        self.client.get_submission.return_value = {
            "id": 3,
            "form_config_id": CONFIG["config_id"],
            "user_id": "u1",
            "status": "submitted",
            "form_data": {},
        }
        self.interpreter.open_existing(3)
        self.assertEqual(self.interpreter.state, VIEWING)
        self.assertTrue(all(section.disabled for section in self.interpreter.render()))
        with self.assertRaises(InvalidTransition):
            self.interpreter.set_field("sec1", "email", "x@example.com")

    def test_joint_prefill_goes_to_first_applicant(self) -> None:
        self.client.get_configuration.return_value = {
            **CONFIG,
            "applicantconfig": "joint",
            "sections": [{"id": "p", "title": "About", "order": 1, "prefill_source": "personal"}],
        }
        self.client.get.return_value = {"first_name": "Ada"}
        interpreter = FormInterpreter(self.client, Session(CLIENT_USER, "t"), self.notices)
        interpreter.open_new(CONFIG["config_id"])
        self.assertEqual(interpreter.form_data["applicant2"], {})
        self.assertEqual(interpreter.form_data["applicant1"]["p"]["first_name"], "Ada")

    def test_joint_render_defaults_to_first_applicant(self) -> None:
        self.client.get_configuration.return_value = {
            **CONFIG,
            "applicantconfig": "joint",
            "sections": [{"id": "p", "title": "About", "order": 1, "prefill_source": "personal"}],
        }
        self.client.get.return_value = {"first_name": "Ada"}
        interpreter = FormInterpreter(self.client, Session(CLIENT_USER, "t"), self.notices)
        interpreter.open_new(CONFIG["config_id"])
        self.assertEqual(interpreter.render()[0].values["first_name"], "Ada")
        self.assertEqual(interpreter.render("applicant2")[0].values, {})


class StorageTests(SimpleTestCase):
    def setUp(self) -> None:
        self.bucket = mock.Mock()
        self.bucket.name = "intake-test"
        self.storage = FirebaseStorage(bucket=self.bucket)
        self.location = DocumentLocation("c1", "u1", "single", "d1", "ID Card.pdf")

    def test_upload_reports_progress_and_builds_url(self) -> None:
        blob = self.bucket.blob.return_value
        blob.name = self.location.path
        blob.size = 4
        blob.content_type = "application/pdf"
        blob.time_created = None
        blob.updated = None
        blob.md5_hash = "abc"

        def consume(source, size, content_type):
            source.read(2)
            source.read(2)

        blob.upload_from_file.side_effect = consume
        seen = []
        result = self.storage.upload_document(
            self.location, io.BytesIO(b"%PDF"), 4, "application/pdf", "id.pdf", submission_id=5, on_progress=seen.append
        )
        self.assertEqual([item.progress for item in seen], [50, 100])
        token = blob.metadata["firebaseStorageDownloadTokens"]
        self.assertEqual(
            result.download_url,
            "https://firebasestorage.googleapis.com/v0/b/intake-test/o/"
            "coaches%2Fc1%2Fclients%2Fu1%2Fapplicants%2Fsingle%2Fdocuments%2Fd1-id_card.pdf"
            f"?alt=media&token={token}",
        )
        self.assertEqual(result.metadata["customMetadata"]["submissionId"], "5")
        self.assertNotIn("firebaseStorageDownloadTokens", result.metadata["customMetadata"])

    def test_upload_error_is_wrapped(self) -> None:
        self.bucket.blob.return_value.upload_from_file.side_effect = gcloud_exceptions.Forbidden("denied")
        with self.assertRaises(UploadFailure):
            self.storage.upload_document(self.location, io.BytesIO(b"x"), 1, "application/pdf", "id.pdf")

    def test_delete_missing_object_is_not_an_error(self) -> None:
        self.bucket.blob.return_value.delete.side_effect = gcloud_exceptions.NotFound("gone")
        self.storage.delete_document(self.location)

    def test_zero_byte_progress(self) -> None:
        self.assertEqual(UploadProgress(0, 0).progress, 100)


class UploadOrchestratorTests(SimpleTestCase):
    def setUp(self) -> None:
        self.client = mock.Mock(spec=BackendClient)
        self.storage = mock.Mock(spec=FirebaseStorage)
        self.storage.upload_document.return_value = UploadResult("https://files/d1", {"size": 2048})
        self.notices = NoticeBoard()
        schema = FormSchema.from_dict({**CONFIG, "applicantconfig": "joint"})
        self.orchestrator = UploadOrchestrator(
            self.client,
            self.storage,
            Session(COACH_USER, "t"),
            schema,
            {"id": 5, "user_id": "u1"},
            self.notices,
        )

    def _file(self, name: str, megabytes: float) -> SelectedFile:
        return SelectedFile(name=name, size=int(megabytes * 1024 * 1024), stream=io.BytesIO(b"x"))

    def test_file_validation(self) -> None:
        error = self.orchestrator.select_file("d1", "applicant1", self._file("big.pdf", 6))
        self.assertIn("exceeds 5MB", error)
        error = self.orchestrator.select_file("d1", "applicant1", self._file("scan.png", 2))
        self.assertIn("type not accepted", error)
        self.assertIsNone(self.orchestrator.select_file("d1", "applicant1", self._file("scan.PDF", 2)))
        self.assertTrue(self.orchestrator.slot("d1", "applicant1").can_upload)

    def test_slots_are_independent(self) -> None:
        self.orchestrator.select_file("d1", "applicant1", self._file("scan.png", 2))
        self.orchestrator.select_file("d1", "applicant2", self._file("scan.pdf", 2))
        self.assertFalse(self.orchestrator.slot("d1", "applicant1").can_upload)
        self.assertTrue(self.orchestrator.slot("d1", "applicant2").can_upload)
        self.orchestrator.remove_file("d1", "applicant1")
        self.assertEqual(self.orchestrator.slot("d1", "applicant1").state, NO_FILE)

    def test_successful_upload_is_tracked(self) -> None:
        self.client.create_document.return_value = {"id": 9, "upload_status": "uploaded"}
        self.orchestrator.select_file("d1", "applicant2", self._file("scan.pdf", 1))
        self.assertTrue(self.orchestrator.upload("d1", "applicant2"))

        location = self.storage.upload_document.call_args[0][0]
        self.assertEqual(location.path, "coaches/c1/clients/u1/applicants/applicant2/documents/d1-id_card.pdf")
        submission_id, payload = self.client.create_document.call_args[0]
        self.assertEqual(submission_id, 5)
        self.assertEqual(payload["upload_status"], "uploaded")
        self.assertEqual(payload["firebase_download_url"], "https://files/d1")
        slot = self.orchestrator.slot("d1", "applicant2")
        self.assertEqual(slot.state, UPLOADED)
        self.assertEqual(self.notices.latest().level, SUCCESS)

    def test_failed_upload_is_recorded_best_effort(self) -> None:
        self.storage.upload_document.side_effect = UploadFailure("bucket unavailable")
        self.client.mark_document_failed.side_effect = NetworkFailure("offline")
        self.orchestrator.select_file("d1", "applicant1", self._file("scan.pdf", 1))

        self.assertFalse(self.orchestrator.upload("d1", "applicant1"))
        slot = self.orchestrator.slot("d1", "applicant1")
        self.assertEqual(slot.state, FILE_SELECTED)
        self.assertEqual(slot.error, "Upload failed. Please try again.")
        self.assertIs(type(slot.error), str)
        payload = self.client.mark_document_failed.call_args[0][1]
        self.assertEqual(payload["error_message"], "bucket unavailable")
        self.assertEqual(self.notices.latest().level, ERROR)
        self.client.create_document.assert_not_called()

    def test_upload_requires_a_valid_file(self) -> None:
        with self.assertRaises(InvalidTransition):
            self.orchestrator.upload("d1", "applicant1")

    def test_upload_without_a_file_is_refused(self) -> None:
        slot = self.orchestrator.slot("d1", "applicant1")
        slot.state = FILE_SELECTED
        with self.assertRaises(InvalidTransition):
            self.orchestrator.upload("d1", "applicant1")
        self.storage.upload_document.assert_not_called()

    def test_completion_uses_tracking_records(self) -> None:
        self.client.submission_documents.return_value = [
            {"id": 1, "document_id": "d1", "applicant_type": "applicant1", "upload_status": "uploaded",
             "created_at": "2024-01-01T00:00:00Z"},
        ]
        self.assertFalse(self.orchestrator.all_required_uploaded())
        self.client.submission_documents.return_value.append(
            {"id": 2, "document_id": "d1", "applicant_type": "applicant2", "upload_status": "uploaded",
             "created_at": "2024-01-01T00:00:00Z"}
        )
        self.assertTrue(self.orchestrator.all_required_uploaded())
