"""Tests for the diagnosis lifecycle endpoints."""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from sqlalchemy import func, select

from medreview.api.deps import get_llm_client
from medreview.main import app
from medreview.models import DiagnosisRequest
from medreview.services import DiagnosisService, db_session

from conftest import PATIENT_PROFILE, auth, seed_diagnosis

FORM = {
    "symptoms": "Persistent headache behind the eyes",
    "duration": "3 days",
    "severity": "moderate",
    "additionalNotes": "Worse in the evening",
}


def _count_records():
    with db_session() as session:
        return session.scalar(select(func.count()).select_from(DiagnosisRequest))


def _create(client, patient, files=None, user="user_patient"):
    data = dict(FORM, patientId=patient["id"])
    return client.post("/api/diagnosis", data=data, files=files, headers=auth(user))


class TestCreateDiagnosis:
    """POST /api/diagnosis"""

    def test_creates_ai_processed_record(self, client, patient, llm):
        r = _create(client, patient)
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["aiDiagnosis"]["diagnosis"] == "Tension-type headache"
        assert body["aiDiagnosis"]["possibleConditions"] == ["Tension-type headache", "Migraine"]
        assert len(llm.calls) == 1

        detail = client.get(f"/api/diagnosis/{body['diagnosisId']}", headers=auth("user_patient")).json()
        record = detail["diagnosis"]
        assert record["status"] == "ai-processed"
        assert record["doctorReview"] is None
        assert record["patientId"] == patient["id"]
        assert record["additionalNotes"] == "Worse in the evening"
        assert record["aiDiagnosis"]["confidence"] == 72
        assert "timestamp" in record["aiDiagnosis"]

    def test_prompt_includes_stored_medical_history(self, client, patient, llm):
        _create(client, patient)
        prompt = llm.calls[0][0]["content"]
        assert f"Medical History: {PATIENT_PROFILE['medicalHistory']}" in prompt
        assert "Additional Notes: Worse in the evening" in prompt

    def test_files_are_recorded_as_placeholders(self, client, patient):
        files = [
            ("files", ("scan.png", b"\x89PNG", "image/png")),
            ("files", ("labs.pdf", b"%PDF-1.4", "application/pdf")),
        ]
        r = _create(client, patient, files=files)
        diagnosis_id = r.json()["diagnosisId"]

        record = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_patient")).json()["diagnosis"]
        assert record["files"] == [
            {"name": "scan.png", "type": "image/png", "url": "/uploads/scan.png"},
            {"name": "labs.pdf", "type": "application/pdf", "url": "/uploads/labs.pdf"},
        ]

    def test_unparseable_ai_output_writes_nothing(self, client, patient, llm):
        llm.response = "I cannot produce JSON today."
        r = _create(client, patient)
        assert r.status_code == 502
        assert r.json() == {"success": False, "error": "Failed to generate AI diagnosis"}
        assert _count_records() == 0

    def test_ai_service_failure_writes_nothing(self, client, patient, llm):
        llm.error = TimeoutError("upstream timed out")
        r = _create(client, patient)
        assert r.status_code == 502
        assert _count_records() == 0

    def test_someone_elses_patient_is_rejected(self, client, patient, llm):
        r = _create(client, patient, user="user_intruder")
        assert r.status_code == 401
        assert llm.calls == []
        assert _count_records() == 0

    def test_invalid_severity_is_rejected(self, client, patient, llm):
        data = dict(FORM, severity="unbearable", patientId=patient["id"])
        r = client.post("/api/diagnosis", data=data, headers=auth("user_patient"))
        assert r.status_code == 400
        assert r.json()["success"] is False
        assert llm.calls == []

    def test_missing_symptoms_is_rejected(self, client, patient, llm):
        data = {k: v for k, v in FORM.items() if k != "symptoms"}
        data["patientId"] = patient["id"]
        r = client.post("/api/diagnosis", data=data, headers=auth("user_patient"))
        assert r.status_code == 400
        assert llm.calls == []

    def test_requires_authentication(self, client, patient):
        r = client.post("/api/diagnosis", data=dict(FORM, patientId=patient["id"]))
        assert r.status_code == 401
        assert r.json() == {"success": False, "error": "Unauthorized"}

    def test_invalid_token(self, client, patient):
        r = _create(client, patient, user="invalid")
        assert r.status_code == 401


class TestReadDiagnosis:
    """GET /api/diagnosis and /api/diagnosis/{id}"""

    def test_owner_can_read(self, client, patient):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_patient"))
        assert r.status_code == 200
        assert r.json()["success"] is True
        assert r.json()["diagnosis"]["id"] == diagnosis_id

    def test_other_user_is_unauthorized(self, client, patient):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_other"))
        assert r.status_code == 401

    def test_missing_and_foreign_records_look_the_same(self, client, patient):
        diagnosis_id = seed_diagnosis(patient["id"])
        foreign = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_other"))
        missing = client.get("/api/diagnosis/does-not-exist", headers=auth("user_other"))
        assert foreign.status_code == missing.status_code == 401
        assert foreign.json() == missing.json()

    def test_query_by_diagnosis_id(self, client, patient):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = client.get("/api/diagnosis", params={"diagnosisId": diagnosis_id}, headers=auth("user_patient"))
        assert r.status_code == 200
        assert r.json()["id"] == diagnosis_id

    def test_list_for_patient_newest_first(self, client, patient):
        now = datetime.now(timezone.utc)
        older = seed_diagnosis(patient["id"], created_at=now - timedelta(days=2))
        newest = seed_diagnosis(patient["id"], status="doctor-reviewed", created_at=now)
        middle = seed_diagnosis(patient["id"], created_at=now - timedelta(days=1))

        r = client.get("/api/diagnosis", params={"patientId": patient["id"]}, headers=auth("user_patient"))
        assert r.status_code == 200
        assert [d["id"] for d in r.json()] == [newest, middle, older]

    def test_list_for_someone_elses_patient(self, client, patient):
        seed_diagnosis(patient["id"])
        r = client.get("/api/diagnosis", params={"patientId": patient["id"]}, headers=auth("user_other"))
        assert r.status_code == 401

    def test_missing_query_parameters(self, client, patient):
        r = client.get("/api/diagnosis", headers=auth("user_patient"))
        assert r.status_code == 400
        assert r.json() == {"success": False, "error": "Missing patientId or diagnosisId"}


class TestPendingDiagnoses:
    """GET /api/pending-diagnoses"""

    def test_only_ai_processed_newest_first(self, client, patient, doctor):
        now = datetime.now(timezone.utc)
        first = seed_diagnosis(patient["id"], status="ai-processed", created_at=now - timedelta(hours=2))
        seed_diagnosis(patient["id"], status="doctor-reviewed", created_at=now - timedelta(hours=1))
        third = seed_diagnosis(patient["id"], status="ai-processed", created_at=now)

        r = client.get("/api/pending-diagnoses", headers=auth("user_doctor"))
        assert r.status_code == 200
        body = r.json()
        assert [d["id"] for d in body] == [third, first]
        assert all(d["status"] == "ai-processed" for d in body)

    def test_reduced_patient_view_is_joined(self, client, patient, doctor):
        seed_diagnosis(patient["id"])
        body = client.get("/api/pending-diagnoses", headers=auth("user_doctor")).json()

        info = body[0]["patient"]
        assert set(info) == {"name", "gender", "age"}
        assert info["name"] == "Jamie Rivera"
        assert info["gender"] == "female"
        assert isinstance(info["age"], int)

    def test_missing_patient_gives_null(self, client, doctor):
        seed_diagnosis("no-such-patient")
        body = client.get("/api/pending-diagnoses", headers=auth("user_doctor")).json()
        assert body[0]["patient"] is None

    def test_requires_doctor_profile(self, client, patient):
        r = client.get("/api/pending-diagnoses", headers=auth("user_patient"))
        assert r.status_code == 401


class TestDoctorReview:
    """POST /api/doctor-review"""

    def _review(self, client, diagnosis_id, **overrides):
        payload = {
            "diagnosisId": diagnosis_id,
            "diagnosis": "Tension-type headache, likely stress related",
            "notes": "Reduce screen time and keep a headache diary.",
            "recommendations": ["Ibuprofen as needed", "  ", "Follow up in two weeks"],
            "approved": True,
            "doctorName": "Dr. Okafor",
        }
        payload.update(overrides)
        return client.post("/api/doctor-review", json=payload, headers=auth("user_doctor"))

    def test_review_moves_status(self, client, patient, doctor):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = self._review(client, diagnosis_id)
        assert r.status_code == 200
        assert r.json() == {"success": True}

        record = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_patient")).json()["diagnosis"]
        assert record["status"] == "doctor-reviewed"
        review = record["doctorReview"]
        assert review["doctorId"] == "user_doctor"
        assert review["doctorName"] == "Dr. Okafor"
        assert review["diagnosis"] == "Tension-type headache, likely stress related"
        assert review["recommendations"] == ["Ibuprofen as needed", "Follow up in two weeks"]
        assert review["approved"] is True
        assert "timestamp" in review
        # AI section is untouched
        assert record["aiDiagnosis"]["diagnosis"] == "Migraine"

    def test_doctor_name_defaults_to_profile(self, client, patient, doctor):
        diagnosis_id = seed_diagnosis(patient["id"])
        self._review(client, diagnosis_id, doctorName=None)
        record = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_patient")).json()["diagnosis"]
        assert record["doctorReview"]["doctorName"] == doctor["name"]

    def test_nonexistent_record_is_not_found(self, client, doctor):
        r = self._review(client, "does-not-exist")
        assert r.status_code == 404
        assert r.json() == {"success": False, "error": "Diagnosis not found"}
        assert _count_records() == 0

    def test_second_review_conflicts(self, client, patient, doctor):
        diagnosis_id = seed_diagnosis(patient["id"])
        assert self._review(client, diagnosis_id).status_code == 200

        r = self._review(client, diagnosis_id, diagnosis="Something else entirely", approved=False)
        assert r.status_code == 409

        record = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_patient")).json()["diagnosis"]
        assert record["doctorReview"]["approved"] is True
        assert record["doctorReview"]["diagnosis"] == "Tension-type headache, likely stress related"

    def test_unknown_fields_are_rejected(self, client, patient, doctor):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = self._review(client, diagnosis_id, status="completed")
        assert r.status_code == 400

        record = client.get(f"/api/diagnosis/{diagnosis_id}", headers=auth("user_patient")).json()["diagnosis"]
        assert record["status"] == "ai-processed"

    def test_requires_doctor_profile(self, client, patient):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = client.post(
            "/api/doctor-review",
            json={"diagnosisId": diagnosis_id, "diagnosis": "x", "notes": "y", "approved": True},
            headers=auth("user_patient"),
        )
        assert r.status_code == 401


class TestReviewPage:
    """GET /api/doctor/review/{id}"""

    def test_serves_pending_record(self, client, patient, doctor):
        diagnosis_id = seed_diagnosis(patient["id"])
        r = client.get(f"/api/doctor/review/{diagnosis_id}", headers=auth("user_doctor"))
        assert r.status_code == 200
        body = r.json()
        assert body["diagnosis"]["id"] == diagnosis_id
        assert body["diagnosis"]["patient"]["name"] == "Jamie Rivera"

    def test_reviewed_record_is_not_served(self, client, patient, doctor):
        diagnosis_id = seed_diagnosis(patient["id"], status="doctor-reviewed")
        r = client.get(f"/api/doctor/review/{diagnosis_id}", headers=auth("user_doctor"))
        assert r.status_code == 404


class TestServerErrors:
    """5xx responses carry a generic message; details stay in the log."""

    def test_missing_ai_credential_is_generic_500(self, client, patient, caplog):
        app.dependency_overrides.pop(get_llm_client)
        get_llm_client.cache_clear()

        with caplog.at_level(logging.ERROR, logger="medreview.errors"):
            r = _create(client, patient)

        assert r.status_code == 500
        assert r.json() == {"success": False, "error": "Internal server error"}
        assert "OPENAI_API_KEY" not in r.text
        assert "OPENAI_API_KEY" in caplog.text
        assert _count_records() == 0

    def test_unexpected_failure_is_generic_500(self, client, doctor, caplog):
        with caplog.at_level(logging.ERROR, logger="medreview.errors"), \
             patch.object(DiagnosisService, "list_pending", side_effect=RuntimeError("db down")):
            r = client.get("/api/pending-diagnoses", headers=auth("user_doctor"))

        assert r.status_code == 500
        assert r.json() == {"success": False, "error": "Internal server error"}
        assert "db down" not in r.text
        assert any(rec.exc_info for rec in caplog.records)
