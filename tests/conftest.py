"""Shared pytest fixtures."""

import os

# Must be set before medreview reads its settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("CLERK_SECRET_KEY", None)

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from medreview.api.deps import get_identity_provider, get_llm_client
from medreview.auth import ALLOWED_ROLES
from medreview.db import Base, get_engine
from medreview.errors import UnauthorizedError, ValidationError
from medreview.llm import LLMClient
from medreview.main import app
from medreview.models import DiagnosisRequest
from medreview.services import db_session, init_db

AI_RESPONSE = """```json
{
  "diagnosis": "Tension-type headache",
  "confidence": 72,
  "possibleConditions": ["Tension-type headache", "Migraine"],
  "recommendations": ["Rest in a quiet room", "Stay hydrated"]
}
```"""

PATIENT_PROFILE = {
    "name": "Jamie Rivera",
    "email": "jamie@example.com",
    "dateOfBirth": "1990-06-15",
    "gender": "female",
    "contactNumber": "5551234567",
    "address": "12 Harbour Street",
    "medicalHistory": "Seasonal allergies",
}

DOCTOR_PROFILE = {
    "name": "Dr. Sam Okafor",
    "email": "sam.okafor@example.com",
    "specialization": "Neurology",
    "licenseNumber": "LIC-4471",
    "experience": 12,
    "contactNumber": "5559876543",
    "bio": "Headache clinic lead",
}


class FakeLLMClient(LLMClient):
    """Records prompts and returns a canned reply (or raises)."""

    def __init__(self, response=AI_RESPONSE, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def chat(self, messages, temperature=None, model=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.response


class FakeIdentityProvider:
    """The bearer token is the user id; "invalid" is rejected."""

    def __init__(self):
        self.roles = {}

    def verify_session_token(self, token):
        if token == "invalid":
            raise UnauthorizedError()
        return token

    def set_role(self, user_id, role):
        if role not in ALLOWED_ROLES:
            raise ValidationError("Invalid role")
        self.roles[user_id] = role


def auth(user_id):
    return {"Authorization": f"Bearer {user_id}"}


def seed_diagnosis(patient_id, status="ai-processed", created_at=None, **extra):
    """Insert a record directly, bypassing the AI call."""
    created_at = created_at or datetime.now(timezone.utc)
    fields = dict(
        patient_id=patient_id,
        symptoms="Throbbing headache behind the eyes",
        duration="3 days",
        severity="moderate",
        files=[],
        ai_diagnosis={
            "diagnosis": "Migraine",
            "confidence": 60,
            "possible_conditions": ["Migraine"],
            "recommendations": ["Rest"],
            "timestamp": created_at.isoformat(),
        },
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )
    fields.update(extra)
    with db_session() as session:
        record = DiagnosisRequest(**fields)
        session.add(record)
        session.flush()
        return record.id


@pytest.fixture(autouse=True)
def database():
    """Fresh tables for every test."""
    init_db()
    yield
    Base.metadata.drop_all(bind=get_engine())


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def client(llm, identity):
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_identity_provider] = lambda: identity
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def patient(client):
    """A patient profile owned by user_patient."""
    r = client.post("/api/patient-profile", json=PATIENT_PROFILE, headers=auth("user_patient"))
    assert r.status_code == 200
    return client.get("/api/patient-profile", headers=auth("user_patient")).json()


@pytest.fixture
def doctor(client):
    """A doctor profile owned by user_doctor."""
    r = client.post("/api/doctor-profile", json=DOCTOR_PROFILE, headers=auth("user_doctor"))
    assert r.status_code == 200
    return client.get("/api/doctor-profile", headers=auth("user_doctor")).json()
