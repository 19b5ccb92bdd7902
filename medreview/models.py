# medreview/models.py
from datetime import date, datetime, timezone
import uuid

from sqlalchemy import (
    String,
    Date,
    DateTime,
    Integer,
    Text,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from medreview.db import Base, JSONType
from medreview.diagnosis.status import DiagnosisStatus


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String, nullable=False)
    contact_number: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    medical_history: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "gender IN ('male', 'female', 'other')",
            name="ck_patients_gender_valid",
        ),
    )


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    specialization: Mapped[str] = mapped_column(String, nullable=False)
    license_number: Mapped[str] = mapped_column(String, nullable=False)
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    contact_number: Mapped[str] = mapped_column(String, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "experience >= 0",
            name="ck_doctors_experience_non_negative",
        ),
    )


class DiagnosisRequest(Base):
    """
    One patient submission. ai_diagnosis is written once at creation,
    doctor_review once when a doctor signs off.
    """
    __tablename__ = "diagnosis_requests"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=generate_uuid
    )
    # Plain reference, like the document store it replaces; not a foreign key.
    patient_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    symptoms: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[str] = mapped_column(String, nullable=False)
    severity: Mapped[str] = mapped_column(String, nullable=False)
    additional_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    files: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    ai_diagnosis: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    doctor_review: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=DiagnosisStatus.AI_PROCESSED.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "severity IN ('mild', 'moderate', 'severe')",
            name="ck_diagnosis_requests_severity_valid",
        ),
        CheckConstraint(
            "status IN ('pending', 'ai-processed', 'doctor-reviewed', 'completed')",
            name="ck_diagnosis_requests_status_valid",
        ),
    )
