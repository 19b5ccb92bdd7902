# medreview/api/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from medreview.diagnosis.schema import (
    AIDiagnosis,
    CamelModel,
    DoctorReview,
    FileDescriptor,
)
from medreview.diagnosis.status import DiagnosisStatus, Gender, Severity


class StrictCamelModel(CamelModel):
    """Request bodies: unknown fields are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class OrmCamelModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SuccessResponse(CamelModel):
    success: bool = True


class DiagnosisRecord(OrmCamelModel):
    id: str
    patient_id: str
    symptoms: str
    duration: str
    severity: Severity
    additional_notes: Optional[str] = None
    files: List[FileDescriptor] = Field(default_factory=list)
    ai_diagnosis: Optional[AIDiagnosis] = None
    doctor_review: Optional[DoctorReview] = None
    status: DiagnosisStatus
    created_at: datetime
    updated_at: datetime


class PatientSummary(CamelModel):
    name: str
    gender: Gender
    age: int


class PendingDiagnosisRecord(DiagnosisRecord):
    patient: Optional[PatientSummary] = None


class CreateDiagnosisResponse(CamelModel):
    success: bool = True
    diagnosis_id: str
    ai_diagnosis: AIDiagnosis


class DiagnosisEnvelope(CamelModel):
    success: bool = True
    diagnosis: DiagnosisRecord


class ReviewPageResponse(CamelModel):
    success: bool = True
    diagnosis: PendingDiagnosisRecord


class DoctorReviewRequest(StrictCamelModel):
    diagnosis_id: str = Field(..., min_length=1)
    diagnosis: str = Field(..., min_length=1)
    notes: str = Field(..., min_length=1)
    recommendations: List[str] = Field(default_factory=list)
    approved: bool
    doctor_name: Optional[str] = None

    @field_validator("recommendations")
    @classmethod
    def _drop_blank_lines(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item.strip()]


class PatientProfileIn(StrictCamelModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    date_of_birth: date
    gender: Gender
    contact_number: str = Field(..., min_length=10)
    address: str = Field(..., min_length=5)
    medical_history: Optional[str] = None

    @field_validator("date_of_birth")
    @classmethod
    def _in_the_past(cls, v: date) -> date:
        if v >= date.today():
            raise ValueError("Date of birth must be in the past.")
        return v


class PatientProfileOut(OrmCamelModel):
    id: str
    user_id: str
    name: str
    email: str
    date_of_birth: date
    gender: Gender
    contact_number: str
    address: str
    medical_history: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DoctorProfileIn(StrictCamelModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    specialization: str = Field(..., min_length=2)
    license_number: str = Field(..., min_length=2)
    experience: int = Field(..., ge=0)
    contact_number: str = Field(..., min_length=10)
    bio: Optional[str] = None


class DoctorProfileOut(OrmCamelModel):
    id: str
    user_id: str
    name: str
    email: str
    specialization: str
    license_number: str
    experience: int
    contact_number: str
    bio: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SetRoleRequest(StrictCamelModel):
    role: Literal["patient", "doctor"]


class DoctorDashboardResponse(CamelModel):
    doctor: DoctorProfileOut
    pending_count: int
    reviewed_count: int


class DashboardRedirect(CamelModel):
    redirect: str
