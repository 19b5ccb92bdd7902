# medreview/api/routes.py
from __future__ import annotations

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from medreview.auth import IdentityProvider
from medreview.diagnosis import Severity
from medreview.errors import NotFoundError, ValidationError
from medreview.llm import LLMClient
from medreview.models import Doctor
from medreview.services import (
    DiagnosisService,
    build_file_descriptors,
    doctor_profiles,
    patient_profiles,
)
from .deps import (
    get_current_doctor,
    get_current_user_id,
    get_db,
    get_identity_provider,
    get_llm_client,
)
from .schemas import (
    CreateDiagnosisResponse,
    DiagnosisEnvelope,
    DiagnosisRecord,
    DoctorDashboardResponse,
    DoctorProfileIn,
    DoctorProfileOut,
    DoctorReviewRequest,
    PatientProfileIn,
    PatientProfileOut,
    PendingDiagnosisRecord,
    DashboardRedirect,
    ReviewPageResponse,
    SetRoleRequest,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _pending_record(record, patient) -> PendingDiagnosisRecord:
    base = DiagnosisRecord.model_validate(record)
    return PendingDiagnosisRecord(**base.model_dump(), patient=patient)


@router.post("/diagnosis", response_model=CreateDiagnosisResponse)
def create_diagnosis(
    symptoms: str = Form(..., min_length=1),
    duration: str = Form(..., min_length=1),
    severity: Severity = Form(...),
    patient_id: str = Form(..., alias="patientId", min_length=1),
    additional_notes: Optional[str] = Form(None, alias="additionalNotes"),
    files: Optional[List[UploadFile]] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> CreateDiagnosisResponse:
    """
    Patient submission. The AI call happens inside this request, so the
    response takes as long as the text-generation service does.
    """
    descriptors = build_file_descriptors(
        [(f.filename, f.content_type) for f in files or []]
    )

    record, ai_diagnosis = DiagnosisService(db).create(
        user_id=user_id,
        patient_id=patient_id,
        symptoms=symptoms,
        duration=duration,
        severity=severity.value,
        additional_notes=additional_notes or None,
        files=descriptors,
        llm_client=llm_client,
    )
    db.commit()

    return CreateDiagnosisResponse(
        diagnosis_id=record.id,
        ai_diagnosis=ai_diagnosis,
    )


@router.get(
    "/diagnosis",
    response_model=Union[List[DiagnosisRecord], DiagnosisRecord],
)
def list_diagnoses(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    diagnosis_id: Optional[str] = Query(None, alias="diagnosisId"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = DiagnosisService(db)

    if diagnosis_id:
        return DiagnosisRecord.model_validate(service.get_for_owner(diagnosis_id, user_id))
    if patient_id:
        return [
            DiagnosisRecord.model_validate(r)
            for r in service.list_for_patient(patient_id, user_id)
        ]
    raise ValidationError("Missing patientId or diagnosisId")


@router.get("/diagnosis/{diagnosis_id}", response_model=DiagnosisEnvelope)
def get_diagnosis(
    diagnosis_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DiagnosisEnvelope:
    record = DiagnosisService(db).get_for_owner(diagnosis_id, user_id)
    return DiagnosisEnvelope(diagnosis=DiagnosisRecord.model_validate(record))


@router.get("/pending-diagnoses", response_model=List[PendingDiagnosisRecord])
def pending_diagnoses(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
) -> List[PendingDiagnosisRecord]:
    return [
        _pending_record(record, patient)
        for record, patient in DiagnosisService(db).list_pending()
    ]


@router.get("/doctor/review/{diagnosis_id}", response_model=ReviewPageResponse)
def review_page(
    diagnosis_id: str,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
) -> ReviewPageResponse:
    """
    Data for the doctor's review page. Only records still waiting for
    review are served.
    """
    record, patient = DiagnosisService(db).get_pending_for_review(diagnosis_id)
    return ReviewPageResponse(diagnosis=_pending_record(record, patient))


@router.post("/doctor-review", response_model=SuccessResponse)
def submit_doctor_review(
    payload: DoctorReviewRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    DiagnosisService(db).review(
        diagnosis_id=payload.diagnosis_id,
        doctor_user_id=doctor.user_id,
        doctor_name=payload.doctor_name or doctor.name,
        diagnosis=payload.diagnosis,
        notes=payload.notes,
        recommendations=payload.recommendations,
        approved=payload.approved,
    )
    db.commit()
    return SuccessResponse()


@router.post("/patient-profile", response_model=SuccessResponse)
def save_patient_profile(
    payload: PatientProfileIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    patient_profiles(db).upsert(user_id, payload.model_dump(exclude_unset=True))
    db.commit()
    return SuccessResponse()


@router.get("/patient-profile", response_model=PatientProfileOut)
def get_patient_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PatientProfileOut:
    patient = patient_profiles(db).get(user_id)
    if patient is None:
        raise NotFoundError("Patient profile not found")
    return PatientProfileOut.model_validate(patient)


@router.post("/doctor-profile", response_model=SuccessResponse)
def save_doctor_profile(
    payload: DoctorProfileIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    doctor_profiles(db).upsert(user_id, payload.model_dump(exclude_unset=True))
    db.commit()
    return SuccessResponse()


@router.get("/doctor-profile", response_model=DoctorProfileOut)
def get_doctor_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DoctorProfileOut:
    doctor = doctor_profiles(db).get(user_id)
    if doctor is None:
        raise NotFoundError("Doctor profile not found")
    return DoctorProfileOut.model_validate(doctor)


@router.post("/set-role", response_model=SuccessResponse)
def set_role(
    payload: SetRoleRequest,
    user_id: str = Depends(get_current_user_id),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> SuccessResponse:
    identity.set_role(user_id, payload.role)
    return SuccessResponse()


@router.get(
    "/doctor/dashboard",
    response_model=Union[DoctorDashboardResponse, DashboardRedirect],
)
def doctor_dashboard(
    user_id: str = Query(..., alias="userId", min_length=1),
    db: Session = Depends(get_db),
):
    """
    Counts for the doctor's landing page, or where to send them when
    they have not filled in a profile yet.
    """
    doctor = doctor_profiles(db).get(user_id)
    if doctor is None:
        return DashboardRedirect(redirect="/doctor/profile")

    counts = DiagnosisService(db).dashboard_counts(user_id)
    return DoctorDashboardResponse(
        doctor=DoctorProfileOut.model_validate(doctor),
        pending_count=counts["pending_count"],
        reviewed_count=counts["reviewed_count"],
    )
