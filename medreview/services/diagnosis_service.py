# medreview/services/diagnosis_service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from medreview.config import get_settings
from medreview.diagnosis import (
    AIDiagnosis,
    DiagnosisStatus,
    DoctorReview,
    FileDescriptor,
    calculate_age,
    generate_diagnosis,
)
from medreview.errors import ConflictError, NotFoundError, UnauthorizedError
from medreview.llm import LLMClient
from medreview.models import DiagnosisRequest, Patient

logger = logging.getLogger(__name__)

# Same answer for "does not exist" and "not yours".
NOT_ACCESSIBLE_MESSAGE = "Diagnosis not found or not accessible"


def patient_summary(patient: Optional[Patient]) -> Optional[Dict[str, object]]:
    """Reduced patient view shown to doctors."""
    if patient is None:
        return None
    return {
        "name": patient.name,
        "gender": patient.gender,
        "age": calculate_age(patient.date_of_birth),
    }


def build_file_descriptors(
    uploads: Sequence[Tuple[str, Optional[str]]],
    url_prefix: Optional[str] = None,
) -> List[FileDescriptor]:
    """
    Record attachment names only. Nothing is uploaded; the url is a
    placeholder under url_prefix.
    """
    prefix = (url_prefix or get_settings().upload_url_prefix).rstrip("/")
    return [
        FileDescriptor(name=name, type=content_type, url=f"{prefix}/{name}")
        for name, content_type in uploads
        if name
    ]


class DiagnosisService:
    """
    Lifecycle of a DiagnosisRequest:
      - created once, already holding the AI diagnosis (status ai-processed)
      - reviewed once by a doctor (status doctor-reviewed)
    """

    def __init__(self, session: Session):
        self.session = session

    def _owned_patient(self, patient_id: str, user_id: str) -> Patient:
        patient = self.session.get(Patient, patient_id)
        if patient is None or patient.user_id != user_id:
            raise UnauthorizedError()
        return patient

    def create(
        self,
        user_id: str,
        patient_id: str,
        symptoms: str,
        duration: str,
        severity: str,
        llm_client: LLMClient,
        additional_notes: Optional[str] = None,
        files: Sequence[FileDescriptor] = (),
    ) -> Tuple[DiagnosisRequest, AIDiagnosis]:
        """
        Generate the AI diagnosis, then insert the record.

        If generation fails nothing is written. If the insert fails after a
        successful generation the AI result is lost; the caller resubmits.
        """
        patient = self._owned_patient(patient_id, user_id)

        result = generate_diagnosis(
            llm_client,
            symptoms=symptoms,
            duration=duration,
            severity=severity,
            additional_notes=additional_notes,
            medical_history=patient.medical_history,
        )
        now = datetime.now(timezone.utc)
        ai_diagnosis = AIDiagnosis(**result.model_dump(), timestamp=now)

        record = DiagnosisRequest(
            patient_id=patient.id,
            symptoms=symptoms,
            duration=duration,
            severity=str(getattr(severity, "value", severity)),
            additional_notes=additional_notes,
            files=[f.model_dump(mode="json") for f in files],
            ai_diagnosis=ai_diagnosis.model_dump(mode="json"),
            status=DiagnosisStatus.AI_PROCESSED.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(record)
        self.session.flush()  # to get record.id

        logger.info("Created diagnosis %s for patient %s", record.id, patient.id)
        return record, ai_diagnosis

    def get_for_owner(self, diagnosis_id: str, user_id: str) -> DiagnosisRequest:
        record = self.session.get(DiagnosisRequest, diagnosis_id)
        if record is None:
            raise UnauthorizedError(NOT_ACCESSIBLE_MESSAGE)

        patient = self.session.get(Patient, record.patient_id)
        if patient is None or patient.user_id != user_id:
            raise UnauthorizedError(NOT_ACCESSIBLE_MESSAGE)
        return record

    def list_for_patient(self, patient_id: str, user_id: str) -> List[DiagnosisRequest]:
        self._owned_patient(patient_id, user_id)
        stmt = (
            select(DiagnosisRequest)
            .where(DiagnosisRequest.patient_id == patient_id)
            .order_by(DiagnosisRequest.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def list_pending(self) -> List[Tuple[DiagnosisRequest, Optional[Dict[str, object]]]]:
        stmt = (
            select(DiagnosisRequest)
            .where(DiagnosisRequest.status == DiagnosisStatus.AI_PROCESSED.value)
            .order_by(DiagnosisRequest.created_at.desc())
        )
        records = list(self.session.scalars(stmt))

        patient_ids = {r.patient_id for r in records}
        patients: Dict[str, Patient] = {}
        if patient_ids:
            rows = self.session.scalars(select(Patient).where(Patient.id.in_(patient_ids)))
            patients = {p.id: p for p in rows}

        return [(r, patient_summary(patients.get(r.patient_id))) for r in records]

    def get_pending_for_review(
        self, diagnosis_id: str
    ) -> Tuple[DiagnosisRequest, Optional[Dict[str, object]]]:
        record = self.session.get(DiagnosisRequest, diagnosis_id)
        if record is None or record.status != DiagnosisStatus.AI_PROCESSED.value:
            raise NotFoundError("Diagnosis not found or already reviewed")
        return record, patient_summary(self.session.get(Patient, record.patient_id))

    def review(
        self,
        diagnosis_id: str,
        doctor_user_id: str,
        doctor_name: str,
        diagnosis: str,
        notes: str,
        recommendations: Sequence[str],
        approved: bool,
    ) -> DoctorReview:
        """
        Attach the doctor's review in one guarded UPDATE.

        Only records still in ai-processed are touched, so of two doctors
        reviewing at once the first wins and the second gets ConflictError.
        """
        now = datetime.now(timezone.utc)
        review = DoctorReview(
            doctor_id=doctor_user_id,
            doctor_name=doctor_name,
            diagnosis=diagnosis,
            notes=notes,
            recommendations=list(recommendations),
            approved=approved,
            timestamp=now,
        )

        stmt = (
            update(DiagnosisRequest)
            .where(
                DiagnosisRequest.id == diagnosis_id,
                DiagnosisRequest.status == DiagnosisStatus.AI_PROCESSED.value,
            )
            .values(
                doctor_review=review.model_dump(mode="json"),
                status=DiagnosisStatus.DOCTOR_REVIEWED.value,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        if result.rowcount == 0:
            exists = self.session.scalar(
                select(func.count()).select_from(DiagnosisRequest).where(
                    DiagnosisRequest.id == diagnosis_id
                )
            )
            if not exists:
                raise NotFoundError("Diagnosis not found")
            raise ConflictError("Diagnosis has already been reviewed")

        logger.info("Doctor %s reviewed diagnosis %s", doctor_user_id, diagnosis_id)
        return review

    def dashboard_counts(self, doctor_user_id: str) -> Dict[str, int]:
        pending = self.session.scalar(
            select(func.count()).select_from(DiagnosisRequest).where(
                DiagnosisRequest.status == DiagnosisStatus.AI_PROCESSED.value
            )
        )
        reviewed = self.session.scalar(
            select(func.count()).select_from(DiagnosisRequest).where(
                DiagnosisRequest.doctor_review["doctor_id"].as_string() == doctor_user_id
            )
        )
        return {"pending_count": pending or 0, "reviewed_count": reviewed or 0}
