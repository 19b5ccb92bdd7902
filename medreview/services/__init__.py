# medreview/services/__init__.py
from .session import db_session, init_db
from .diagnosis_service import DiagnosisService, build_file_descriptors, patient_summary
from .profiles import ProfileService, doctor_profiles, patient_profiles

__all__ = [
    "db_session",
    "init_db",
    "DiagnosisService",
    "build_file_descriptors",
    "patient_summary",
    "ProfileService",
    "doctor_profiles",
    "patient_profiles",
]
