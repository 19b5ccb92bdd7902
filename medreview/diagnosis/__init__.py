# medreview/diagnosis/__init__.py
from .age import calculate_age
from .generator import build_diagnosis_prompt, generate_diagnosis, parse_ai_response
from .schema import AIDiagnosis, AIDiagnosisResult, DoctorReview, FileDescriptor
from .status import DiagnosisStatus, Gender, Severity

__all__ = [
    "calculate_age",
    "build_diagnosis_prompt",
    "generate_diagnosis",
    "parse_ai_response",
    "AIDiagnosis",
    "AIDiagnosisResult",
    "DoctorReview",
    "FileDescriptor",
    "DiagnosisStatus",
    "Gender",
    "Severity",
]
