# medreview/diagnosis/status.py
from enum import Enum


class DiagnosisStatus(str, Enum):
    # PENDING and COMPLETED are declared but never assigned by any handler.
    PENDING = "pending"
    AI_PROCESSED = "ai-processed"
    DOCTOR_REVIEWED = "doctor-reviewed"
    COMPLETED = "completed"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
