# medreview/diagnosis/schema.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Snake_case in Python and in stored JSON, camelCase on the wire.
    Input is accepted in either form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AIDiagnosisResult(CamelModel):
    """
    What the text-generation service must give back for one request.
    """

    diagnosis: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0, le=100, description="Percentage, 0-100")
    possible_conditions: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    # Allow extra fields from the LLM without crashing
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AIDiagnosis(AIDiagnosisResult):
    timestamp: datetime


class FileDescriptor(CamelModel):
    name: str
    type: Optional[str] = None
    url: str


class DoctorReview(CamelModel):
    doctor_id: str
    doctor_name: str
    diagnosis: str
    notes: str
    recommendations: List[str] = Field(default_factory=list)
    approved: bool
    timestamp: datetime
