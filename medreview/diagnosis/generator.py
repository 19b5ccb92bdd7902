# medreview/diagnosis/generator.py
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from medreview.diagnosis.schema import AIDiagnosisResult
from medreview.diagnosis.status import Severity
from medreview.errors import (
    ConfigurationError,
    UpstreamServiceError,
    ValidationError,
)
from medreview.llm import LLMClient

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

PARSE_FAILURE_MESSAGE = "Failed to parse AI diagnosis response"
GENERATION_FAILURE_MESSAGE = "Failed to generate AI diagnosis"


def build_diagnosis_prompt(
    symptoms: str,
    duration: str,
    severity: str,
    additional_notes: Optional[str] = None,
    medical_history: Optional[str] = None,
) -> str:
    """
    Fixed instruction template. Optional lines are left out entirely
    when the patient did not provide them.
    """
    lines = [
        "As a medical AI assistant, analyze the following patient information "
        "and provide a preliminary diagnosis:",
        "",
        f"Symptoms: {symptoms}",
        f"Duration: {duration}",
        f"Severity: {severity}",
    ]
    if additional_notes:
        lines.append(f"Additional Notes: {additional_notes}")
    if medical_history:
        lines.append(f"Medical History: {medical_history}")

    lines += [
        "",
        "Please provide:",
        "1. A preliminary diagnosis",
        "2. Confidence level (as a percentage)",
        "3. List of possible conditions",
        "4. Recommendations for the patient",
        "",
        "Format your response as a JSON object with the following structure:",
        "{",
        '  "diagnosis": "string",',
        '  "confidence": number,',
        '  "possibleConditions": ["string"],',
        '  "recommendations": ["string"]',
        "}",
        "",
        "IMPORTANT: Return ONLY the JSON object without any code blocks, markers, "
        "or additional explanations. Do not wrap the JSON in markdown code blocks "
        "like ```json or ```. Just return the raw JSON.",
    ]
    return "\n".join(lines)


def strip_code_fences(raw: str) -> str:
    """Remove every ``` / ```json marker, wherever it appears."""
    return _FENCE_RE.sub("", raw).strip()


def parse_ai_response(raw: str) -> Dict[str, Any]:
    """
    Turn the model's text into a dict.

    1. strip markdown fences and parse what is left
    2. failing that, parse the widest {...} span of the original text
    3. failing that, raise UpstreamServiceError
    """
    text = strip_code_fences(raw)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("AI response is not plain JSON, looking for an embedded object")
        parsed = None
        match = _OBJECT_RE.search(raw)
        if match:
            try:
                parsed = json.loads(match.group(0))
            except json.JSONDecodeError:
                logger.warning("Embedded object in AI response is not valid JSON either")

    if not isinstance(parsed, dict):
        logger.debug("Unparseable AI response: %r", raw)
        raise UpstreamServiceError(PARSE_FAILURE_MESSAGE)
    return parsed


def _require_text(name: str, value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def generate_diagnosis(
    llm_client: LLMClient,
    symptoms: str,
    duration: str,
    severity: str,
    additional_notes: Optional[str] = None,
    medical_history: Optional[str] = None,
    temperature: Optional[float] = None,
) -> AIDiagnosisResult:
    """
    One round-trip to the text-generation service.

    No retries and no caching: a service error, unparseable text or a
    payload of the wrong shape all end as the same UpstreamServiceError.
    """
    symptoms = _require_text("symptoms", symptoms)
    duration = _require_text("duration", duration)
    try:
        severity = Severity(severity).value
    except ValueError:
        raise ValidationError(f"Invalid severity: {severity!r}")

    prompt = build_diagnosis_prompt(
        symptoms,
        duration,
        severity,
        additional_notes=additional_notes,
        medical_history=medical_history,
    )
    messages: List[Dict[str, str]] = [{"role": "user", "content": prompt}]

    try:
        raw = llm_client.chat(messages, temperature=temperature)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error("Text-generation request failed: %s", e)
        raise UpstreamServiceError(GENERATION_FAILURE_MESSAGE) from e

    logger.debug("Raw AI response: %s", raw)
    try:
        data = parse_ai_response(raw)
        return AIDiagnosisResult.model_validate(data)
    except UpstreamServiceError as e:
        raise UpstreamServiceError(GENERATION_FAILURE_MESSAGE) from e
    except PydanticValidationError as e:
        logger.warning("AI response has the wrong shape: %s", e)
        raise UpstreamServiceError(GENERATION_FAILURE_MESSAGE) from e
