"""Interpretation of raw model output as a triage result."""
import json
import logging
from dataclasses import dataclass, field

from app.domains.cases.models import CasePriority, RiskLevel

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "AI analysis completed. Please review documents for specific details."
FALLBACK_MARKERS = ["Manual Extraction Required"]
FAILURE_SUMMARY = "AI Analysis failed to process. Manual review required."

ALLOWED_RISK_LEVELS = (RiskLevel.LOW.value, RiskLevel.MEDIUM.value, RiskLevel.HIGH.value)


class AIResponseFormatError(ValueError):
    """Model output is not a JSON object of the expected shape."""
    pass


@dataclass
class AIResult:
    summary: str
    risk_level: str
    markers: list[str] = field(default_factory=list)
    is_fallback: bool = False

    @property
    def priority(self) -> str:
        return priority_for(self.risk_level)


def priority_for(risk_level: str | None) -> str:
    """High priority only for an exact ``High`` risk level."""
    return CasePriority.HIGH.value if risk_level == RiskLevel.HIGH.value else CasePriority.NORMAL.value


def fallback_result() -> AIResult:
    """Safe default used when the model answered but the answer is unusable."""
    return AIResult(
        summary=FALLBACK_SUMMARY,
        risk_level=RiskLevel.MEDIUM.value,
        markers=list(FALLBACK_MARKERS),
        is_fallback=True,
    )


def failure_result() -> AIResult:
    """Result written when the analysis itself could not run."""
    return AIResult(
        summary=FAILURE_SUMMARY,
        risk_level=RiskLevel.UNKNOWN.value,
        markers=[],
        is_fallback=True,
    )


def extract_json_object(text: str) -> dict:
    """
    Parse the span from the first ``{`` to the last ``}`` as JSON.

    Raises:
        AIResponseFormatError: If there is no such span or it is not a JSON object
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise AIResponseFormatError("No JSON found")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise AIResponseFormatError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIResponseFormatError("JSON is not an object")
    return data


def validate_result(data: dict) -> AIResult:
    """
    Check the parsed payload field by field.

    Raises:
        AIResponseFormatError: On any missing field or wrong type
    """
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise AIResponseFormatError("summary must be a non-empty string")

    risk_level = data.get("riskLevel")
    if risk_level not in ALLOWED_RISK_LEVELS:
        raise AIResponseFormatError(f"riskLevel must be one of {ALLOWED_RISK_LEVELS}, got {risk_level!r}")

    markers = data.get("markers")
    if not isinstance(markers, list) or not all(isinstance(m, str) for m in markers):
        raise AIResponseFormatError("markers must be a list of strings")

    return AIResult(summary=summary.strip(), risk_level=risk_level, markers=markers)


def parse_ai_response(text: str | None) -> AIResult:
    """Turn raw model text into a result, falling back on any format problem."""
    try:
        if not isinstance(text, str):
            raise AIResponseFormatError("Response is not text")
        return validate_result(extract_json_object(text))
    except AIResponseFormatError as e:
        logger.warning(f"AI parsing error, using fallback: {e}")
        return fallback_result()
