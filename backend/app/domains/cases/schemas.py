from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.domains.cases.models import ReviewCase
from app.domains.records.models import MedicalRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Requests ---

class SubmitReviewRequest(CamelModel):
    report_ids: list[UUID] = Field(default_factory=list)


class SubmitOpinionRequest(CamelModel):
    """
    Doctor verdict payload.

    Older clients send ``diagnosis``/``summary`` instead of
    ``finalVerdict``/``recommendations``; both spellings are accepted here
    and trimmed, so the service only ever sees the canonical fields.
    Emptiness is checked by the service, before any transaction opens.
    """
    case_id: UUID
    final_verdict: str = ""
    recommendations: str = ""

    @model_validator(mode="before")
    @classmethod
    def normalize_field_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized = dict(data)
        verdict = _first_text(data, "finalVerdict", "final_verdict", "diagnosis")
        notes = _first_text(data, "recommendations", "summary")
        normalized.pop("diagnosis", None)
        normalized.pop("summary", None)
        normalized.pop("final_verdict", None)
        normalized["finalVerdict"] = verdict
        normalized["recommendations"] = notes
        return normalized


def _first_text(data: dict, *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


# --- Responses ---

class SubmitReviewResponse(CamelModel):
    success: bool = True
    message: str = "Case submitted successfully!"
    case_id: UUID


class ActionResponse(CamelModel):
    success: bool = True
    message: str


class AIAnalysisResponse(CamelModel):
    summary: str | None
    risk_level: str | None
    extracted_markers: list[str]
    processed_at: datetime | None


class DoctorOpinionResponse(CamelModel):
    final_verdict: str | None
    recommendations: str | None
    reviewed_at: datetime | None


class CaseRecordResponse(CamelModel):
    """Record metadata shown alongside a case. The payload is served by the records API."""
    id: UUID
    title: str
    category: str
    report_date: str | None
    file_type: str
    content_type: str
    status: str

    @classmethod
    def from_record(cls, record: MedicalRecord) -> "CaseRecordResponse":
        return cls(
            id=record.id,
            title=record.title,
            category=record.category,
            report_date=record.report_date,
            file_type=record.file_type,
            content_type=record.content_type,
            status=record.status,
        )


class CaseResponse(CamelModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID | None
    record_ids: list[UUID]
    records: list[CaseRecordResponse] = Field(default_factory=list)
    status: str
    priority: str
    ai_analysis: AIAnalysisResponse | None
    doctor_opinion: DoctorOpinionResponse | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_case(
        cls,
        review_case: ReviewCase,
        records: list[MedicalRecord] | None = None,
    ) -> "CaseResponse":
        ai_analysis = None
        if review_case.ai_summary is not None:
            ai_analysis = AIAnalysisResponse(
                summary=review_case.ai_summary,
                risk_level=review_case.ai_risk_level,
                extracted_markers=list(review_case.ai_extracted_markers or []),
                processed_at=review_case.ai_processed_at,
            )

        doctor_opinion = None
        if review_case.final_verdict is not None:
            doctor_opinion = DoctorOpinionResponse(
                final_verdict=review_case.final_verdict,
                recommendations=review_case.recommendations,
                reviewed_at=review_case.reviewed_at,
            )

        return cls(
            id=review_case.id,
            patient_id=review_case.patient_id,
            doctor_id=review_case.doctor_id,
            record_ids=review_case.record_ids,
            records=[CaseRecordResponse.from_record(r) for r in records or []],
            status=review_case.status,
            priority=review_case.priority,
            ai_analysis=ai_analysis,
            doctor_opinion=doctor_opinion,
            created_at=review_case.created_at,
            updated_at=review_case.updated_at,
        )


class CaseListResponse(CamelModel):
    items: list[CaseResponse]
    count: int
