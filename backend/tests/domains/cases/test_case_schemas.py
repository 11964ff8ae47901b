"""Tests for case request and response models."""
from datetime import datetime, timezone
from uuid import uuid4

from app.domains.cases.models import CaseRecord, ReviewCase
from app.domains.cases.schemas import CaseResponse, SubmitOpinionRequest, SubmitReviewRequest


class TestSubmitOpinionRequest:
    def test_canonical_fields(self):
        case_id = uuid4()

        request = SubmitOpinionRequest.model_validate(
            {"caseId": str(case_id), "finalVerdict": "Healthy", "recommendations": "Annual checkup"}
        )

        assert request.case_id == case_id
        assert request.final_verdict == "Healthy"
        assert request.recommendations == "Annual checkup"

    def test_legacy_field_names(self):
        request = SubmitOpinionRequest.model_validate(
            {"caseId": str(uuid4()), "diagnosis": "Mild anemia", "summary": "Iron supplements"}
        )

        assert request.final_verdict == "Mild anemia"
        assert request.recommendations == "Iron supplements"

    def test_canonical_name_wins_over_legacy(self):
        request = SubmitOpinionRequest.model_validate(
            {"caseId": str(uuid4()), "finalVerdict": "Healthy", "diagnosis": "Ignored"}
        )

        assert request.final_verdict == "Healthy"

    def test_values_are_trimmed(self):
        request = SubmitOpinionRequest.model_validate(
            {"caseId": str(uuid4()), "finalVerdict": "  Healthy\n", "recommendations": "\tRest  "}
        )

        assert request.final_verdict == "Healthy"
        assert request.recommendations == "Rest"

    def test_missing_fields_default_to_empty(self):
        request = SubmitOpinionRequest.model_validate({"caseId": str(uuid4())})

        assert request.final_verdict == ""
        assert request.recommendations == ""


class TestSubmitReviewRequest:
    def test_accepts_camel_case_report_ids(self):
        ids = [uuid4(), uuid4()]

        request = SubmitReviewRequest.model_validate({"reportIds": [str(i) for i in ids]})

        assert request.report_ids == ids


class TestCaseResponse:
    def test_from_fresh_case_has_no_analysis_or_opinion(self):
        record_id = uuid4()
        review_case = ReviewCase(
            id=uuid4(),
            patient_id=uuid4(),
            status="AI_PROCESSING",
            priority="Normal",
            record_links=[CaseRecord(record_id=record_id, position=0)],
        )

        response = CaseResponse.from_case(review_case)

        assert response.record_ids == [record_id]
        assert response.ai_analysis is None
        assert response.doctor_opinion is None

    def test_serializes_with_camel_case_keys(self):
        review_case = ReviewCase(
            id=uuid4(),
            patient_id=uuid4(),
            status="PENDING_DOCTOR",
            priority="High",
            ai_summary="Critical potassium.",
            ai_risk_level="High",
            ai_extracted_markers=["K: 6.9"],
            ai_processed_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
            record_links=[],
        )

        body = CaseResponse.from_case(review_case).model_dump(by_alias=True)

        assert body["aiAnalysis"]["riskLevel"] == "High"
        assert body["aiAnalysis"]["extractedMarkers"] == ["K: 6.9"]
        assert body["doctorOpinion"] is None
        assert body["recordIds"] == []
