"""AI triage of submitted cases."""
import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session, undefer

from app.domains.analysis.gemini_client import ContentPart, GeminiClient
from app.domains.analysis.parser import AIResult, failure_result, parse_ai_response
from app.domains.cases.models import CaseRecord, CaseStatus, ReviewCase
from app.domains.notifications.ports import NewCaseEvent, Notifier
from app.domains.records.models import MedicalRecord
from app.domains.records.service import RecordsService
from app.domains.users.service import UsersService

logger = logging.getLogger(__name__)

ANALYSIS_INSTRUCTION = """
SYSTEM: You are a Medical Data Assistant.
TASK: Analyze the attached reports.

STRICT OUTPUT RULES:
- Return ONLY a JSON object.
- summary: 2-sentence overview of key findings.
- riskLevel: Low, Medium, or High.
- markers: List key lab values found (e.g. "HbA1c: 6.5%").

STRUCTURE:
{
  "summary": "...",
  "riskLevel": "...",
  "markers": ["...", "..."]
}
"""


class AnalysisService:
    """
    Runs the AI pass over a case and moves it to the doctor queue.

    ``process_case`` is the supervised entry point: whatever happens while
    loading records, calling the model or parsing its answer, the case
    leaves AI_PROCESSING and doctors are notified.
    """

    def __init__(self, db: Session, model_client: GeminiClient, notifier: Notifier):
        self.db = db
        self.model_client = model_client
        self.notifier = notifier
        self.records_service = RecordsService(db)
        self.users_service = UsersService(db)

    def process_case(self, case_id: UUID) -> AIResult | None:
        """
        Analyze a case, forcing it to PENDING_DOCTOR on any failure.

        Returns:
            The result written to the case, or None if nothing was written
            (case missing, without records, or already past AI_PROCESSING)

        Raises:
            SQLAlchemyError: Only if the fallback write itself fails
        """
        try:
            return self.analyze_case(case_id)
        except Exception:
            logger.exception(f"AI analysis critical failure for case {case_id}")
            self.db.rollback()

        result = failure_result()
        if self._apply_result(case_id, result):
            logger.warning(f"Case {case_id} forced to PENDING_DOCTOR after failed analysis")
            self._notify_doctors(case_id, result)
            return result
        return None

    def analyze_case(self, case_id: UUID) -> AIResult | None:
        logger.info(f"Starting AI analysis for case {case_id}")

        review_case = self.db.query(ReviewCase).filter(ReviewCase.id == case_id).first()
        if not review_case:
            logger.error(f"Case {case_id} not found, nothing to analyze")
            return None
        if review_case.status != CaseStatus.AI_PROCESSING.value:
            logger.info(f"Case {case_id} is {review_case.status}, skipping analysis")
            return None
        patient_id = review_case.patient_id

        records = self._load_records(case_id)
        if not records:
            logger.error(f"No records found for case {case_id}")
            return None

        parts = [ContentPart(*self.records_service.get_payload(record)) for record in records]
        text = self.model_client.generate(parts, ANALYSIS_INSTRUCTION)
        result = parse_ai_response(text)

        if not self._apply_result(case_id, result):
            logger.info(f"Case {case_id} was advanced by another run, discarding result")
            return None

        logger.info(f"Case {case_id} is now PENDING_DOCTOR (risk={result.risk_level})")
        self._notify_doctors(case_id, result, patient_id=patient_id)
        return result

    def _load_records(self, case_id: UUID) -> list[MedicalRecord]:
        """Case records in submission order, payloads included."""
        return (
            self.db.query(MedicalRecord)
            .options(undefer(MedicalRecord.file_data))
            .join(CaseRecord, CaseRecord.record_id == MedicalRecord.id)
            .filter(CaseRecord.case_id == case_id)
            .order_by(CaseRecord.position)
            .all()
        )

    def _apply_result(self, case_id: UUID, result: AIResult) -> bool:
        """Write the result and leave AI_PROCESSING. Only the first writer wins."""
        updated = (
            self.db.query(ReviewCase)
            .filter(
                ReviewCase.id == case_id,
                ReviewCase.status == CaseStatus.AI_PROCESSING.value,
            )
            .update(
                {
                    ReviewCase.ai_summary: result.summary,
                    ReviewCase.ai_risk_level: result.risk_level,
                    ReviewCase.ai_extracted_markers: result.markers,
                    ReviewCase.ai_processed_at: datetime.now(timezone.utc),
                    ReviewCase.status: CaseStatus.PENDING_DOCTOR.value,
                    ReviewCase.priority: result.priority,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return bool(updated)

    def _notify_doctors(self, case_id: UUID, result: AIResult, patient_id: UUID | None = None) -> None:
        try:
            if patient_id is None:
                row = self.db.query(ReviewCase.patient_id).filter(ReviewCase.id == case_id).first()
                patient_id = row[0] if row else None
            patient_name = self.users_service.get_display_name(patient_id) if patient_id else None
            self.notifier.notify_new_case(
                NewCaseEvent(
                    case_id=case_id,
                    risk_level=result.risk_level,
                    summary=result.summary,
                    patient_name=patient_name,
                )
            )
        except Exception:
            logger.exception(f"Failed to notify doctors about case {case_id}")
