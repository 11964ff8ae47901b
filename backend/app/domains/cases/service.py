"""Service layer for the case lifecycle."""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import case as sql_case, func, or_
from sqlalchemy.orm import Session, selectinload

from app.domains.cases.exceptions import (
    CaseAccessError,
    CaseAlreadyFinalizedError,
    CaseNotFoundError,
    CaseStateError,
    CaseValidationError,
    RecordOwnershipError,
)
from app.domains.cases.models import (
    TERMINAL_STATUSES,
    CasePriority,
    CaseRecord,
    CaseStatus,
    ReviewCase,
)
from app.domains.notifications.ports import CaseCompletedEvent, Notifier, NullNotifier
from app.domains.records.models import MedicalRecord, RecordStatus
from app.workers.tasks import enqueue_case_analysis

logger = logging.getLogger(__name__)

AnalysisDispatcher = Callable[[UUID], None]


class CaseService:
    """
    Case lifecycle: submission, doctor finalization and administrative
    transitions.

    Submission and finalization each run in a single transaction; any error
    rolls back every write of that transaction.
    """

    def __init__(
        self,
        db: Session,
        dispatch_analysis: AnalysisDispatcher | None = None,
        notifier: Notifier | None = None,
    ):
        self.db = db
        self.dispatch_analysis = dispatch_analysis or enqueue_case_analysis
        self.notifier = notifier or NullNotifier()

    # --- Reads ---

    def get_case(self, case_id: UUID) -> ReviewCase | None:
        return (
            self.db.query(ReviewCase)
            .options(selectinload(ReviewCase.record_links))
            .filter(ReviewCase.id == case_id)
            .first()
        )

    def get_case_for_patient(self, case_id: UUID, patient_id: UUID) -> ReviewCase:
        review_case = self.get_case(case_id)
        if not review_case:
            raise CaseNotFoundError(case_id)
        if review_case.patient_id != patient_id:
            raise CaseAccessError("Unauthorized access.")
        return review_case

    def get_case_record_ids(self, case_id: UUID) -> list[UUID]:
        rows = (
            self.db.query(CaseRecord.record_id)
            .filter(CaseRecord.case_id == case_id)
            .order_by(CaseRecord.position)
            .all()
        )
        return [row[0] for row in rows]

    def get_case_records(self, case_id: UUID) -> list[MedicalRecord]:
        """Record metadata of a case in submission order. Payloads stay deferred."""
        return (
            self.db.query(MedicalRecord)
            .join(CaseRecord, CaseRecord.record_id == MedicalRecord.id)
            .filter(CaseRecord.case_id == case_id)
            .order_by(CaseRecord.position)
            .all()
        )

    def is_record_visible_to_doctor(self, record_id: UUID, doctor_id: UUID) -> bool:
        """True while the record's case waits in the doctor queue, or if this doctor reviewed it."""
        row = (
            self.db.query(CaseRecord.case_id)
            .join(ReviewCase, ReviewCase.id == CaseRecord.case_id)
            .filter(
                CaseRecord.record_id == record_id,
                or_(
                    ReviewCase.status == CaseStatus.PENDING_DOCTOR.value,
                    ReviewCase.doctor_id == doctor_id,
                ),
            )
            .first()
        )
        return row is not None

    def list_pending_cases(self, limit: int = 100) -> list[ReviewCase]:
        """Doctor queue: high priority first, then oldest first."""
        priority_rank = sql_case((ReviewCase.priority == CasePriority.HIGH.value, 0), else_=1)
        return (
            self.db.query(ReviewCase)
            .options(selectinload(ReviewCase.record_links))
            .filter(ReviewCase.status == CaseStatus.PENDING_DOCTOR.value)
            .order_by(priority_rank, ReviewCase.created_at)
            .limit(limit)
            .all()
        )

    # --- Submission ---

    def submit_review(self, patient_id: UUID, record_ids: list[UUID]) -> UUID:
        """
        Create a case from records the patient owns and start its analysis.

        The case (AI_PROCESSING) and the UNDER_REVIEW marks on its records are
        committed together. The analysis is dispatched only after that commit
        and is not awaited.

        Raises:
            CaseValidationError: If no record ids are given
            RecordOwnershipError: If any record is missing or owned by someone else
        """
        unique_ids = list(dict.fromkeys(record_ids))
        if not unique_ids:
            raise CaseValidationError("Please select at least one report.")

        case_id = uuid.uuid4()
        now = datetime.now(timezone.utc)

        try:
            owned_count = (
                self.db.query(func.count(MedicalRecord.id))
                .filter(
                    MedicalRecord.id.in_(unique_ids),
                    MedicalRecord.owner_id == patient_id,
                )
                .scalar()
            )
            if owned_count != len(unique_ids):
                raise RecordOwnershipError()

            review_case = ReviewCase(
                id=case_id,
                patient_id=patient_id,
                status=CaseStatus.AI_PROCESSING.value,
                priority=CasePriority.NORMAL.value,
                record_links=[
                    CaseRecord(record_id=record_id, position=position)
                    for position, record_id in enumerate(unique_ids)
                ],
            )
            self.db.add(review_case)

            self.db.query(MedicalRecord).filter(MedicalRecord.id.in_(unique_ids)).update(
                {
                    MedicalRecord.status: RecordStatus.UNDER_REVIEW.value,
                    MedicalRecord.submitted_at: now,
                },
                synchronize_session=False,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created case {case_id} for patient {patient_id} with {len(unique_ids)} records")
        self._dispatch(case_id)
        return case_id

    def reanalyze_case(self, case_id: UUID) -> None:
        """
        Dispatch the analysis again for a case still in AI_PROCESSING.

        Raises:
            CaseNotFoundError: If the case does not exist
            CaseStateError: If the case already left AI_PROCESSING
        """
        row = self.db.query(ReviewCase.status).filter(ReviewCase.id == case_id).first()
        if not row:
            raise CaseNotFoundError(case_id)
        if row[0] != CaseStatus.AI_PROCESSING.value:
            raise CaseStateError(case_id, row[0], "Only cases awaiting AI analysis can be re-analyzed.")
        self._dispatch(case_id)

    def _dispatch(self, case_id: UUID) -> None:
        try:
            self.dispatch_analysis(case_id)
        except Exception:
            logger.exception(f"Failed to queue analysis for case {case_id}; it stays AI_PROCESSING")

    # --- Finalization ---

    def submit_opinion(
        self,
        case_id: UUID,
        doctor_id: UUID,
        final_verdict: str,
        recommendations: str,
    ) -> None:
        """
        Record a doctor's verdict and close the case and its records.

        Raises:
            CaseValidationError: If verdict or recommendations are empty
            CaseAlreadyFinalizedError: If the case is missing or already closed
        """
        final_verdict = (final_verdict or "").strip()
        recommendations = (recommendations or "").strip()
        if not final_verdict or not recommendations:
            raise CaseValidationError("Please provide both a final verdict and clinical recommendations.")

        now = datetime.now(timezone.utc)

        try:
            # Any open case can be closed, AI_PROCESSING included; a late
            # analysis result is then dropped by the worker's own guard.
            updated = (
                self.db.query(ReviewCase)
                .filter(
                    ReviewCase.id == case_id,
                    ReviewCase.status.notin_(TERMINAL_STATUSES),
                )
                .update(
                    {
                        ReviewCase.doctor_id: doctor_id,
                        ReviewCase.final_verdict: final_verdict,
                        ReviewCase.recommendations: recommendations,
                        ReviewCase.reviewed_at: now,
                        ReviewCase.status: CaseStatus.COMPLETED.value,
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                raise CaseAlreadyFinalizedError(case_id)

            record_ids = self.get_case_record_ids(case_id)
            if record_ids:
                self.db.query(MedicalRecord).filter(MedicalRecord.id.in_(record_ids)).update(
                    {MedicalRecord.status: RecordStatus.COMPLETED.value},
                    synchronize_session=False,
                )

            patient_row = self.db.query(ReviewCase.patient_id).filter(ReviewCase.id == case_id).first()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Case {case_id} finalized by doctor {doctor_id}")
        if patient_row:
            self._notify_completed(CaseCompletedEvent(case_id=case_id, patient_id=patient_row[0]))

    def _notify_completed(self, event: CaseCompletedEvent) -> None:
        try:
            self.notifier.notify_case_completed(event)
        except Exception:
            logger.exception(f"Failed to notify patient about case {event.case_id}")

    # --- Administrative ---

    def cancel_case(self, case_id: UUID) -> None:
        """
        Move a non-terminal case to CANCELLED. Records are left as they are.

        Raises:
            CaseNotFoundError: If the case does not exist
            CaseStateError: If the case is already COMPLETED or CANCELLED
        """
        try:
            updated = (
                self.db.query(ReviewCase)
                .filter(
                    ReviewCase.id == case_id,
                    ReviewCase.status.notin_(TERMINAL_STATUSES),
                )
                .update({ReviewCase.status: CaseStatus.CANCELLED.value}, synchronize_session=False)
            )
            if not updated:
                row = self.db.query(ReviewCase.status).filter(ReviewCase.id == case_id).first()
                if not row:
                    raise CaseNotFoundError(case_id)
                raise CaseStateError(case_id, row[0], f"Case is already {row[0]}.")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Case {case_id} cancelled")
