"""
End-to-end case lifecycle against an in-memory database.

Runs submission, AI analysis and finalization through the real services and
SQL, with the model, the task queue and the notifier replaced by mocks.
"""
import pytest
from unittest.mock import MagicMock
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.domains.analysis.parser import FAILURE_SUMMARY
from app.domains.analysis.service import AnalysisService
from app.domains.cases.exceptions import CaseAlreadyFinalizedError, RecordOwnershipError
from app.domains.cases.models import CaseRecord, CaseStatus, ReviewCase
from app.domains.cases.service import CaseService
from app.domains.records.models import MedicalRecord, RecordStatus
from app.domains.users.models import User


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ).execution_options(schema_translate_map={"users": None, "records": None, "cases": None})
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def patient_id(session_factory):
    with session_factory() as db:
        user = User(email="jane@example.com", full_name="Jane Doe", role="patient")
        db.add(user)
        db.commit()
        return user.id


def add_record(session_factory, owner_id, title):
    with session_factory() as db:
        record = MedicalRecord(
            owner_id=owner_id,
            title=title,
            file_type="pdf",
            content_type="application/pdf",
            file_name=f"{title}.pdf",
            file_data=b"%PDF-1.7 " + title.encode(),
        )
        db.add(record)
        db.commit()
        return record.id


def record_statuses(session_factory, record_ids):
    with session_factory() as db:
        return [db.get(MedicalRecord, record_id).status for record_id in record_ids]


class TestCaseLifecycle:
    """Submission, analysis and finalization of one case."""

    def test_full_lifecycle(self, session_factory, patient_id):
        r1 = add_record(session_factory, patient_id, "cbc")
        r2 = add_record(session_factory, patient_id, "lipids")

        # Submission: dispatch only once the case is committed
        dispatched = []
        with session_factory() as db:
            def dispatcher(case_id):
                assert not db.in_transaction()
                dispatched.append(case_id)

            case_id = CaseService(db, dispatch_analysis=dispatcher).submit_review(patient_id, [r1, r2])

        assert dispatched == [case_id]
        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.status == CaseStatus.AI_PROCESSING.value
            assert review_case.record_ids == [r1, r2]
        assert record_statuses(session_factory, [r1, r2]) == [RecordStatus.UNDER_REVIEW.value] * 2

        # Analysis
        model_client = MagicMock()
        model_client.generate.return_value = '{"summary":"ok","riskLevel":"Low","markers":["Hb: 13"]}'
        notifier = MagicMock()
        with session_factory() as db:
            result = AnalysisService(db, model_client, notifier).process_case(case_id)

        assert result.risk_level == "Low"
        parts = model_client.generate.call_args[0][0]
        assert [p.data for p in parts] == [b"%PDF-1.7 cbc", b"%PDF-1.7 lipids"]
        event = notifier.notify_new_case.call_args[0][0]
        assert event.patient_name == "Jane Doe"

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.status == CaseStatus.PENDING_DOCTOR.value
            assert review_case.priority == "Normal"
            assert review_case.ai_summary == "ok"
            assert review_case.ai_risk_level == "Low"
            assert review_case.ai_extracted_markers == ["Hb: 13"]
            assert review_case.ai_processed_at is not None
            pending = CaseService(db).list_pending_cases()
            assert [c.id for c in pending] == [case_id]
            assert [r.title for r in CaseService(db).get_case_records(case_id)] == ["cbc", "lipids"]
            assert CaseService(db).is_record_visible_to_doctor(r1, uuid4()) is True

        # Finalization
        doctor_id = uuid4()
        with session_factory() as db:
            CaseService(db).submit_opinion(case_id, doctor_id, "Healthy", "Annual checkup")

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.status == CaseStatus.COMPLETED.value
            assert review_case.final_verdict == "Healthy"
            assert review_case.recommendations == "Annual checkup"
            assert review_case.doctor_id == doctor_id
            assert review_case.reviewed_at is not None
        assert record_statuses(session_factory, [r1, r2]) == [RecordStatus.COMPLETED.value] * 2

        # Only the reviewing doctor keeps access once the case is closed
        with session_factory() as db:
            assert CaseService(db).is_record_visible_to_doctor(r2, doctor_id) is True
            assert CaseService(db).is_record_visible_to_doctor(r2, uuid4()) is False

        # A second finalization attempt loses
        with session_factory() as db:
            with pytest.raises(CaseAlreadyFinalizedError):
                CaseService(db).submit_opinion(case_id, uuid4(), "Other", "Other")

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.final_verdict == "Healthy"
            assert review_case.doctor_id == doctor_id

    def test_rerun_of_analysis_is_a_no_op(self, session_factory, patient_id):
        record_id = add_record(session_factory, patient_id, "cbc")
        with session_factory() as db:
            case_id = CaseService(db, dispatch_analysis=MagicMock()).submit_review(patient_id, [record_id])

        model_client = MagicMock()
        model_client.generate.return_value = '{"summary":"first","riskLevel":"High","markers":[]}'
        with session_factory() as db:
            AnalysisService(db, model_client, MagicMock()).process_case(case_id)

        model_client.generate.return_value = '{"summary":"second","riskLevel":"Low","markers":[]}'
        with session_factory() as db:
            assert AnalysisService(db, model_client, MagicMock()).process_case(case_id) is None

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.ai_summary == "first"
            assert review_case.priority == "High"

    def test_failed_analysis_still_reaches_doctor_queue(self, session_factory, patient_id):
        record_id = add_record(session_factory, patient_id, "cbc")
        with session_factory() as db:
            case_id = CaseService(db, dispatch_analysis=MagicMock()).submit_review(patient_id, [record_id])

        model_client = MagicMock()
        model_client.generate.side_effect = TimeoutError("model timed out")
        with session_factory() as db:
            AnalysisService(db, model_client, MagicMock()).process_case(case_id)

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.status == CaseStatus.PENDING_DOCTOR.value
            assert review_case.ai_summary == FAILURE_SUMMARY
            assert review_case.ai_risk_level == "Unknown"
            assert review_case.priority == "Normal"

    def test_open_case_can_be_closed_before_analysis_finishes(self, session_factory, patient_id):
        record_id = add_record(session_factory, patient_id, "cbc")
        with session_factory() as db:
            case_id = CaseService(db, dispatch_analysis=MagicMock()).submit_review(patient_id, [record_id])

        doctor_id = uuid4()
        with session_factory() as db:
            CaseService(db).submit_opinion(case_id, doctor_id, "Healthy", "Annual checkup")

        # The late analysis run finds the case closed and writes nothing
        model_client = MagicMock()
        model_client.generate.return_value = '{"summary":"late","riskLevel":"High","markers":[]}'
        with session_factory() as db:
            assert AnalysisService(db, model_client, MagicMock()).process_case(case_id) is None

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.status == CaseStatus.COMPLETED.value
            assert review_case.final_verdict == "Healthy"
            assert review_case.ai_summary is None
        model_client.generate.assert_not_called()

    def test_record_outside_any_case_is_hidden_from_doctors(self, session_factory, patient_id):
        record_id = add_record(session_factory, patient_id, "private")

        with session_factory() as db:
            assert CaseService(db).is_record_visible_to_doctor(record_id, uuid4()) is False


class TestSubmissionAtomicity:
    def test_foreign_record_leaves_no_trace(self, session_factory, patient_id):
        own = add_record(session_factory, patient_id, "mine")
        foreign = add_record(session_factory, uuid4(), "theirs")
        dispatcher = MagicMock()

        with session_factory() as db:
            with pytest.raises(RecordOwnershipError):
                CaseService(db, dispatch_analysis=dispatcher).submit_review(patient_id, [own, foreign])

        dispatcher.assert_not_called()
        with session_factory() as db:
            assert db.query(ReviewCase).count() == 0
            assert db.query(CaseRecord).count() == 0
        assert record_statuses(session_factory, [own, foreign]) == [RecordStatus.UPLOADED.value] * 2

    def test_unknown_record_is_rejected(self, session_factory, patient_id):
        own = add_record(session_factory, patient_id, "mine")

        with session_factory() as db:
            with pytest.raises(RecordOwnershipError):
                CaseService(db, dispatch_analysis=MagicMock()).submit_review(patient_id, [own, uuid4()])

        assert record_statuses(session_factory, [own]) == [RecordStatus.UPLOADED.value]
