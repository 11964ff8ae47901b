"""Two doctors finalizing the same case at the same time."""
import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import Base
from app.domains.cases.exceptions import CaseAlreadyFinalizedError
from app.domains.cases.models import CaseRecord, CasePriority, CaseStatus, ReviewCase
from app.domains.cases.service import CaseService
from app.domains.records.models import MedicalRecord, RecordStatus
from app.domains.users import models as users_models  # noqa: F401


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so each thread gets its own connection
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cases.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    ).execution_options(schema_translate_map={"users": None, "records": None, "cases": None})
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def pending_case(session_factory):
    with session_factory() as db:
        record = MedicalRecord(
            owner_id=uuid4(),
            title="cbc",
            file_type="pdf",
            content_type="application/pdf",
            file_data=b"%PDF",
            status=RecordStatus.UNDER_REVIEW.value,
        )
        db.add(record)
        db.flush()
        review_case = ReviewCase(
            patient_id=record.owner_id,
            status=CaseStatus.PENDING_DOCTOR.value,
            priority=CasePriority.NORMAL.value,
            ai_summary="ok",
            ai_risk_level="Low",
            ai_extracted_markers=[],
            record_links=[CaseRecord(record_id=record.id, position=0)],
        )
        db.add(review_case)
        db.commit()
        return review_case.id, record.id


class TestConcurrentFinalization:
    def test_exactly_one_doctor_wins(self, session_factory, pending_case):
        case_id, record_id = pending_case
        doctors = {uuid4(): "Healthy", uuid4(): "Mild anemia"}
        start = threading.Barrier(len(doctors))

        def finalize(doctor_id, verdict):
            with session_factory() as db:
                service = CaseService(db)
                start.wait(timeout=10)
                try:
                    service.submit_opinion(case_id, doctor_id, verdict, f"Follow-up for {verdict}")
                except CaseAlreadyFinalizedError:
                    return doctor_id, False
                return doctor_id, True

        with ThreadPoolExecutor(max_workers=len(doctors)) as pool:
            futures = [pool.submit(finalize, doctor_id, verdict) for doctor_id, verdict in doctors.items()]
            outcomes = dict(f.result(timeout=60) for f in futures)

        winners = [doctor_id for doctor_id, won in outcomes.items() if won]
        assert len(winners) == 1
        winner = winners[0]

        with session_factory() as db:
            review_case = db.get(ReviewCase, case_id)
            assert review_case.status == CaseStatus.COMPLETED.value
            assert review_case.doctor_id == winner
            assert review_case.final_verdict == doctors[winner]
            assert review_case.recommendations == f"Follow-up for {doctors[winner]}"
            assert db.get(MedicalRecord, record_id).status == RecordStatus.COMPLETED.value
