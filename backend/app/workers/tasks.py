"""Background tasks of the case pipeline."""
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import SessionLocal
from app.domains.analysis.gemini_client import GeminiClient
from app.domains.analysis.service import AnalysisService
from app.domains.notifications.push import ExpoPushClient
from app.domains.notifications.realtime import RealtimeBroadcaster
from app.domains.notifications.service import NotificationService
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

ANALYZE_CASE_TASK = "cases.analyze_case"


@celery_app.task(
    name=ANALYZE_CASE_TASK,
    bind=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    soft_time_limit=settings.ANALYSIS_TASK_SOFT_TIME_LIMIT,
)
def analyze_case(self, case_id: str) -> dict:
    """
    Run the AI pass for one case in its own session.

    A soft time limit inside the model call is handled like any other
    analysis failure. Only a failure to write the fallback result escapes
    ``process_case``; those are retried, which is safe because results are
    only applied to cases still in AI_PROCESSING.
    """
    db = SessionLocal()
    try:
        with GeminiClient() as model_client, ExpoPushClient() as push_client:
            notifier = NotificationService(db, RealtimeBroadcaster(), push_client)
            service = AnalysisService(db, model_client, notifier)
            result = service.process_case(UUID(case_id))
    finally:
        db.close()

    if result is None:
        return {"ok": True, "case_id": case_id, "applied": False}
    return {
        "ok": True,
        "case_id": case_id,
        "applied": True,
        "risk_level": result.risk_level,
        "fallback": result.is_fallback,
    }


def enqueue_case_analysis(case_id: UUID) -> None:
    """Hand a committed case to the analysis worker without waiting for it."""
    async_result = analyze_case.delay(str(case_id))
    logger.info(f"Queued analysis of case {case_id} as task {async_result.id}")
