"""API routes for the case lifecycle."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.dependencies import AdminUser, CurrentUser, DbSession, DoctorUser, NotifierDep, PatientUser
from app.domains.cases.exceptions import (
    CaseAccessError,
    CaseAlreadyFinalizedError,
    CaseNotFoundError,
    CaseStateError,
    CaseValidationError,
    RecordOwnershipError,
)
from app.domains.cases.schemas import (
    ActionResponse,
    CaseListResponse,
    CaseResponse,
    SubmitOpinionRequest,
    SubmitReviewRequest,
    SubmitReviewResponse,
)
from app.domains.cases.service import AnalysisDispatcher, CaseService
from app.domains.users.roles import Roles
from app.workers.tasks import enqueue_case_analysis

logger = logging.getLogger(__name__)

router = APIRouter()


def get_analysis_dispatcher() -> AnalysisDispatcher:
    return enqueue_case_analysis


@router.post("/submit-review", response_model=SubmitReviewResponse)
def submit_review(
    request: SubmitReviewRequest,
    db: DbSession,
    current_user: PatientUser,
    dispatch_analysis: AnalysisDispatcher = Depends(get_analysis_dispatcher),
):
    """
    Submit owned records for a second opinion.

    Responds as soon as the case is committed; the AI analysis runs in the
    background.
    """
    service = CaseService(db, dispatch_analysis=dispatch_analysis)
    try:
        case_id = service.submit_review(UUID(current_user.sub), request.report_ids)
    except CaseValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except RecordOwnershipError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except Exception:
        logger.exception("Submit review failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to initiate review.",
        )

    return SubmitReviewResponse(case_id=case_id)


@router.get("/pending", response_model=CaseListResponse)
def list_pending_cases(
    db: DbSession,
    current_user: DoctorUser,
    limit: int = Query(100, ge=1, le=200),
):
    """Cases awaiting a doctor, high priority first."""
    service = CaseService(db)
    cases = service.list_pending_cases(limit=limit)
    return CaseListResponse(items=[CaseResponse.from_case(c) for c in cases], count=len(cases))


@router.post("/submit-opinion", response_model=ActionResponse)
def submit_opinion(
    request: SubmitOpinionRequest,
    db: DbSession,
    current_user: DoctorUser,
    notifier: NotifierDep,
):
    """Record the final verdict and close the case."""
    service = CaseService(db, notifier=notifier)
    try:
        service.submit_opinion(
            case_id=request.case_id,
            doctor_id=UUID(current_user.sub),
            final_verdict=request.final_verdict,
            recommendations=request.recommendations,
        )
    except CaseValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CaseAlreadyFinalizedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Case not found or already finalized.",
        )
    except Exception:
        logger.exception(f"Submit opinion failed for case {request.case_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during submission.",
        )

    return ActionResponse(message="Medical opinion submitted. The patient has been notified.")


@router.get("/{case_id}", response_model=CaseResponse)
def get_case(case_id: UUID, db: DbSession, current_user: CurrentUser):
    """Patients see their own cases; doctors and admins see any case. Includes record metadata."""
    service = CaseService(db)
    try:
        if current_user.role == Roles.PATIENT:
            review_case = service.get_case_for_patient(case_id, UUID(current_user.sub))
        elif current_user.role in (Roles.DOCTOR, Roles.ADMIN):
            review_case = service.get_case(case_id)
            if not review_case:
                raise CaseNotFoundError(case_id)
        else:
            raise CaseAccessError("Insufficient permissions")
    except CaseNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Case not found.")
    except CaseAccessError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    return CaseResponse.from_case(review_case, records=service.get_case_records(case_id))


@router.post("/{case_id}/cancel", response_model=ActionResponse)
def cancel_case(case_id: UUID, db: DbSession, current_user: AdminUser):
    service = CaseService(db)
    try:
        service.cancel_case(case_id)
    except CaseNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Case not found.")
    except CaseStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ActionResponse(message="Case cancelled.")


@router.post("/{case_id}/reanalyze", response_model=ActionResponse)
def reanalyze_case(
    case_id: UUID,
    db: DbSession,
    current_user: AdminUser,
    dispatch_analysis: AnalysisDispatcher = Depends(get_analysis_dispatcher),
):
    """Queue the AI analysis again for a case stuck in AI_PROCESSING."""
    service = CaseService(db, dispatch_analysis=dispatch_analysis)
    try:
        service.reanalyze_case(case_id)
    except CaseNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Case not found.")
    except CaseStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ActionResponse(message="Analysis queued.")
