from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status

from app.core.dependencies import CurrentUser, DbSession, PatientUser
from app.domains.cases.service import CaseService
from app.domains.records.schemas import MedicalRecordResponse, UploadRecordResponse
from app.domains.records.service import RecordPayloadError, RecordsService
from app.domains.users.roles import Roles

router = APIRouter()

ALLOWED_CONTENT_TYPES = ("application/pdf", "image/jpeg", "image/png", "image/webp", "image/heic")


@router.post("/upload", response_model=UploadRecordResponse, status_code=status.HTTP_201_CREATED)
async def upload_record(
    db: DbSession,
    current_user: PatientUser,
    file: UploadFile = File(..., description="Report as PDF or image"),
    title: str | None = Form(None),
    category: str | None = Form(None),
    report_date: str | None = Form(None, alias="reportDate"),
):
    content_type = file.content_type or ""
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF and image reports are accepted.",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided.")

    service = RecordsService(db)
    record = service.create_record(
        owner_id=UUID(current_user.sub),
        file_name=file.filename or "report",
        content_type=content_type,
        file_data=content,
        title=title,
        category=category,
        report_date=report_date,
    )
    return UploadRecordResponse(id=record.id, title=record.title)


@router.get("/", response_model=list[MedicalRecordResponse])
def list_my_records(db: DbSession, current_user: CurrentUser):
    service = RecordsService(db)
    return service.list_owned_records(UUID(current_user.sub))


def content_disposition(file_name: str) -> str:
    """Inline disposition with an ASCII fallback and the RFC 5987 UTF-8 name."""
    fallback = "".join(
        c if c.isascii() and c.isprintable() and c not in '"\\' else "_" for c in file_name
    )
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


@router.get("/{record_id}/file")
def view_record_file(record_id: UUID, db: DbSession, current_user: CurrentUser):
    """
    Serve a record's payload.

    Owners can always open their records. A doctor can open a record while
    its case waits in the doctor queue, or once that doctor reviewed it.
    """
    service = RecordsService(db)
    record = service.get_record(record_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")

    user_id = UUID(current_user.sub)
    is_owner = record.owner_id == user_id
    is_reviewing_doctor = current_user.role == Roles.DOCTOR and CaseService(db).is_record_visible_to_doctor(
        record_id, user_id
    )
    if not is_owner and not is_reviewing_doctor:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")

    try:
        payload, content_type = service.get_payload(record)
    except RecordPayloadError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not available")
    return Response(
        content=payload,
        media_type=content_type,
        headers={
            "Content-Disposition": content_disposition(record.file_name or record.title),
            "Cache-Control": "private, max-age=3600",
        },
    )
