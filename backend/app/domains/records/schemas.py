from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class MedicalRecordResponse(BaseModel):
    id: UUID
    title: str
    category: str
    report_date: str | None
    file_type: str
    content_type: str
    file_name: str | None
    status: str
    submitted_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class UploadRecordResponse(BaseModel):
    success: bool = True
    message: str = "Report uploaded successfully."
    id: UUID
    title: str
