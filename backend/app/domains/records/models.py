import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, LargeBinary, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, deferred, mapped_column

from app.core.database import Base


class RecordStatus(str, enum.Enum):
    UPLOADED = "UPLOADED"
    UNDER_REVIEW = "UNDER_REVIEW"
    COMPLETED = "COMPLETED"


class MedicalRecord(Base):
    """One uploaded report (PDF or image) owned by a patient."""
    __tablename__ = "medical_records"
    __table_args__ = {"schema": "records"}

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    report_date: Mapped[str | None] = mapped_column(String(50))  # free text, as entered by the patient
    file_type: Mapped[str] = mapped_column(String(10), nullable=False)  # pdf, image
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(255))
    # Inline payload (local storage mode); heavy, so only loaded on access
    file_data: Mapped[bytes | None] = deferred(mapped_column(LargeBinary, nullable=True))
    # External storage reference (object storage mode)
    file_url: Mapped[str | None] = mapped_column(String(1000))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RecordStatus.UPLOADED.value, index=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
