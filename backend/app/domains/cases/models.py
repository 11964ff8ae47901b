import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class CaseStatus(str, enum.Enum):
    AI_PROCESSING = "AI_PROCESSING"
    PENDING_DOCTOR = "PENDING_DOCTOR"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = (CaseStatus.COMPLETED.value, CaseStatus.CANCELLED.value)


class RiskLevel(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"


class CasePriority(str, enum.Enum):
    NORMAL = "Normal"
    HIGH = "High"


class ReviewCase(Base):
    """
    Unit of review: a patient's submitted records, the AI triage result and
    the doctor's verdict.

    The record membership is fixed at creation. Only status, the AI result,
    the verdict and doctor_id change afterwards.
    """
    __tablename__ = "review_cases"
    __table_args__ = {"schema": "cases"}

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    doctor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CaseStatus.AI_PROCESSING.value, index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default=CasePriority.NORMAL.value)

    # AI result (written once by the analysis worker)
    ai_summary: Mapped[str | None] = mapped_column(Text)
    ai_risk_level: Mapped[str | None] = mapped_column(String(10))
    ai_extracted_markers: Mapped[list[Any] | None] = mapped_column(JSON)
    ai_processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Doctor verdict (written once at finalization)
    final_verdict: Mapped[str | None] = mapped_column(Text)
    recommendations: Mapped[str | None] = mapped_column(Text)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    record_links: Mapped[list["CaseRecord"]] = relationship(
        "CaseRecord",
        back_populates="review_case",
        order_by="CaseRecord.position",
        cascade="all, delete-orphan",
    )

    @property
    def record_ids(self) -> list[uuid.UUID]:
        return [link.record_id for link in self.record_links]


class CaseRecord(Base):
    """Ordered, non-owning reference from a case to one of its records."""
    __tablename__ = "case_records"
    __table_args__ = {"schema": "cases"}

    case_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("cases.review_cases.id", ondelete="CASCADE"), primary_key=True
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("records.medical_records.id"), primary_key=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    review_case: Mapped["ReviewCase"] = relationship("ReviewCase", back_populates="record_links")
