"""Service layer for the record store."""
import logging
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.domains.records.models import MedicalRecord, RecordStatus

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General"
FETCH_TIMEOUT = 30.0  # seconds


class RecordPayloadError(Exception):
    """Raised when a record has no retrievable binary payload."""
    pass


def derive_file_type(content_type: str) -> str:
    return "image" if content_type.startswith("image/") else "pdf"


class RecordsService:
    def __init__(self, db: Session):
        self.db = db

    def get_record(self, record_id: UUID) -> MedicalRecord | None:
        return self.db.query(MedicalRecord).filter(MedicalRecord.id == record_id).first()

    def list_owned_records(self, owner_id: UUID, limit: int = 50) -> list[MedicalRecord]:
        return (
            self.db.query(MedicalRecord)
            .filter(MedicalRecord.owner_id == owner_id)
            .order_by(MedicalRecord.created_at.desc())
            .limit(limit)
            .all()
        )

    def create_record(
        self,
        owner_id: UUID,
        file_name: str,
        content_type: str,
        file_data: bytes,
        title: str | None = None,
        category: str | None = None,
        report_date: str | None = None,
    ) -> MedicalRecord:
        """Store an uploaded report with status UPLOADED."""
        db_record = MedicalRecord(
            owner_id=owner_id,
            title=(title or file_name).strip(),
            category=(category or "").strip() or DEFAULT_CATEGORY,
            report_date=report_date,
            file_type=derive_file_type(content_type),
            content_type=content_type,
            file_name=file_name,
            file_data=file_data,
            status=RecordStatus.UPLOADED.value,
        )
        self.db.add(db_record)
        self.db.commit()
        self.db.refresh(db_record)
        logger.info(f"Stored record {db_record.id} for owner {owner_id} ({content_type})")
        return db_record

    def get_payload(self, record: MedicalRecord) -> tuple[bytes, str]:
        """
        Return the binary payload and content type of a record.

        Inline data wins; otherwise the external storage reference is fetched.

        Raises:
            RecordPayloadError: If neither source yields any bytes
        """
        if record.file_data:
            return record.file_data, record.content_type

        if record.file_url:
            try:
                response = httpx.get(record.file_url, timeout=FETCH_TIMEOUT)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise RecordPayloadError(f"Could not fetch payload for record {record.id}: {e}") from e
            return response.content, record.content_type

        raise RecordPayloadError(f"Record {record.id} has no payload")
