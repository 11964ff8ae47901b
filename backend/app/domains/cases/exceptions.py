"""Errors raised by the case lifecycle."""
from uuid import UUID


class CaseError(Exception):
    """Base class for case lifecycle errors surfaced to the caller."""
    pass


class CaseValidationError(CaseError):
    """A required field is missing or empty. No state was changed."""
    pass


class RecordOwnershipError(CaseError):
    """A submitted record does not exist or belongs to someone else."""

    def __init__(self, message: str = "Unauthorized access to records."):
        super().__init__(message)


class CaseNotFoundError(CaseError):
    def __init__(self, case_id: UUID):
        self.case_id = case_id
        super().__init__(f"Case {case_id} not found")


class CaseAccessError(CaseError):
    """The case exists but belongs to another patient."""
    pass


class CaseAlreadyFinalizedError(CaseError):
    """The conditional finalization matched no case (missing or already closed)."""

    def __init__(self, case_id: UUID):
        self.case_id = case_id
        super().__init__(f"Case {case_id} not found or already finalized")


class CaseStateError(CaseError):
    """The requested transition is not allowed from the case's current status."""

    def __init__(self, case_id: UUID, current_status: str, message: str | None = None):
        self.case_id = case_id
        self.current_status = current_status
        super().__init__(message or f"Case {case_id} is {current_status}")
