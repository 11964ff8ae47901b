"""Notification port used by the case pipeline.

The analysis worker and the finalization flow receive a ``Notifier``
explicitly. Implementations must not raise: delivery is best effort and
never feeds back into the case state.
"""
from dataclasses import dataclass
from typing import Any
from uuid import UUID


@dataclass
class NewCaseEvent:
    """A case reached the doctor queue."""
    case_id: UUID
    risk_level: str
    summary: str
    patient_name: str | None = None

    def payload(self) -> dict[str, Any]:
        return {
            "caseId": str(self.case_id),
            "patientName": self.patient_name or "New Patient",
            "riskLevel": self.risk_level,
            "summary": self.summary,
        }


@dataclass
class CaseCompletedEvent:
    """A doctor closed the case."""
    case_id: UUID
    patient_id: UUID

    def payload(self) -> dict[str, Any]:
        return {"caseId": str(self.case_id)}


class Notifier:
    def notify_new_case(self, event: NewCaseEvent) -> None:
        raise NotImplementedError

    def notify_case_completed(self, event: CaseCompletedEvent) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    """Drops every event."""

    def notify_new_case(self, event: NewCaseEvent) -> None:
        pass

    def notify_case_completed(self, event: CaseCompletedEvent) -> None:
        pass
