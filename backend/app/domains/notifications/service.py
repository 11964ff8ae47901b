"""Best-effort fan-out of case events to doctors and patients."""
import logging

from sqlalchemy.orm import Session

from app.domains.notifications.ports import CaseCompletedEvent, NewCaseEvent, Notifier
from app.domains.notifications.push import ExpoPushClient
from app.domains.notifications.realtime import DOCTOR_TOPIC, RealtimeBroadcaster, patient_topic
from app.domains.users.roles import Roles
from app.domains.users.service import UsersService

logger = logging.getLogger(__name__)


class NotificationService(Notifier):
    """
    Delivers case events over two independent channels: a real-time
    broadcast to connected sessions and a push message to registered
    devices. A failing channel is logged and never affects the other one
    or the caller.
    """

    def __init__(
        self,
        db: Session,
        broadcaster: RealtimeBroadcaster,
        push_client: ExpoPushClient,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.push_client = push_client
        self.users_service = UsersService(db)

    def notify_new_case(self, event: NewCaseEvent) -> None:
        payload = event.payload()

        try:
            self.broadcaster.broadcast(DOCTOR_TOPIC, "newCase", payload)
        except Exception:
            logger.exception(f"Real-time broadcast failed for case {event.case_id}")

        try:
            tokens = self.users_service.get_push_tokens_for_role(Roles.DOCTOR)
            if not tokens:
                logger.info(f"No push tokens found for role: {Roles.DOCTOR}")
                return
            self.push_client.send_to_tokens(
                tokens,
                title="New Case Assigned",
                body=f"{event.patient_name or 'A patient'} uploaded a {event.risk_level} risk case.",
                data={"caseId": str(event.case_id)},
            )
        except Exception:
            logger.exception(f"Push notification failed for case {event.case_id}")

    def notify_case_completed(self, event: CaseCompletedEvent) -> None:
        payload = event.payload()

        try:
            self.broadcaster.broadcast(patient_topic(event.patient_id), "caseCompleted", payload)
        except Exception:
            logger.exception(f"Real-time broadcast failed for completed case {event.case_id}")

        try:
            token = self.users_service.get_push_token(event.patient_id)
            if not token:
                return
            self.push_client.send_to_tokens(
                [token],
                title="Your Second Opinion Is Ready",
                body="A specialist has reviewed your reports.",
                data={"caseId": str(event.case_id)},
            )
        except Exception:
            logger.exception(f"Push notification failed for completed case {event.case_id}")
