"""WebSocket endpoint for real-time case events."""
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from jose import JWTError

from app.core.dependencies import RealtimeHubDep
from app.core.security import decode_token
from app.domains.notifications.realtime import DOCTOR_TOPIC, patient_topic
from app.domains.users.roles import Roles

logger = logging.getLogger(__name__)

router = APIRouter()


def topics_for(role: str | None, user_id: str) -> list[str]:
    if role in (Roles.DOCTOR, Roles.ADMIN):
        return [DOCTOR_TOPIC]
    if role == Roles.PATIENT:
        return [patient_topic(user_id)]
    return []


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    hub: RealtimeHubDep,
    token: str = Query(..., description="Bearer token of the connecting user"),
):
    """
    Subscribe to case events.

    Doctors receive ``newCase`` events; patients receive ``caseCompleted``
    events for their own cases. The socket is receive-only for the client.
    """
    try:
        user = decode_token(token)
    except JWTError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    topics = topics_for(user.role, user.sub)
    if not topics:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await hub.connect(websocket, topics)
    logger.info(f"User {user.sub} subscribed to {topics}")
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
