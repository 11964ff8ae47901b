from collections.abc import Generator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import TokenPayload, require_role, verify_token
from app.domains.notifications.ports import Notifier
from app.domains.notifications.push import ExpoPushClient
from app.domains.notifications.realtime import RealtimeBroadcaster, RealtimeHub
from app.domains.notifications.service import NotificationService
from app.domains.users.roles import Roles

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[TokenPayload, Depends(verify_token)]

# Role-restricted identities
PatientUser = Annotated[TokenPayload, Depends(require_role([Roles.PATIENT]))]
DoctorUser = Annotated[TokenPayload, Depends(require_role([Roles.DOCTOR]))]
AdminUser = Annotated[TokenPayload, Depends(require_role([Roles.ADMIN]))]


@lru_cache
def get_broadcaster() -> RealtimeBroadcaster:
    return RealtimeBroadcaster()


def get_notifier(
    db: DbSession,
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
) -> Generator[Notifier, None, None]:
    with ExpoPushClient() as push_client:
        yield NotificationService(db, broadcaster, push_client)


def get_realtime_hub(connection: HTTPConnection) -> RealtimeHub:
    return connection.app.state.realtime_hub


NotifierDep = Annotated[Notifier, Depends(get_notifier)]
RealtimeHubDep = Annotated[RealtimeHub, Depends(get_realtime_hub)]
