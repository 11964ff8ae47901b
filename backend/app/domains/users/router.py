from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.core.dependencies import CurrentUser, DbSession
from app.domains.users.models import User
from app.domains.users.schemas import PushTokenUpdate, UserResponse
from app.domains.users.service import UsersService

router = APIRouter()


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_active=user.is_active,
        has_push_token=bool(user.push_token),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


@router.get("/me", response_model=UserResponse)
def get_current_user(db: DbSession, current_user: CurrentUser):
    service = UsersService(db)
    user = service.get_user(UUID(current_user.sub))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _to_response(user)


@router.put("/me/push-token", response_model=UserResponse)
def update_push_token(request: PushTokenUpdate, db: DbSession, current_user: CurrentUser):
    """Register (or clear) the device token used for push notifications."""
    service = UsersService(db)
    user = service.set_push_token(UUID(current_user.sub), request.push_token)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _to_response(user)
