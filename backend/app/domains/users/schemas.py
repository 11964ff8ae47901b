from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, field_validator


class UserBase(BaseModel):
    email: EmailStr
    full_name: str


class UserResponse(UserBase):
    id: UUID
    role: str
    is_active: bool
    has_push_token: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PushTokenUpdate(BaseModel):
    """Device token registered by the mobile app. An empty value clears it."""
    push_token: str | None = None

    @field_validator("push_token")
    @classmethod
    def strip_token(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None
