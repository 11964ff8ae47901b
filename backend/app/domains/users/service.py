from uuid import UUID

from sqlalchemy.orm import Session

from app.domains.users.models import User


class UsersService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: UUID) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_push_tokens_for_role(self, role: str) -> list[str]:
        """Registered device tokens of active users holding a role."""
        rows = (
            self.db.query(User.push_token)
            .filter(
                User.role == role,
                User.is_active.is_(True),
                User.push_token.isnot(None),
                User.push_token != "",
            )
            .all()
        )
        return [row[0] for row in rows]

    def get_push_token(self, user_id: UUID) -> str | None:
        row = self.db.query(User.push_token).filter(User.id == user_id).first()
        return row[0] if row else None

    def get_display_name(self, user_id: UUID) -> str | None:
        row = self.db.query(User.full_name).filter(User.id == user_id).first()
        return row[0] if row else None

    def set_push_token(self, user_id: UUID, push_token: str | None) -> User | None:
        db_user = self.get_user(user_id)
        if not db_user:
            return None
        db_user.push_token = push_token
        self.db.commit()
        self.db.refresh(db_user)
        return db_user
