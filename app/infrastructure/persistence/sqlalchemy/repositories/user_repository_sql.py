from typing import Optional
from sqlmodel import Session, select, func

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto
from .....utils import normalize_email

class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            username=user.username,
            email=user.email,
            phone=user.phone,
        )

    def get_by_id(self, user_id: int) -> Optional[UserDto]:
        user = self.session.get(User, user_id)
        return self._to_dto(user) if user else None

    def find_id_by_email(self, email: str) -> Optional[int]:
        normalized = normalize_email(email)
        if not normalized:
            return None
        return self.session.exec(
            select(User.id)
            .where(User.email.is_not(None))
            .where(func.lower(User.email) == normalized)
        ).first()
