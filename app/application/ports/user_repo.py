from typing import Protocol, Optional


class UserDto:
    def __init__(self, id: int, username: str, email: Optional[str], phone: Optional[str]):
        self.id = id
        self.username = username
        self.email = email
        self.phone = phone


class UserRepository(Protocol):
    def get_by_id(self, user_id: int) -> Optional[UserDto]:
        ...

    def find_id_by_email(self, email: str) -> Optional[int]:
        ...
