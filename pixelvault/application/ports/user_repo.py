from dataclasses import dataclass
from typing import List, Optional, Protocol
from datetime import datetime

from .counters import CounterUpdate


@dataclass
class UserDto:
    id: str
    username: str
    email: str
    storage_used: int
    max_storage: int
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class UserRepository(Protocol):
    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def get_by_username(self, username: str) -> Optional[UserDto]:
        ...

    def get_by_email(self, email: str) -> Optional[UserDto]:
        ...

    def get_password_hash(self, user_id: str) -> Optional[str]:
        ...

    def create(self, username: str, email: str, password_hash: str, max_storage: int) -> UserDto:
        ...

    def touch_last_login(self, user_id: str) -> None:
        ...

    def add_storage_used(self, user_id: str, delta: int) -> Optional[CounterUpdate]:
        ...

    def set_storage_used(self, user_id: str, value: int, only_if: Optional[int] = None) -> bool:
        """Overwrite the counter. With ``only_if`` it only applies while the counter still holds that value."""
        ...

    def list_all(self) -> List[UserDto]:
        ...
