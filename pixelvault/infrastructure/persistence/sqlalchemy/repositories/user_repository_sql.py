from datetime import datetime
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto
from .....application.ports.counters import CounterUpdate, MAX_COUNTER_ATTEMPTS
from .....exceptions import RecordPersistFailure, ValidationError


class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            username=user.username,
            email=user.email,
            storage_used=user.storage_used,
            max_storage=user.max_storage,
            is_active=bool(user.is_active),
            created_at=user.created_at,
            last_login=user.last_login,
        )

    def _get(self, user_id: str) -> Optional[User]:
        return self.session.exec(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        ).first()

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self._get(user_id)
        return self._to_dto(user) if user else None

    def get_by_username(self, username: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.username == username)).first()
        return self._to_dto(user) if user else None

    def get_by_email(self, email: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.email == email.strip().lower())).first()
        return self._to_dto(user) if user else None

    def get_password_hash(self, user_id: str) -> Optional[str]:
        user = self._get(user_id)
        return user.password_hash if user else None

    def create(self, username: str, email: str, password_hash: str, max_storage: int) -> UserDto:
        user = User(
            username=username,
            email=email.strip().lower(),
            password_hash=password_hash,
            max_storage=max_storage,
        )
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationError("Username or email already exists") from exc
        self.session.refresh(user)
        return self._to_dto(user)

    def touch_last_login(self, user_id: str) -> None:
        user = self._get(user_id)
        if not user:
            return
        user.last_login = datetime.utcnow()
        self.session.add(user)
        self.session.commit()

    def add_storage_used(self, user_id: str, delta: int) -> Optional[CounterUpdate]:
        now = datetime.utcnow()
        clamped = False
        try:
            conn = self.session.connection()
            for _ in range(MAX_COUNTER_ATTEMPTS):
                result = conn.execute(
                    update(User)
                    .where(User.id == user_id)
                    .where(User.storage_used + delta >= 0)
                    .values(storage_used=User.storage_used + delta, updated_at=now)
                )
                if result.rowcount == 1:
                    break
                result = conn.execute(
                    update(User)
                    .where(User.id == user_id)
                    .where(User.storage_used + delta < 0)
                    .values(storage_used=0, updated_at=now)
                )
                if result.rowcount == 1:
                    clamped = True
                    break
                # Neither matched: the row is gone or another writer moved the value in between
                if conn.execute(select(User.id).where(User.id == user_id)).first() is None:
                    self.session.rollback()
                    return None
            else:
                self.session.rollback()
                raise RecordPersistFailure(f"Storage counter for user {user_id} kept changing")
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to update storage for user {user_id}") from exc
        value = self.session.exec(select(User.storage_used).where(User.id == user_id)).one()
        return CounterUpdate(value=value, clamped=clamped)

    def set_storage_used(self, user_id: str, value: int, only_if: Optional[int] = None) -> bool:
        stmt = update(User).where(User.id == user_id)
        if only_if is not None:
            stmt = stmt.where(User.storage_used == only_if)
        try:
            result = self.session.connection().execute(
                stmt.values(storage_used=max(value, 0), updated_at=datetime.utcnow())
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to set storage for user {user_id}") from exc
        return result.rowcount == 1

    def list_all(self) -> List[UserDto]:
        rows = self.session.exec(select(User).execution_options(populate_existing=True)).all()
        return [self._to_dto(u) for u in rows]
