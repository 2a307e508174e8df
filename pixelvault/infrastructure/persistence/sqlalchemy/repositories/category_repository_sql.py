from datetime import datetime
from typing import List, Optional
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import Category
from .....application.ports.category_repo import CategoryRepository, CategoryDto
from .....application.ports.counters import CounterUpdate, MAX_COUNTER_ATTEMPTS
from .....exceptions import RecordPersistFailure, ValidationError


class SqlCategoryRepository(CategoryRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, c: Category) -> CategoryDto:
        return CategoryDto(
            id=c.id,
            name=c.name,
            description=c.description,
            is_public=bool(c.is_public),
            image_count=c.image_count,
            created_by=c.created_by,
            created_at=c.created_at,
        )

    def _get(self, category_id: str) -> Optional[Category]:
        return self.session.exec(
            select(Category).where(Category.id == category_id).execution_options(populate_existing=True)
        ).first()

    def get_by_id(self, category_id: str) -> Optional[CategoryDto]:
        c = self._get(category_id)
        return self._to_dto(c) if c else None

    def get_by_name(self, name: str) -> Optional[CategoryDto]:
        c = self.session.exec(select(Category).where(Category.name_key == name.strip().lower())).first()
        return self._to_dto(c) if c else None

    def list_all(self) -> List[CategoryDto]:
        rows = self.session.exec(
            select(Category).order_by(Category.name).execution_options(populate_existing=True)
        ).all()
        return [self._to_dto(c) for c in rows]

    def create(self, name: str, description: Optional[str], created_by: Optional[str]) -> CategoryDto:
        category = Category(
            name=name,
            name_key=name.lower(),
            description=description,
            created_by=created_by,
        )
        try:
            self.session.add(category)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationError("Category already exists") from exc
        self.session.refresh(category)
        return self._to_dto(category)

    def update(self, category_id: str, name: str, description: Optional[str]) -> Optional[CategoryDto]:
        c = self._get(category_id)
        if not c:
            return None
        c.name = name
        c.name_key = name.lower()
        c.description = description
        c.updated_at = datetime.utcnow()
        try:
            self.session.add(c)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationError("Category name already exists") from exc
        self.session.refresh(c)
        return self._to_dto(c)

    def delete_if_empty(self, category_id: str) -> bool:
        try:
            result = self.session.connection().execute(
                delete(Category).where(Category.id == category_id).where(Category.image_count == 0)
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to delete category {category_id}") from exc
        return result.rowcount == 1

    def add_image_count(self, category_id: str, delta: int) -> Optional[CounterUpdate]:
        now = datetime.utcnow()
        clamped = False
        try:
            conn = self.session.connection()
            for _ in range(MAX_COUNTER_ATTEMPTS):
                result = conn.execute(
                    update(Category)
                    .where(Category.id == category_id)
                    .where(Category.image_count + delta >= 0)
                    .values(image_count=Category.image_count + delta, updated_at=now)
                )
                if result.rowcount == 1:
                    break
                result = conn.execute(
                    update(Category)
                    .where(Category.id == category_id)
                    .where(Category.image_count + delta < 0)
                    .values(image_count=0, updated_at=now)
                )
                if result.rowcount == 1:
                    clamped = True
                    break
                if conn.execute(select(Category.id).where(Category.id == category_id)).first() is None:
                    self.session.rollback()
                    return None
            else:
                self.session.rollback()
                raise RecordPersistFailure(f"Image count for category {category_id} kept changing")
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to update image count for category {category_id}") from exc
        value = self.session.exec(select(Category.image_count).where(Category.id == category_id)).one()
        return CounterUpdate(value=value, clamped=clamped)

    def set_image_count(self, category_id: str, value: int, only_if: Optional[int] = None) -> bool:
        stmt = update(Category).where(Category.id == category_id)
        if only_if is not None:
            stmt = stmt.where(Category.image_count == only_if)
        try:
            result = self.session.connection().execute(
                stmt.values(image_count=max(value, 0), updated_at=datetime.utcnow())
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to set image count for category {category_id}") from exc
        return result.rowcount == 1
