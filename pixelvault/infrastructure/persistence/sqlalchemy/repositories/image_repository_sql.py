from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import String, cast, delete, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import Image, UploadStatus
from .....application.ports.image_repo import ImageRepository, ImageDto, NewImage
from .....exceptions import RecordPersistFailure


class SqlImageRepository(ImageRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, i: Image) -> ImageDto:
        return ImageDto(
            id=i.id,
            owner_id=i.owner_id,
            category_id=i.category_id,
            original_name=i.original_name,
            stored_name=i.stored_name,
            file_path=i.file_path,
            mime_type=i.mime_type,
            size=i.size,
            tags=list(i.tags or []),
            alt=i.alt,
            description=i.description,
            width=i.width,
            height=i.height,
            upload_status=i.upload_status,
            created_at=i.created_at,
        )

    def create(self, new_image: NewImage) -> ImageDto:
        image = Image(
            owner_id=new_image.owner_id,
            category_id=new_image.category_id,
            original_name=new_image.original_name[:255],
            stored_name=new_image.stored_name,
            file_path=new_image.file_path,
            mime_type=new_image.mime_type,
            size=new_image.size,
            tags=list(new_image.tags),
            alt=new_image.alt,
            description=new_image.description,
            width=new_image.width,
            height=new_image.height,
            upload_status=UploadStatus.PROCESSING.value,
        )
        try:
            self.session.add(image)
            self.session.commit()
            self.session.refresh(image)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to save record for {new_image.original_name}") from exc
        return self._to_dto(image)

    def _set_status(self, image_id: str, status: str, error: Optional[str] = None) -> None:
        try:
            result = self.session.connection().execute(
                update(Image)
                .where(Image.id == image_id)
                .values(upload_status=status, processing_error=error, updated_at=datetime.utcnow())
            )
            if result.rowcount != 1:
                self.session.rollback()
                raise RecordPersistFailure(f"Image {image_id} disappeared before status update")
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to mark image {image_id} {status}") from exc

    def mark_completed(self, image_id: str) -> None:
        self._set_status(image_id, UploadStatus.COMPLETED.value)

    def mark_failed(self, image_id: str, error: str) -> None:
        self._set_status(image_id, UploadStatus.FAILED.value, error[:500])

    def get_by_id(self, image_id: str) -> Optional[ImageDto]:
        i = self.session.exec(
            select(Image).where(Image.id == image_id).execution_options(populate_existing=True)
        ).first()
        return self._to_dto(i) if i else None

    def get_for_owner(self, image_id: str, owner_id: str) -> Optional[ImageDto]:
        i = self.session.exec(
            select(Image)
            .where(Image.id == image_id)
            .where(Image.owner_id == owner_id)
            .execution_options(populate_existing=True)
        ).first()
        return self._to_dto(i) if i else None

    def delete(self, image_id: str) -> bool:
        try:
            result = self.session.connection().execute(delete(Image).where(Image.id == image_id))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RecordPersistFailure(f"Failed to delete image {image_id}") from exc
        return result.rowcount == 1

    def search(self, owner_id: str, category_id: Optional[str], query: Optional[str], offset: int, limit: int) -> Tuple[List[ImageDto], int]:
        stmt = (
            select(Image)
            .where(Image.owner_id == owner_id)
            .where(Image.upload_status == UploadStatus.COMPLETED.value)
        )
        if category_id:
            stmt = stmt.where(Image.category_id == category_id)
        if query:
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(or_(
                Image.original_name.ilike(pattern),
                Image.alt.ilike(pattern),
                Image.description.ilike(pattern),
                cast(Image.tags, String).ilike(pattern),
            ))
        total = self.session.exec(select(func.count()).select_from(stmt.subquery())).one()
        rows = self.session.exec(
            stmt.order_by(Image.created_at.desc()).offset(offset).limit(limit)
        ).all()
        return [self._to_dto(r) for r in rows], total

    def list_all(self) -> List[ImageDto]:
        rows = self.session.exec(select(Image).execution_options(populate_existing=True)).all()
        return [self._to_dto(r) for r in rows]
