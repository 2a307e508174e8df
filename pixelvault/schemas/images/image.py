# pixelvault/schemas/images/image.py
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from ..common.common import PaginationInfo

__all__ = [
    "ImageResponse",
    "FileFailureResponse",
    "BatchUploadResponse",
    "ImageListResponse",
    "StorageUsageResponse",
]

class ImageResponse(BaseModel):
    id: str
    original_name: str
    stored_name: str
    mime_type: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None
    category_id: str
    tags: List[str] = []
    alt: Optional[str] = None
    description: Optional[str] = None
    upload_status: str
    url: str
    created_at: datetime

    @classmethod
    def from_dto(cls, image) -> "ImageResponse":
        return cls(
            id=image.id,
            original_name=image.original_name,
            stored_name=image.stored_name,
            mime_type=image.mime_type,
            size=image.size,
            width=image.width,
            height=image.height,
            category_id=image.category_id,
            tags=image.tags,
            alt=image.alt,
            description=image.description,
            upload_status=image.upload_status,
            url=f"/images/{image.id}/file",
            created_at=image.created_at,
        )

class FileFailureResponse(BaseModel):
    file_name: str
    reason: str

class BatchUploadResponse(BaseModel):
    status: str  # 'success' | 'partial' | 'failed'
    completed_images: List[ImageResponse]
    failures: List[FileFailureResponse]
    unprocessed: List[str] = []
    timed_out: bool = False
    total_bytes: int

    @classmethod
    def from_result(cls, result) -> "BatchUploadResponse":
        return cls(
            status=result.status,
            completed_images=[ImageResponse.from_dto(i) for i in result.completed_images],
            failures=[FileFailureResponse(file_name=f.file_name, reason=f.reason) for f in result.failures],
            unprocessed=result.unprocessed,
            timed_out=result.timed_out,
            total_bytes=result.completed_bytes,
        )

class ImageListResponse(BaseModel):
    items: List[ImageResponse]
    pagination: PaginationInfo

    @classmethod
    def from_page(cls, page) -> "ImageListResponse":
        return cls(
            items=[ImageResponse.from_dto(i) for i in page.items],
            pagination=PaginationInfo(
                page=page.page,
                page_size=page.page_size,
                total=page.total,
                total_pages=page.total_pages,
                has_next=page.has_next,
                has_prev=page.has_prev,
            ),
        )

class StorageUsageResponse(BaseModel):
    used: int
    limit: int
    available: int
    percentage: float
