from dataclasses import dataclass
from math import ceil
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from ..ports.blob_store import BlobStore
from ..ports.image_repo import ImageRepository, ImageDto
from ..ports.audit_logger import AuditLogger
from .category_service import CategoryTracker
from .quota_service import QuotaAccountant
from ...db.models.media.image import UploadStatus
from ...exceptions import BlobStoreError, NotFound, PixelVaultError

logger = logging.getLogger(__name__)


@dataclass
class ImagePage:
    items: List[ImageDto]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@dataclass
class ImageService:
    image_repo: ImageRepository
    blob_store: BlobStore
    categories: CategoryTracker
    quota: QuotaAccountant
    audit: Optional[AuditLogger] = None
    max_page_size: int = 100

    def get_image(self, owner_id: str, image_id: str) -> ImageDto:
        # Another user's image is reported exactly like a missing one
        image = self.image_repo.get_for_owner(image_id, owner_id)
        if not image:
            raise NotFound("Image not found")
        return image

    def open_image(self, owner_id: str, image_id: str) -> Tuple[ImageDto, Path]:
        image = self.get_image(owner_id, image_id)
        if image.upload_status != UploadStatus.COMPLETED.value or not self.blob_store.exists(image.file_path):
            logger.error(f"Image {image_id} has no readable blob at {image.file_path}")
            raise NotFound("Image file not found")
        return image, self.blob_store.resolve(image.file_path)

    def search(self, owner_id: str, category_id: Optional[str] = None, query: Optional[str] = None, page: int = 1, page_size: int = 20) -> ImagePage:
        page = max(page, 1)
        page_size = min(max(page_size, 1), self.max_page_size)
        items, total = self.image_repo.search(owner_id, category_id or None, query or None, (page - 1) * page_size, page_size)
        return ImagePage(items=items, page=page, page_size=page_size, total=total)

    def delete_image(self, owner_id: str, image_id: str) -> ImageDto:
        """Delete an image and release its storage and category count.

        The blob goes first; losing it only leaks disk space, whereas a record
        whose blob is gone is visible to the user. Counters are only released
        by the call whose record delete actually removed the row, so a repeated
        or concurrent delete raises NotFound and leaves counters untouched.
        """
        image = self.get_image(owner_id, image_id)

        try:
            if not self.blob_store.delete(image.file_path):
                logger.warning(f"Blob {image.file_path} for image {image_id} was already gone")
        except BlobStoreError as exc:
            logger.error(f"Failed to delete blob {image.file_path} for image {image_id}: {exc}")
            if self.audit:
                self.audit.log("cleanup_failed", user_id=owner_id, success=False, details={"locator": image.file_path, "error": str(exc)})

        if not self.image_repo.delete(image.id):
            raise NotFound("Image not found")

        if image.upload_status == UploadStatus.COMPLETED.value:
            self.quota.apply_delta(owner_id, -image.size)
            try:
                self.categories.decrement(image.category_id)
            except PixelVaultError as exc:
                logger.error(f"Could not decrement image_count for category {image.category_id}: {exc}")

        logger.info(f"Deleted image {image_id} ({image.size} bytes) for user {owner_id}")
        if self.audit:
            self.audit.log("image_deleted", user_id=owner_id, details={"image_id": image_id, "size": image.size})
        return image
