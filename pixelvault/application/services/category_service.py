from dataclasses import dataclass
from typing import List, Optional
import logging
import re

from ..ports.category_repo import CategoryRepository, CategoryDto
from ..ports.audit_logger import AuditLogger
from ...exceptions import CategoryInUse, NotFound, ValidationError

logger = logging.getLogger(__name__)

CATEGORY_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_]+$")
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


@dataclass
class CategoryTracker:
    """Keeps per-category image counts and guards category deletion."""
    repo: CategoryRepository
    audit: Optional[AuditLogger] = None

    def get(self, category_id: str) -> CategoryDto:
        category = self.repo.get_by_id(category_id)
        if not category:
            raise NotFound("Category not found")
        return category

    def exists(self, category_id: str) -> bool:
        return self.repo.get_by_id(category_id) is not None

    def list(self) -> List[CategoryDto]:
        return self.repo.list_all()

    def increment(self, category_id: str) -> int:
        update = self.repo.add_image_count(category_id, 1)
        if update is None:
            raise NotFound("Category not found")
        return update.value

    def decrement(self, category_id: str) -> int:
        update = self.repo.add_image_count(category_id, -1)
        if update is None:
            raise NotFound("Category not found")
        if update.clamped:
            logger.warning(f"image_count for category {category_id} would go negative; clamped to 0")
            if self.audit:
                self.audit.log("image_count_clamped", success=False, details={"category_id": category_id})
        return update.value

    def can_delete(self, category_id: str) -> bool:
        # Always a fresh read; never trust a count from an earlier listing
        category = self.get(category_id)
        return category.image_count == 0

    def create(self, name: str, description: Optional[str] = None, created_by: Optional[str] = None) -> CategoryDto:
        clean_name = self._validate_name(name)
        if self.repo.get_by_name(clean_name):
            raise ValidationError("Category already exists")
        return self.repo.create(clean_name, self._clean_description(description), created_by)

    def rename(self, category_id: str, name: str, description: Optional[str] = None) -> CategoryDto:
        clean_name = self._validate_name(name)
        existing = self.repo.get_by_name(clean_name)
        if existing and existing.id != category_id:
            raise ValidationError("Category name already exists")
        updated = self.repo.update(category_id, clean_name, self._clean_description(description))
        if not updated:
            raise NotFound("Category not found")
        return updated

    def delete(self, category_id: str) -> None:
        category = self.get(category_id)
        if category.image_count > 0:
            raise CategoryInUse(category.image_count)
        if not self.repo.delete_if_empty(category_id):
            # Gained an image, or was removed, between the read and the delete
            fresh = self.repo.get_by_id(category_id)
            if not fresh:
                raise NotFound("Category not found")
            raise CategoryInUse(fresh.image_count)
        logger.info(f"Deleted category {category_id}")

    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        if not name or not name.strip():
            raise ValidationError("Category name is required")
        clean = name.strip()
        if len(clean) > MAX_NAME_LENGTH:
            raise ValidationError(f"Category name must be at most {MAX_NAME_LENGTH} characters")
        if not CATEGORY_NAME_RE.match(clean):
            raise ValidationError("Category name can only contain letters, numbers, spaces, hyphens, and underscores")
        return clean

    @staticmethod
    def _clean_description(description: Optional[str]) -> str:
        clean = (description or "").strip()
        if len(clean) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
        return clean
