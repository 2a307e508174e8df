from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple
from datetime import datetime


@dataclass
class NewImage:
    owner_id: str
    category_id: str
    original_name: str
    stored_name: str
    file_path: str
    mime_type: str
    size: int
    tags: List[str] = field(default_factory=list)
    alt: Optional[str] = None
    description: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class ImageDto:
    id: str
    owner_id: str
    category_id: str
    original_name: str
    stored_name: str
    file_path: str
    mime_type: str
    size: int
    tags: List[str]
    alt: Optional[str]
    description: Optional[str]
    width: Optional[int]
    height: Optional[int]
    upload_status: str
    created_at: datetime


class ImageRepository(Protocol):
    def create(self, new_image: NewImage) -> ImageDto:
        """Persist a record in the processing state."""
        ...

    def mark_completed(self, image_id: str) -> None:
        ...

    def mark_failed(self, image_id: str, error: str) -> None:
        ...

    def get_by_id(self, image_id: str) -> Optional[ImageDto]:
        ...

    def get_for_owner(self, image_id: str, owner_id: str) -> Optional[ImageDto]:
        ...

    def delete(self, image_id: str) -> bool:
        """True only for the caller whose delete removed the row."""
        ...

    def search(self, owner_id: str, category_id: Optional[str], query: Optional[str], offset: int, limit: int) -> Tuple[List[ImageDto], int]:
        ...

    def list_all(self) -> List[ImageDto]:
        ...
