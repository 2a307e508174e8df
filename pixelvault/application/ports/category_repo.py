from dataclasses import dataclass
from typing import List, Optional, Protocol
from datetime import datetime

from .counters import CounterUpdate


@dataclass
class CategoryDto:
    id: str
    name: str
    description: Optional[str]
    is_public: bool
    image_count: int
    created_by: Optional[str]
    created_at: datetime


class CategoryRepository(Protocol):
    def get_by_id(self, category_id: str) -> Optional[CategoryDto]:
        ...

    def get_by_name(self, name: str) -> Optional[CategoryDto]:
        """Case-insensitive lookup."""
        ...

    def list_all(self) -> List[CategoryDto]:
        ...

    def create(self, name: str, description: Optional[str], created_by: Optional[str]) -> CategoryDto:
        ...

    def update(self, category_id: str, name: str, description: Optional[str]) -> Optional[CategoryDto]:
        ...

    def delete_if_empty(self, category_id: str) -> bool:
        ...

    def add_image_count(self, category_id: str, delta: int) -> Optional[CounterUpdate]:
        ...

    def set_image_count(self, category_id: str, value: int, only_if: Optional[int] = None) -> bool:
        ...
