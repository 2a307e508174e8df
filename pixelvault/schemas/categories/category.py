# pixelvault/schemas/categories/category.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

__all__ = ["CategoryRequest", "CategoryResponse"]

class CategoryRequest(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(None, max_length=500)

class CategoryResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_public: bool
    image_count: int
    created_by: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_dto(cls, category) -> "CategoryResponse":
        return cls(
            id=category.id,
            name=category.name,
            description=category.description,
            is_public=category.is_public,
            image_count=category.image_count,
            created_by=category.created_by,
            created_at=category.created_at,
        )
