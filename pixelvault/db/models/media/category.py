# pixelvault/db/models/media/category.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class Category(SQLModel, table=True):
    __tablename__ = "categories"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=100)
    # lower-cased name; keeps names unique case-insensitively
    name_key: str = Field(max_length=100, unique=True, index=True)
    description: Optional[str] = Field(default=None, max_length=500)
    is_public: bool = Field(default=True)
    image_count: int = Field(default=0, ge=0)
    created_by: Optional[str] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
