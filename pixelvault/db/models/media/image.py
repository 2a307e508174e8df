# pixelvault/db/models/media/image.py
from enum import Enum
from typing import List, Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime
import uuid


class UploadStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Image(SQLModel, table=True):
    __tablename__ = "images"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    original_name: str = Field(max_length=255)
    stored_name: str = Field(max_length=255, unique=True)
    file_path: str = Field(max_length=500)
    mime_type: str = Field(max_length=100)
    size: int = Field(ge=0)
    width: Optional[int] = Field(default=None)
    height: Optional[int] = Field(default=None)
    category_id: str = Field(foreign_key="categories.id", index=True)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    alt: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    owner_id: str = Field(foreign_key="users.id", index=True)
    upload_status: str = Field(default=UploadStatus.PROCESSING.value, max_length=20)
    processing_error: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
