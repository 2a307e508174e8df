# pixelvault/db/models/users/user.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ....config import settings

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    username: str = Field(max_length=50, unique=True, index=True)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    storage_used: int = Field(default=0, ge=0)
    max_storage: int = Field(default_factory=lambda: settings.DEFAULT_MAX_STORAGE, ge=0)
    is_active: bool = Field(default=True)
    last_login: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
