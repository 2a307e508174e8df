# pixelvault/schemas/auth/auth.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

__all__ = ["RegisterRequest", "LoginRequest", "UserResponse"]

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6)

class LoginRequest(BaseModel):
    username: str
    password: str

class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    storage_used: int
    max_storage: int
    created_at: datetime
    last_login: Optional[datetime] = None

    @classmethod
    def from_dto(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            storage_used=user.storage_used,
            max_storage=user.max_storage,
            created_at=user.created_at,
            last_login=user.last_login,
        )
