# pixelvault/schemas/common/common.py
from pydantic import BaseModel
from typing import Optional

__all__ = ["ErrorResponse", "MessageResponse", "TokenResponse", "PaginationInfo"]

class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[dict] = None
    error: str

class MessageResponse(BaseModel):
    success: bool = True
    message: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class PaginationInfo(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool
