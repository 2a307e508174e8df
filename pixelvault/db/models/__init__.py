# Models package (re-export feature modules for stable imports)
from .users.user import User
from .media.category import Category
from .media.image import Image, UploadStatus

__all__ = [
    "User",
    "Category",
    "Image",
    "UploadStatus",
]
