# Routers package
from . import auth_router
from . import upload_router
from . import images_router
from . import categories_router

__all__ = [
    "auth_router",
    "upload_router",
    "images_router",
    "categories_router",
]
